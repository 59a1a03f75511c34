"""Error taxonomy shared by discovery, upload and configuration layers."""

from __future__ import annotations


class ClawbridgeError(RuntimeError):
    """Base class for runner failures surfaced to the CLI."""


class ConfigError(ValueError):
    """Configuration file is missing or invalid."""


class ToolError(ClawbridgeError):
    """Failure local to one agent tool; the fallback chain advances past it."""

    def __init__(self, message: str, *, tool: str, transient: bool) -> None:
        super().__init__(message)
        self.tool = tool
        self.transient = transient


class ToolUnavailableError(ToolError):
    """Agent executable is missing or cannot be started."""

    def __init__(self, message: str, *, tool: str) -> None:
        super().__init__(message, tool=tool, transient=False)


class AgentNotConfiguredError(ToolError):
    """Agent executable exists but reports no usable agent id."""

    def __init__(self, message: str, *, tool: str) -> None:
        super().__init__(message, tool=tool, transient=False)


class ToolTimeoutNoOutputError(ToolError):
    """Process terminated abnormally without writing anything to stdout."""

    def __init__(
        self,
        message: str,
        *,
        tool: str,
        exit_code: int | None,
        timed_out: bool,
        stderr_preview: str = "",
    ) -> None:
        super().__init__(message, tool=tool, transient=True)
        self.exit_code = exit_code
        self.timed_out = timed_out
        self.stderr_preview = stderr_preview


class OutputLimitExceededError(ToolError):
    """Process produced more output than the supervisor is allowed to buffer."""

    def __init__(self, message: str, *, tool: str, limit_bytes: int) -> None:
        super().__init__(message, tool=tool, transient=False)
        self.limit_bytes = limit_bytes


class NoToolAvailableError(ClawbridgeError):
    """Every tool in the chain was exhausted without a usable response."""

    def __init__(self, message: str, *, failures: dict[str, str]) -> None:
        super().__init__(message)
        self.failures = failures


class UploadError(ClawbridgeError):
    """Vault upload did not succeed."""


class UploadValidationError(UploadError):
    """Brief failed the validation gate; nothing was sent."""

    def __init__(self, message: str, *, errors: list[str]) -> None:
        super().__init__(message)
        self.errors = errors


class TransientUploadError(UploadError):
    """Retry budget exhausted on 5xx, 429 or network failures."""

    def __init__(self, message: str, *, status_code: int | None, attempts: int) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.attempts = attempts


class TerminalUploadError(UploadError):
    """Vault rejected the request with a non-retryable client error."""

    def __init__(self, message: str, *, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code
