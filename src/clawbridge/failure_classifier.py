"""Deterministic mapping of run failures to user-facing reason codes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from clawbridge.errors import (
    AgentNotConfiguredError,
    NoToolAvailableError,
    ToolTimeoutNoOutputError,
    TransientUploadError,
    UploadError,
    UploadValidationError,
)

RUN_FAILURE_CLASSIFIER_VERSION = 1


class FailureReason(str, Enum):
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    AGENT_NOT_CONFIGURED = "agent_not_configured"
    INVALID_AGENT_OUTPUT = "invalid_agent_output"
    VALIDATION_FAILED = "validation_failed"
    UPLOAD_FAILED = "upload_failed"
    UNKNOWN = "unknown"


_TIMEOUT_PATTERNS: tuple[str, ...] = ("hard timeout", "timed out", "timeout", "timed_out=true")
_RATE_LIMIT_PATTERNS: tuple[str, ...] = ("rate limit", "too many requests", "429")
_AGENT_NOT_CONFIGURED_PATTERNS: tuple[str, ...] = (
    "no default agent configured",
    "executable not found",
    "executable not available",
)
_INVALID_OUTPUT_PATTERNS: tuple[str, ...] = ("not valid discovery json payload",)

_HINTS: dict[FailureReason, tuple[str, ...]] = {
    FailureReason.TIMEOUT: (
        "Increase timeout, e.g. clawbridge run --timeout 600",
        "Check model availability with: openclaw status",
    ),
    FailureReason.RATE_LIMITED: (
        "Wait a bit and retry",
        "Reduce concurrent runs/tools",
    ),
    FailureReason.AGENT_NOT_CONFIGURED: (
        "Install openclaw (or clawdbot) and configure a default agent",
        "List agents with: openclaw agents list",
        "Run clawbridge doctor to check tool availability",
    ),
    FailureReason.INVALID_AGENT_OUTPUT: (
        "Run with --debug to see the raw agent output",
        "Inspect: openclaw logs --follow",
    ),
    FailureReason.VALIDATION_FAILED: (
        "Local run files were still written; inspect latest.json",
        "Check the brief with: clawbridge check-brief <path>",
    ),
    FailureReason.UPLOAD_FAILED: (
        "Verify credentials with CLAWBRIDGE_WORKSPACE_KEY",
        "Retry later if the vault reported a server error",
    ),
    FailureReason.UNKNOWN: (
        "Run with --debug for more logs",
        "Inspect: openclaw logs --follow",
    ),
}


@dataclass(frozen=True, slots=True)
class RunFailureClassification:
    reason: FailureReason
    matched_rule: str
    matched_pattern: str | None

    @property
    def hints(self) -> tuple[str, ...]:
        return _HINTS[self.reason]


def classify_run_failure(error: BaseException) -> RunFailureClassification:
    """Classify a run-fatal error; type checks win over message patterns."""

    if isinstance(error, UploadValidationError):
        return RunFailureClassification(FailureReason.VALIDATION_FAILED, "validation_error", None)

    if isinstance(error, TransientUploadError) and error.status_code == 429:
        return RunFailureClassification(FailureReason.RATE_LIMITED, "upload_rate_limited", None)

    message = str(error).lower()
    if isinstance(error, NoToolAvailableError):
        message = " ".join([message, *(reason.lower() for reason in error.failures.values())])

    pattern = _first_match(message, _RATE_LIMIT_PATTERNS)
    if pattern is not None:
        return RunFailureClassification(FailureReason.RATE_LIMITED, "rate_limited", pattern)

    if isinstance(error, ToolTimeoutNoOutputError) and error.timed_out:
        return RunFailureClassification(FailureReason.TIMEOUT, "tool_timeout", None)
    pattern = _first_match(message, _TIMEOUT_PATTERNS)
    if pattern is not None:
        return RunFailureClassification(FailureReason.TIMEOUT, "timeout_message", pattern)

    if isinstance(error, AgentNotConfiguredError):
        return RunFailureClassification(
            FailureReason.AGENT_NOT_CONFIGURED,
            "agent_not_configured",
            None,
        )

    # Invalid output from one tool outranks a missing fallback tool.
    pattern = _first_match(message, _INVALID_OUTPUT_PATTERNS)
    if pattern is not None:
        return RunFailureClassification(
            FailureReason.INVALID_AGENT_OUTPUT,
            "invalid_agent_output",
            pattern,
        )

    pattern = _first_match(message, _AGENT_NOT_CONFIGURED_PATTERNS)
    if pattern is not None:
        return RunFailureClassification(
            FailureReason.AGENT_NOT_CONFIGURED,
            "agent_not_configured_message",
            pattern,
        )

    if isinstance(error, UploadError):
        return RunFailureClassification(FailureReason.UPLOAD_FAILED, "upload_error", None)

    return RunFailureClassification(FailureReason.UNKNOWN, "fallback_unknown", None)


def render_failure_block(error: BaseException) -> list[str]:
    """Terminal block printed when a run fails."""

    classification = classify_run_failure(error)
    rule = "─" * 60
    return [
        "",
        rule,
        "",
        "❌ RUN FAILED",
        f"REASON={classification.reason.value}",
        f"ERROR={error}",
        "",
        "HINTS:",
        *(f"- {hint}" for hint in classification.hints),
        "",
        rule,
    ]


def _first_match(haystack: str, patterns: tuple[str, ...]) -> str | None:
    for pattern in patterns:
        if pattern in haystack:
            return pattern
    return None
