"""Subprocess supervision for agent CLI tools."""

from __future__ import annotations

import subprocess
import threading
import time
from dataclasses import dataclass
from typing import IO
from uuid import uuid4

from clawbridge.context import RunContext
from clawbridge.discovery.models import AgentTool
from clawbridge.errors import (
    OutputLimitExceededError,
    ToolTimeoutNoOutputError,
    ToolUnavailableError,
)

DEFAULT_GRACE_SECONDS = 15.0
DEFAULT_MAX_OUTPUT_BYTES = 8 * 1024 * 1024
TIMEOUT_EXIT_CODE = 124

_CHUNK_SIZE = 64 * 1024
_POLL_INTERVAL_SECONDS = 0.1
_TERMINATE_WAIT_SECONDS = 2.0
_READER_JOIN_SECONDS = 5.0
_LOG_LINE_PREVIEW = 150


@dataclass(slots=True)
class SupervisorOutcome:
    """Everything observed about one child process run."""

    exit_code: int | None
    timed_out: bool
    stdout: str
    stderr: str
    elapsed_seconds: float

    @property
    def clean(self) -> bool:
        return not self.timed_out and self.exit_code == 0


class _StreamDrain:
    """Reader thread accumulating one pipe with a hard size bound."""

    def __init__(
        self,
        *,
        pipe: IO[bytes],
        name: str,
        limit_bytes: int,
        ctx: RunContext,
    ) -> None:
        self._pipe = pipe
        self._name = name
        self._limit = limit_bytes
        self._ctx = ctx
        self._chunks: list[bytes] = []
        self._size = 0
        self.overflowed = threading.Event()
        self._thread = threading.Thread(target=self._drain, name=f"drain-{name}", daemon=True)

    def start(self) -> None:
        self._thread.start()

    def join(self, timeout: float) -> None:
        self._thread.join(timeout=timeout)

    def text(self) -> str:
        return b"".join(self._chunks).decode("utf-8", errors="replace")

    def _drain(self) -> None:
        try:
            for chunk in iter(lambda: self._pipe.read1(_CHUNK_SIZE), b""):
                if self._size + len(chunk) > self._limit:
                    self.overflowed.set()
                    return
                self._size += len(chunk)
                self._chunks.append(chunk)
                self._log_chunk(chunk)
        except (OSError, ValueError):
            # Pipe closed underneath us after the process was killed.
            return
        finally:
            self._pipe.close()

    def _log_chunk(self, chunk: bytes) -> None:
        for line in chunk.decode("utf-8", errors="replace").splitlines():
            if line.strip():
                self._ctx.log.debug("%s: %s", self._name, line[:_LOG_LINE_PREVIEW])


class ProcessSupervisor:
    """Run one agent CLI under a cooperative deadline with a hard-kill fallback.

    The tool receives ``--timeout`` and is expected to stop on its own; the
    supervisor only terminates it once ``timeout + grace`` has elapsed.
    Whatever reached stdout before an abnormal exit is still returned.
    """

    def __init__(
        self,
        *,
        grace_seconds: float = DEFAULT_GRACE_SECONDS,
        max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
    ) -> None:
        self.grace_seconds = max(0.0, grace_seconds)
        self.max_output_bytes = max_output_bytes

    def run(
        self,
        tool: AgentTool,
        agent_id: str,
        prompt_text: str,
        timeout_seconds: int,
        *,
        ctx: RunContext | None = None,
    ) -> str:
        """Return stdout of the tool, salvaging partial output on abnormal exit."""

        return self.run_outcome(tool, agent_id, prompt_text, timeout_seconds, ctx=ctx).stdout

    def run_outcome(
        self,
        tool: AgentTool,
        agent_id: str,
        prompt_text: str,
        timeout_seconds: int,
        *,
        ctx: RunContext | None = None,
    ) -> SupervisorOutcome:
        """Like `run`, but keep exit details so callers can tell salvage from success."""

        ctx = (ctx or RunContext()).for_stage(tool.value)
        outcome = self.execute(
            build_agent_args(tool, agent_id, prompt_text, timeout_seconds),
            tool=tool,
            hard_timeout_seconds=timeout_seconds + self.grace_seconds,
            ctx=ctx,
        )
        ctx.log.info(
            "Process exited: code=%s timed_out=%s elapsed=%.1fs stdout_len=%d",
            outcome.exit_code,
            outcome.timed_out,
            outcome.elapsed_seconds,
            len(outcome.stdout),
        )

        if outcome.stdout.strip():
            if not outcome.clean:
                ctx.log.warning(
                    "Salvaging %d chars of stdout after abnormal exit",
                    len(outcome.stdout),
                )
            return outcome

        stderr_preview = outcome.stderr.strip()[:500]
        if stderr_preview:
            ctx.log.error("No stdout, stderr: %s", stderr_preview)
        raise ToolTimeoutNoOutputError(
            f"{tool.value} exited with no output "
            f"(code={outcome.exit_code}, timed_out={outcome.timed_out})",
            tool=tool.value,
            exit_code=outcome.exit_code,
            timed_out=outcome.timed_out,
            stderr_preview=stderr_preview,
        )

    def execute(
        self,
        args: list[str],
        *,
        tool: AgentTool,
        hard_timeout_seconds: float,
        ctx: RunContext,
    ) -> SupervisorOutcome:
        ctx.log.info("Spawning process: timeout=%.0fs", hard_timeout_seconds)
        try:
            process = subprocess.Popen(  # noqa: S603
                args,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except (FileNotFoundError, PermissionError) as error:
            raise ToolUnavailableError(
                f"{tool.value} executable not available: {error}",
                tool=tool.value,
            ) from error

        assert process.stdout is not None
        assert process.stderr is not None
        stdout_drain = _StreamDrain(
            pipe=process.stdout,
            name="stdout",
            limit_bytes=self.max_output_bytes,
            ctx=ctx,
        )
        stderr_drain = _StreamDrain(
            pipe=process.stderr,
            name="stderr",
            limit_bytes=self.max_output_bytes,
            ctx=ctx,
        )
        stdout_drain.start()
        stderr_drain.start()

        start = time.monotonic()
        deadline = start + hard_timeout_seconds
        timed_out = False
        while True:
            try:
                process.wait(timeout=_POLL_INTERVAL_SECONDS)
                break
            except subprocess.TimeoutExpired:
                pass

            if stdout_drain.overflowed.is_set() or stderr_drain.overflowed.is_set():
                _terminate_process(process)
                stdout_drain.join(_READER_JOIN_SECONDS)
                stderr_drain.join(_READER_JOIN_SECONDS)
                raise OutputLimitExceededError(
                    f"{tool.value} output exceeded {self.max_output_bytes} bytes",
                    tool=tool.value,
                    limit_bytes=self.max_output_bytes,
                )

            if time.monotonic() >= deadline:
                ctx.log.warning("Hard deadline reached, terminating process")
                timed_out = True
                _terminate_process(process)
                break

        stdout_drain.join(_READER_JOIN_SECONDS)
        stderr_drain.join(_READER_JOIN_SECONDS)
        if stdout_drain.overflowed.is_set() or stderr_drain.overflowed.is_set():
            raise OutputLimitExceededError(
                f"{tool.value} output exceeded {self.max_output_bytes} bytes",
                tool=tool.value,
                limit_bytes=self.max_output_bytes,
            )

        return SupervisorOutcome(
            exit_code=TIMEOUT_EXIT_CODE if timed_out else process.returncode,
            timed_out=timed_out,
            stdout=stdout_drain.text(),
            stderr=stderr_drain.text(),
            elapsed_seconds=time.monotonic() - start,
        )


def build_agent_args(
    tool: AgentTool,
    agent_id: str,
    prompt_text: str,
    timeout_seconds: int,
) -> list[str]:
    """Render argv for ``<tool> agent``; the prompt stays a single argument."""

    return [
        tool.executable,
        "agent",
        "--json",
        "--timeout",
        str(timeout_seconds),
        "--agent",
        agent_id,
        "--session-id",
        str(uuid4()),
        "-m",
        prompt_text,
    ]


def _terminate_process(process: subprocess.Popen[bytes]) -> None:
    try:
        process.terminate()
    except OSError:
        return
    try:
        process.wait(timeout=_TERMINATE_WAIT_SECONDS)
    except subprocess.TimeoutExpired:
        try:
            process.kill()
        except OSError:
            return
        process.wait(timeout=_TERMINATE_WAIT_SECONDS)
