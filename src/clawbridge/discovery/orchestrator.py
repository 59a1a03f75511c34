"""Serial fallback across agent tools for one discovery job."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace

from clawbridge.context import RunContext
from clawbridge.discovery import parser
from clawbridge.discovery.models import (
    DEFAULT_TOOL_CHAIN,
    AgentTool,
    DiscoveryJob,
    DiscoveryMode,
    DiscoveryResult,
)
from clawbridge.discovery.supervisor import ProcessSupervisor
from clawbridge.discovery.tools import resolve_default_agent, resolve_executable
from clawbridge.errors import NoToolAvailableError, ToolError

DEFAULT_TIMEOUT_SECONDS = 300


class DiscoveryOrchestrator:
    """Try each tool once, in order, until one yields a parseable result."""

    def __init__(
        self,
        *,
        supervisor: ProcessSupervisor | None = None,
        timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
        executable_resolver: Callable[[AgentTool], str] = resolve_executable,
        agent_resolver: Callable[[AgentTool], str] = resolve_default_agent,
    ) -> None:
        self._supervisor = supervisor or ProcessSupervisor()
        self._timeout_seconds = timeout_seconds
        self._resolve_executable = executable_resolver
        self._resolve_agent = agent_resolver

    def discover(
        self,
        job: DiscoveryJob,
        tool_chain: tuple[AgentTool, ...] = DEFAULT_TOOL_CHAIN,
        *,
        ctx: RunContext | None = None,
    ) -> DiscoveryResult:
        ctx = (ctx or RunContext()).for_stage("discovery")
        ctx.log.info(
            "Starting discovery: mode=%s timeout=%ss chain=%s",
            job.mode.value,
            self._timeout_seconds,
            ",".join(tool.value for tool in tool_chain),
        )

        failures: dict[str, str] = {}
        for tool in tool_chain:
            result = self._attempt(tool, job, failures=failures, ctx=ctx)
            if result is None:
                continue
            self._log_result(job, result, ctx=ctx)
            return result

        detail = "; ".join(f"{name}: {reason}" for name, reason in failures.items())
        raise NoToolAvailableError(
            f"No agent tool produced a usable result ({detail or 'empty tool chain'})",
            failures=failures,
        )

    def _attempt(
        self,
        tool: AgentTool,
        job: DiscoveryJob,
        *,
        failures: dict[str, str],
        ctx: RunContext,
    ) -> DiscoveryResult | None:
        try:
            self._resolve_executable(tool)
            agent_id = self._resolve_agent(tool)
            outcome = self._supervisor.run_outcome(
                tool,
                agent_id,
                job.message,
                self._timeout_seconds,
                ctx=ctx,
            )
        except ToolError as error:
            ctx.log.warning("%s unavailable, trying next tool: %s", tool.value, error)
            failures[tool.value] = str(error)
            return None

        result = parser.extract(outcome.stdout, source=tool, ctx=ctx)
        if result is None:
            ctx.log.warning("%s output was not a valid discovery payload", tool.value)
            failures[tool.value] = "not valid discovery JSON payload"
            return None

        if outcome.timed_out:
            result = replace(result, metadata=replace(result.metadata, completed=False))
        return result

    def _log_result(self, job: DiscoveryJob, result: DiscoveryResult, *, ctx: RunContext) -> None:
        source = result.source.value if result.source else "unknown"
        if job.mode is DiscoveryMode.SMOKE:
            ctx.log.info(
                "Smoke run succeeded via %s (ack=%s, candidates=%d)",
                source,
                result.smoke_ack,
                len(result.candidates),
            )
        elif not result.candidates:
            ctx.log.warning("%s returned a result with no candidates", source)
        else:
            ctx.log.info(
                "%s returned %d candidates (completed=%s)",
                source,
                len(result.candidates),
                result.metadata.completed,
            )
