"""Discovery of installed agent tools and their default agent ids."""

from __future__ import annotations

import re
import shutil
import subprocess
from dataclasses import dataclass

from clawbridge.discovery.models import AgentTool
from clawbridge.errors import AgentNotConfiguredError, ToolUnavailableError

AGENTS_LIST_TIMEOUT_SECONDS = 10

_DEFAULT_AGENT = re.compile(r"^\s*-\s+([\w.-]+)\s+\(default\)", re.MULTILINE)
_ANY_AGENT = re.compile(r"^\s*-\s+([\w.-]+)", re.MULTILINE)


@dataclass(slots=True)
class ToolProbe:
    """Availability snapshot for one agent tool."""

    tool: AgentTool
    executable_path: str | None
    agent_id: str | None
    error: str | None = None

    @property
    def ready(self) -> bool:
        return self.executable_path is not None and self.agent_id is not None


def resolve_executable(tool: AgentTool) -> str:
    path = shutil.which(tool.executable)
    if path is None:
        raise ToolUnavailableError(
            f"Executable not found in PATH: {tool.executable}",
            tool=tool.value,
        )
    return path


def resolve_default_agent(tool: AgentTool) -> str:
    """Ask ``<tool> agents list`` for the default agent id."""

    try:
        completed = subprocess.run(  # noqa: S603
            [tool.executable, "agents", "list"],
            capture_output=True,
            text=True,
            timeout=AGENTS_LIST_TIMEOUT_SECONDS,
            check=False,
        )
    except FileNotFoundError as error:
        raise ToolUnavailableError(
            f"Executable not found in PATH: {tool.executable}",
            tool=tool.value,
        ) from error
    except (OSError, subprocess.TimeoutExpired) as error:
        raise AgentNotConfiguredError(
            f"No default agent configured for {tool.value}: {error}",
            tool=tool.value,
        ) from error

    agent_id = parse_agent_list(completed.stdout)
    if completed.returncode != 0 or agent_id is None:
        raise AgentNotConfiguredError(
            f"No default agent configured for {tool.value}",
            tool=tool.value,
        )
    return agent_id


def parse_agent_list(stdout: str) -> str | None:
    match = _DEFAULT_AGENT.search(stdout) or _ANY_AGENT.search(stdout)
    return match.group(1) if match else None


def probe_tools(chain: tuple[AgentTool, ...]) -> list[ToolProbe]:
    """Report which tools are installed and configured, without running discovery."""

    probes: list[ToolProbe] = []
    for tool in chain:
        try:
            path = resolve_executable(tool)
        except ToolUnavailableError as error:
            probes.append(ToolProbe(tool=tool, executable_path=None, agent_id=None, error=str(error)))
            continue
        try:
            agent_id = resolve_default_agent(tool)
        except (ToolUnavailableError, AgentNotConfiguredError) as error:
            probes.append(ToolProbe(tool=tool, executable_path=path, agent_id=None, error=str(error)))
            continue
        probes.append(ToolProbe(tool=tool, executable_path=path, agent_id=agent_id))
    return probes
