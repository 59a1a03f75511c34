from __future__ import annotations

import allure
import pytest

from clawbridge.discovery.models import DEFAULT_TOOL_CHAIN, AgentTool
from clawbridge.discovery.tools import (
    parse_agent_list,
    probe_tools,
    resolve_default_agent,
    resolve_executable,
)
from clawbridge.errors import AgentNotConfiguredError, ToolUnavailableError

pytestmark = [
    allure.epic("Discovery"),
    allure.feature("Tool Probing"),
]


@pytest.mark.parametrize(
    ("stdout", "expected"),
    [
        ("Agents:\n- helper\n- main (default)\n", "main"),
        ("Agents:\n  - first.agent\n  - second\n", "first.agent"),
        ("No agents configured\n", None),
        ("", None),
    ],
)
def test_parse_agent_list_prefers_default(stdout: str, expected: str | None) -> None:
    assert parse_agent_list(stdout) == expected


def test_resolvers_find_fake_tool(fake_tool) -> None:
    launcher = fake_tool("clawdbot", "print('OK')\n", agents_output="- writer (default)\n")

    assert resolve_executable(AgentTool.CLAWDBOT) == str(launcher)
    assert resolve_default_agent(AgentTool.CLAWDBOT) == "writer"


def test_agent_list_failure_means_not_configured(fake_tool) -> None:
    fake_tool("openclaw", "print('OK')\n", agents_output="boom\n", agents_exit_code=2)

    with pytest.raises(AgentNotConfiguredError):
        resolve_default_agent(AgentTool.OPENCLAW)


def test_missing_tool_is_unavailable(tool_bin) -> None:
    with pytest.raises(ToolUnavailableError):
        resolve_executable(AgentTool.OPENCLAW)
    with pytest.raises(ToolUnavailableError):
        resolve_default_agent(AgentTool.OPENCLAW)


def test_probe_tools_reports_each_tool(fake_tool) -> None:
    fake_tool("openclaw", "print('OK')\n")

    probes = probe_tools(DEFAULT_TOOL_CHAIN)

    assert [probe.tool for probe in probes] == [AgentTool.OPENCLAW, AgentTool.CLAWDBOT]
    assert probes[0].ready is True
    assert probes[0].agent_id == "main"
    assert probes[1].ready is False
    assert probes[1].error is not None
