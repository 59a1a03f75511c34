from __future__ import annotations

import json

import allure
import pytest

from clawbridge.discovery.models import AgentTool
from clawbridge.discovery.supervisor import (
    TIMEOUT_EXIT_CODE,
    ProcessSupervisor,
    build_agent_args,
)
from clawbridge.errors import (
    OutputLimitExceededError,
    ToolTimeoutNoOutputError,
    ToolUnavailableError,
)

pytestmark = [
    allure.epic("Discovery"),
    allure.feature("Process Supervisor"),
]


def test_build_agent_args_keeps_prompt_as_single_argument() -> None:
    prompt = 'line one\n"quoted" $HOME; rm -rf / && echo `x`'
    args = build_agent_args(AgentTool.CLAWDBOT, "main", prompt, 120)

    assert args[:7] == ["clawdbot", "agent", "--json", "--timeout", "120", "--agent", "main"]
    assert args[7] == "--session-id"
    assert args[-2:] == ["-m", prompt]
    assert len(args) == 11


def test_run_returns_stdout_of_clean_exit(fake_tool) -> None:
    fake_tool(
        "openclaw",
        """
        prompt = args[args.index("-m") + 1]
        print(json.dumps({"argv": args, "prompt": prompt}))
        """,
    )

    stdout = ProcessSupervisor().run(AgentTool.OPENCLAW, "main", "find people\nnow", 30)

    payload = json.loads(stdout)
    assert payload["prompt"] == "find people\nnow"
    assert payload["argv"][:5] == ["agent", "--json", "--timeout", "30", "--agent"]


def test_nonzero_exit_with_stdout_is_salvaged(fake_tool) -> None:
    fake_tool(
        "openclaw",
        """
        print('{"candidates": []}')
        sys.stderr.write("model crashed\\n")
        raise SystemExit(3)
        """,
    )

    outcome = ProcessSupervisor().run_outcome(AgentTool.OPENCLAW, "main", "hi", 30)

    assert outcome.exit_code == 3
    assert not outcome.timed_out
    assert not outcome.clean
    assert outcome.stdout.strip() == '{"candidates": []}'
    assert "model crashed" in outcome.stderr


def test_nonzero_exit_without_stdout_raises(fake_tool) -> None:
    fake_tool(
        "openclaw",
        """
        sys.stderr.write("no model configured\\n")
        raise SystemExit(2)
        """,
    )

    with pytest.raises(ToolTimeoutNoOutputError) as exc_info:
        ProcessSupervisor().run(AgentTool.OPENCLAW, "main", "hi", 30)

    assert exc_info.value.exit_code == 2
    assert exc_info.value.timed_out is False
    assert exc_info.value.transient is True
    assert "no model configured" in exc_info.value.stderr_preview


def test_hard_deadline_kills_process_and_salvages_partial_stdout(fake_tool) -> None:
    fake_tool(
        "openclaw",
        """
        sys.stdout.write('{"candidates": [{"name": "Partial"}]}\\n')
        sys.stdout.flush()
        time.sleep(30)
        """,
    )

    supervisor = ProcessSupervisor(grace_seconds=0)
    outcome = supervisor.run_outcome(AgentTool.OPENCLAW, "main", "hi", 1)

    assert outcome.timed_out is True
    assert outcome.exit_code == TIMEOUT_EXIT_CODE
    assert "Partial" in outcome.stdout
    assert outcome.elapsed_seconds < 10


def test_hard_deadline_without_output_raises_timed_out(fake_tool) -> None:
    fake_tool("openclaw", "time.sleep(30)\n")

    with pytest.raises(ToolTimeoutNoOutputError) as exc_info:
        ProcessSupervisor(grace_seconds=0).run(AgentTool.OPENCLAW, "main", "hi", 1)

    assert exc_info.value.timed_out is True
    assert exc_info.value.exit_code == TIMEOUT_EXIT_CODE


def test_missing_executable_raises_tool_unavailable(tool_bin) -> None:
    with pytest.raises(ToolUnavailableError) as exc_info:
        ProcessSupervisor().run(AgentTool.CLAWDBOT, "main", "hi", 5)

    assert exc_info.value.tool == "clawdbot"
    assert exc_info.value.transient is False


def test_output_beyond_limit_is_an_error(fake_tool) -> None:
    fake_tool(
        "openclaw",
        """
        sys.stdout.write("x" * 200000)
        sys.stdout.flush()
        time.sleep(30)
        """,
    )

    supervisor = ProcessSupervisor(max_output_bytes=1024)
    with pytest.raises(OutputLimitExceededError) as exc_info:
        supervisor.run(AgentTool.OPENCLAW, "main", "hi", 30)

    assert exc_info.value.limit_bytes == 1024


def test_large_stderr_does_not_stall_stdout(fake_tool) -> None:
    fake_tool(
        "openclaw",
        """
        sys.stderr.write("warning line\\n" * 100000)
        sys.stderr.flush()
        print("OK")
        """,
    )

    stdout = ProcessSupervisor().run(AgentTool.OPENCLAW, "main", "hi", 30)

    assert stdout.strip() == "OK"
