from __future__ import annotations

import json
from pathlib import Path

import allure
from click.testing import CliRunner

from clawbridge import __version__
from clawbridge.main import clawbridge
from tests.conftest import envelope, make_brief, make_candidate

pytestmark = [
    allure.epic("CLI"),
    allure.feature("Commands"),
]


def test_version_option() -> None:
    result = CliRunner().invoke(clawbridge, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_run_dry_run_writes_sample_files(config_file: Path, tmp_path: Path) -> None:
    output_dir = tmp_path / "runs"

    result = CliRunner().invoke(
        clawbridge,
        ["run", "-c", str(config_file), "-o", str(output_dir), "--dry-run"],
    )

    assert result.exit_code == 0, result.output
    assert "completed: mode=real candidates=1" in result.output
    assert "Headline: Sample run completed - 1 candidate found" in result.output
    assert (output_dir / "latest.json").exists()
    assert (output_dir / "latest.md").exists()


def test_run_smoke_with_fake_agent(config_file: Path, fake_tool) -> None:
    fake_tool("openclaw", f"print({envelope('OK')!r})\n")

    result = CliRunner().invoke(
        clawbridge,
        ["run", "-c", str(config_file), "--mode", "smoke", "--no-upload", "--timeout", "30"],
    )

    assert result.exit_code == 0, result.output
    assert "Headline: Smoke test passed" in result.output
    assert "candidates=0" in result.output


def test_run_without_agent_tools_prints_failure_block(config_file: Path, tool_bin: Path) -> None:
    result = CliRunner().invoke(clawbridge, ["run", "-c", str(config_file), "--no-upload"])

    assert result.exit_code == 1
    assert "❌ RUN FAILED" in result.output
    assert "REASON=agent_not_configured" in result.output


def test_run_with_missing_config_fails(tmp_path: Path) -> None:
    result = CliRunner().invoke(clawbridge, ["run", "-c", str(tmp_path / "missing.yml")])

    assert result.exit_code == 1
    assert "Config file not found" in result.output


def test_validate_config_reports_workspace(config_file: Path) -> None:
    result = CliRunner().invoke(clawbridge, ["validate-config", "-c", str(config_file)])

    assert result.exit_code == 0
    assert "Configuration is valid" in result.output
    assert "Workspace ID: ws_123" in result.output


def test_doctor_reports_tool_status(config_file: Path, fake_tool) -> None:
    fake_tool("openclaw", "print('OK')\n")

    result = CliRunner().invoke(clawbridge, ["doctor", "-c", str(config_file)])

    assert result.exit_code == 0, result.output
    assert "tool=openclaw available=yes agent=main" in result.output
    assert "tool=clawdbot available=no" in result.output
    assert "Doctor status: passed" in result.output


def test_doctor_fails_without_tools(config_file: Path, tool_bin: Path) -> None:
    result = CliRunner().invoke(clawbridge, ["doctor", "-c", str(config_file)])

    assert result.exit_code == 1
    assert "Doctor status: failed" in result.output


def test_check_brief_passes_valid_file(tmp_path: Path) -> None:
    path = tmp_path / "run.json"
    path.write_text(json.dumps(make_brief(make_candidate()).to_dict()), "utf-8")

    result = CliRunner().invoke(clawbridge, ["check-brief", str(path)])

    assert result.exit_code == 0
    assert "Validation passed" in result.output


def test_check_brief_lists_errors(tmp_path: Path) -> None:
    path = tmp_path / "run.json"
    path.write_text(json.dumps(make_brief(make_candidate(urls=2)).to_dict()), "utf-8")

    result = CliRunner().invoke(clawbridge, ["check-brief", str(path), "--min-evidence", "3"])

    assert result.exit_code == 1
    assert "Validation failed with 1 error(s):" in result.output
    assert "/candidates/@sarah_jenkins/evidence_urls" in result.output


def test_run_reports_partial_results_after_agent_timeout(
    config_file: Path,
    fake_tool,
    monkeypatch,
) -> None:
    monkeypatch.setenv("CLAWBRIDGE_GRACE_SECONDS", "0")
    fake_tool(
        "openclaw",
        """
        sys.stdout.write('{"candidates": [{"name": "Partial Person"}]}\\n')
        sys.stdout.flush()
        time.sleep(30)
        """,
    )

    result = CliRunner().invoke(
        clawbridge,
        ["run", "-c", str(config_file), "--no-upload", "--timeout", "1"],
    )

    assert result.exit_code == 0, result.output
    assert "candidates=1" in result.output
    assert "Partial results (agent timed out)" in result.output


def test_validate_config_rejects_non_numeric_values(config_file: Path) -> None:
    config_file.write_text(
        config_file.read_text("utf-8") + "output:\n  keep_runs: lots\n",
        "utf-8",
    )

    result = CliRunner().invoke(clawbridge, ["validate-config", "-c", str(config_file)])

    assert result.exit_code == 1
    assert "Configuration invalid: output.keep_runs must be an integer" in result.output
