"""Shared test fixtures."""

from __future__ import annotations

import json
import os
import stat
import sys
import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest

from clawbridge.brief.models import ConnectionBrief, RunMetadata
from clawbridge.discovery.models import Candidate, DiscoverySummary

_FAKE_TOOL_PRELUDE = """
import json
import sys
import time

args = sys.argv[1:]
if args[:2] == ["agents", "list"]:
    sys.stdout.write({agents_output!r})
    raise SystemExit({agents_exit_code})
"""

FakeToolWriter = Callable[..., Path]


def write_fake_tool(
    bin_dir: Path,
    name: str,
    body: str,
    *,
    agents_output: str = "Agents:\n- main (default)\n- helper\n",
    agents_exit_code: int = 0,
) -> Path:
    """Write an executable ``name`` whose ``agent`` subcommand runs ``body``."""

    bin_dir.mkdir(parents=True, exist_ok=True)
    script = _FAKE_TOOL_PRELUDE.format(
        agents_output=agents_output,
        agents_exit_code=agents_exit_code,
    ) + textwrap.dedent(body)
    implementation = bin_dir / f"{name}_impl.py"
    implementation.write_text(script.strip() + "\n", "utf-8")

    if os.name == "nt":
        launcher = bin_dir / f"{name}.cmd"
        launcher.write_text(
            f'@echo off\r\n"{sys.executable}" "{implementation}" %*\r\n',
            "utf-8",
        )
        return launcher

    launcher = bin_dir / name
    launcher.write_text(
        f'#!/bin/sh\nexec "{sys.executable}" "{implementation}" "$@"\n',
        "utf-8",
    )
    launcher.chmod(launcher.stat().st_mode | stat.S_IXUSR)
    return launcher


@pytest.fixture()
def tool_bin(tmp_path: Path, monkeypatch) -> Path:
    """Empty bin dir that is the only entry on PATH."""

    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    monkeypatch.setenv("PATH", str(bin_dir))
    return bin_dir


@pytest.fixture()
def fake_tool(tool_bin: Path) -> FakeToolWriter:
    def _write(name: str, body: str, **kwargs) -> Path:
        return write_fake_tool(tool_bin, name, body, **kwargs)

    return _write


def envelope(*texts: str) -> str:
    """CLI JSON envelope with one payload per text."""

    return json.dumps({"result": {"payloads": [{"text": text} for text in texts]}})


def make_candidate(name: str = "Sarah Jenkins", *, urls: int = 2, **overrides) -> Candidate:
    fields = {
        "name": name,
        "handle": "@" + name.lower().replace(" ", "_"),
        "role": "Head of Growth",
        "company": "CloudScale AI",
        "why_match": ["Looking for content partners"],
        "evidence_urls": [f"https://example.com/{index}" for index in range(urls)],
        "suggested_intro": "Hi there",
    }
    fields.update(overrides)
    return Candidate(**fields)


def make_brief(*candidates: Candidate, **overrides) -> ConnectionBrief:
    fields = {
        "workspace_id": "ws_123",
        "run_id": "2026-02-03T21:00:00.000Z",
        "project_profile_hash": "sha256:abc",
        "run_metadata": RunMetadata(searches_performed=3, pages_fetched=5, candidates_evaluated=2),
        "candidates": tuple(candidates),
        "summary": DiscoverySummary(headline="Found 1 candidates"),
    }
    fields.update(overrides)
    return ConnectionBrief(**fields)


CONFIG_YAML = """\
workspace_id: ws_123
project_profile:
  offer: We help B2B SaaS companies automate content operations
  ask: Marketing partners
  ideal_persona: VP Marketing at Series A-C startups
  verticals:
    - B2B SaaS
    - content marketing
constraints:
  avoid_list:
    - Acme Corp
vault:
  enabled: false
"""


@pytest.fixture()
def config_file(tmp_path: Path, monkeypatch) -> Path:
    for name in (
        "CLAWBRIDGE_WORKSPACE_KEY",
        "CLAWBRIDGE_WORKSPACE_TOKEN",
        "CLAWBRIDGE_OUTPUT_DIR",
        "CLAWBRIDGE_KEEP_RUNS",
        "CLAWBRIDGE_MIN_EVIDENCE",
        "CLAWBRIDGE_VAULT_URL",
        "CLAWBRIDGE_TIMEOUT_SECONDS",
        "CLAWBRIDGE_GRACE_SECONDS",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("CLAWBRIDGE_HOME", str(tmp_path / "home"))
    path = tmp_path / "config.yml"
    path.write_text(CONFIG_YAML, "utf-8")
    return path
