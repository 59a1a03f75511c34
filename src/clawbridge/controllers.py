"""Controllers for clawbridge CLI commands."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from pathlib import Path

from clawbridge.brief.validator import DEFAULT_MIN_EVIDENCE, validate_payload
from clawbridge.config import Settings
from clawbridge.discovery.models import DEFAULT_TOOL_CHAIN, DiscoveryMode
from clawbridge.discovery.tools import probe_tools
from clawbridge.errors import ClawbridgeError, ConfigError
from clawbridge.failure_classifier import render_failure_block
from clawbridge.pipeline import RunOptions, RunPipeline

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RunCommand:
    """CLI input for one discovery run."""

    config_path: Path | None
    output_dir: Path | None
    timeout_seconds: int | None
    mode: DiscoveryMode
    upload: bool
    dry_run: bool


@dataclass(slots=True)
class ConfigCommand:
    """CLI input for commands that only need the config path."""

    config_path: Path | None


@dataclass(slots=True)
class CheckBriefCommand:
    path: Path
    min_evidence: int = DEFAULT_MIN_EVIDENCE


@dataclass(slots=True)
class CommandResult:
    """Lines to render in CLI plus overall status."""

    lines: list[str]
    success: bool


class RunnerCliController:
    """Coordinates config loading, the run pipeline and diagnostics."""

    def run(self, command: RunCommand) -> CommandResult:
        try:
            settings = Settings.from_file(command.config_path)
            if command.output_dir is not None:
                settings.output = replace(settings.output, dir=command.output_dir)
            outcome = RunPipeline(settings).run(
                RunOptions(
                    mode=command.mode,
                    upload=command.upload,
                    dry_run=command.dry_run,
                    timeout_seconds=command.timeout_seconds,
                ),
            )
        except (ClawbridgeError, ConfigError) as error:
            logger.error("Run failed: %s", error)
            return CommandResult(lines=render_failure_block(error), success=False)

        brief = outcome.brief
        lines = [
            f"Run {brief.run_id} completed: mode={command.mode.value} "
            f"candidates={len(brief.candidates)} "
            f"duration={brief.run_metadata.duration_seconds:.1f}s",
            f"Headline: {brief.summary.headline}",
            f"JSON: {outcome.archived.json_path}",
            f"Report: {outcome.archived.report_path}",
        ]
        if not outcome.completed:
            lines.append("Partial results (agent timed out)")
        if outcome.pruned:
            lines.append(f"Pruned {outcome.pruned} old run(s)")
        if outcome.avoid_list_added:
            lines.append(f"Avoid list: +{outcome.avoid_list_added} entries")
        if not outcome.validation.valid:
            lines.append(f"Validation: {len(outcome.validation.errors)} issue(s)")
            lines += [f"  {issue}" for issue in outcome.validation.errors]
        if outcome.receipt is not None:
            lines.append(f"Vault URL: {outcome.receipt.vault_url}")
        return CommandResult(lines=lines, success=True)

    def validate_config(self, command: ConfigCommand) -> CommandResult:
        try:
            settings = Settings.from_file(command.config_path)
        except ConfigError as error:
            return CommandResult(lines=[f"Configuration invalid: {error}"], success=False)
        return CommandResult(
            lines=[
                "Configuration is valid",
                f"Workspace ID: {settings.workspace_id}",
                f"Output dir: {settings.output.dir} (keep_runs={settings.output.keep_runs})",
            ],
            success=True,
        )

    def doctor(self, command: ConfigCommand) -> CommandResult:
        lines = ["Agent tools:"]
        probes = probe_tools(DEFAULT_TOOL_CHAIN)
        for probe in probes:
            lines.append(
                f"  tool={probe.tool.value} "
                f"available={'yes' if probe.executable_path else 'no'} "
                f"agent={probe.agent_id or '-'}"
                + (f" error={probe.error}" if probe.error else ""),
            )
        tools_ok = any(probe.ready for probe in probes)

        try:
            settings = Settings.from_file(command.config_path)
        except ConfigError as error:
            lines.append(f"Config: invalid ({error})")
            return CommandResult(lines=lines, success=False)

        vault = settings.vault
        lines += [
            f"Config: ok ({settings.source_path})",
            f"Vault: enabled={'yes' if vault.enabled else 'no'} url={vault.effective_url} "
            f"key={'set' if vault.workspace_key else 'missing'}",
        ]
        vault_ok = not vault.enabled or vault.workspace_key is not None
        lines.append(f"Doctor status: {'passed' if tools_ok and vault_ok else 'failed'}")
        return CommandResult(lines=lines, success=tools_ok and vault_ok)

    def check_brief(self, command: CheckBriefCommand) -> CommandResult:
        try:
            payload = json.loads(command.path.read_text("utf-8"))
        except (OSError, json.JSONDecodeError) as error:
            return CommandResult(lines=[f"Cannot read brief: {error}"], success=False)
        if not isinstance(payload, dict):
            return CommandResult(lines=["Brief must be a JSON object."], success=False)

        report = validate_payload(payload, min_evidence=command.min_evidence)
        if report.valid:
            return CommandResult(lines=["Validation passed"], success=True)
        return CommandResult(
            lines=[
                f"Validation failed with {len(report.errors)} error(s):",
                *(f"  {issue}" for issue in report.errors),
            ],
            success=False,
        )
