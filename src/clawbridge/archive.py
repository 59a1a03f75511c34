"""Local run artifacts, retention and avoid-list bookkeeping."""

from __future__ import annotations

import json
import os
import shutil
import time
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from uuid import uuid4

import yaml

from clawbridge.brief.models import ConnectionBrief
from clawbridge.brief.report import render_markdown
from clawbridge.context import RunContext

LATEST_JSON = "latest.json"
LATEST_REPORT = "latest.md"
RUN_PREFIX = "run-"


@dataclass(frozen=True, slots=True)
class ArchivedRun:
    json_path: Path
    report_path: Path


class RunArchiver:
    """Writes run artifacts into one output directory."""

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = output_dir

    def persist(self, brief: ConnectionBrief, *, ctx: RunContext | None = None) -> ArchivedRun:
        """Write ``run-<stamp>.json`` and ``.md``, then repoint the ``latest`` pair."""

        log = (ctx or RunContext()).for_stage("archive").log
        self.output_dir.mkdir(parents=True, exist_ok=True)
        stamp = sanitize_run_id(brief.run_id)
        json_path = self.output_dir / f"{RUN_PREFIX}{stamp}.json"
        report_path = self.output_dir / f"{RUN_PREFIX}{stamp}.md"

        _atomic_write_text(
            json_path,
            json.dumps(brief.to_dict(), indent=2, ensure_ascii=False) + "\n",
        )
        log.info("JSON output written: %s", json_path)
        _atomic_write_text(report_path, render_markdown(brief))
        log.info("Markdown report written: %s", report_path)

        _repoint(self.output_dir / LATEST_JSON, json_path)
        _repoint(self.output_dir / LATEST_REPORT, report_path)
        return ArchivedRun(json_path=json_path, report_path=report_path)

    def prune(self, keep: int, *, ctx: RunContext | None = None) -> list[Path]:
        """Delete all but the ``keep`` most recent runs; ``keep <= 0`` disables retention."""

        log = (ctx or RunContext()).for_stage("archive").log
        if keep <= 0 or not self.output_dir.exists():
            return []

        runs = sorted(
            self.output_dir.glob(f"{RUN_PREFIX}*.json"),
            key=lambda path: path.stat().st_mtime,
            reverse=True,
        )
        removed: list[Path] = []
        for json_path in reversed(runs[keep:]):
            report_path = json_path.with_suffix(".md")
            try:
                json_path.unlink()
                report_path.unlink(missing_ok=True)
            except OSError as error:
                log.warning("Failed to clean up %s: %s", json_path.name, error)
                continue
            log.debug("Cleaned up old run %s", json_path.name)
            removed.append(json_path)
        return removed


def update_avoid_list(
    brief: ConnectionBrief,
    config_path: Path,
    *,
    ctx: RunContext | None = None,
) -> int:
    """Append this run's candidate identifiers to ``constraints.avoid_list``.

    Returns the number of entries added. Failures are logged and reported as 0;
    the run's primary artifacts are already on disk by the time this runs.
    """

    log = (ctx or RunContext()).for_stage("avoid-list").log
    identifiers = [value for candidate in brief.candidates for value in candidate.identifiers()]
    if not identifiers:
        return 0

    try:
        raw = yaml.safe_load(config_path.read_text("utf-8")) or {}
        if not isinstance(raw, dict):
            log.warning("Config %s is not a mapping, avoid list left unchanged", config_path)
            return 0
        constraints = raw.get("constraints")
        if not isinstance(constraints, dict):
            constraints = {}
            raw["constraints"] = constraints
        existing = constraints.get("avoid_list")
        merged, added = merge_avoid_list(existing if isinstance(existing, list) else [], identifiers)
        if not added:
            log.info("Avoid list already up to date")
            return 0

        backup_path = config_path.with_name(
            f"{config_path.name}.backup.{int(time.time() * 1000)}",
        )
        shutil.copy2(config_path, backup_path)
        constraints["avoid_list"] = merged
        _atomic_write_text(
            config_path,
            yaml.safe_dump(raw, sort_keys=False, allow_unicode=True),
        )
    except (OSError, ValueError, yaml.YAMLError) as error:
        log.warning("Could not update avoid list in %s: %s", config_path, error)
        return 0

    log.info("Added %d entries to avoid list (backup: %s)", added, backup_path.name)
    return added


def merge_avoid_list(existing: list[Any], additions: Iterable[str]) -> tuple[list[Any], int]:
    """Case-insensitive union keeping first-seen casing and order."""

    merged = list(existing)
    seen = {str(item).strip().casefold() for item in existing}
    added = 0
    for value in additions:
        key = value.strip().casefold()
        if not key or key in seen:
            continue
        seen.add(key)
        merged.append(value.strip())
        added += 1
    return merged, added


def sanitize_run_id(run_id: str) -> str:
    return run_id.replace(":", "-").replace(".", "-")


def _atomic_write_text(path: Path, content: str) -> None:
    tmp_path = path.with_name(f".{path.name}.{uuid4().hex}.tmp")
    try:
        tmp_path.write_text(content, "utf-8")
        os.replace(tmp_path, path)
    finally:
        tmp_path.unlink(missing_ok=True)


def _repoint(link_path: Path, target: Path) -> None:
    """Swap ``link_path`` to ``target`` in one rename; copy when symlinks are unsupported."""

    tmp_path = link_path.with_name(f".{link_path.name}.{uuid4().hex}.tmp")
    try:
        try:
            os.symlink(target.name, tmp_path)
        except (OSError, NotImplementedError):
            shutil.copyfile(target, tmp_path)
        os.replace(tmp_path, link_path)
    finally:
        if tmp_path.is_symlink() or tmp_path.exists():
            tmp_path.unlink()
