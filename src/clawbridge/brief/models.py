"""Connection brief: the per-run result bundle shipped to vault and disk."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any

from clawbridge.discovery.models import Candidate, DiscoveryResult, DiscoverySummary

SKILL_VERSION = "1.0.0"

_REACH_OUT_THRESHOLD = 80.0
_RESEARCH_THRESHOLD = 60.0


@dataclass(frozen=True, slots=True)
class NextAction:
    candidate_handle: str
    action: str
    reason: str
    via: str | None = None
    priority: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "candidate_handle": self.candidate_handle,
            "action": self.action,
            "reason": self.reason,
        }
        if self.via is not None:
            payload["via"] = self.via
        if self.priority is not None:
            payload["priority"] = self.priority
        return payload


@dataclass(frozen=True, slots=True)
class RunMetadata:
    duration_seconds: float = 0.0
    searches_performed: int = 0
    pages_fetched: int = 0
    candidates_evaluated: int = 0
    skill_version: str = SKILL_VERSION

    def to_dict(self) -> dict[str, Any]:
        return {
            "duration_seconds": round(self.duration_seconds, 3),
            "searches_performed": self.searches_performed,
            "pages_fetched": self.pages_fetched,
            "candidates_evaluated": self.candidates_evaluated,
            "skill_version": self.skill_version,
        }


@dataclass(frozen=True, slots=True)
class ConnectionBrief:
    """Finalized result bundle for one run.

    Frozen: the only sanctioned change, backfilling the run duration, goes
    through `with_duration` and produces a new instance before persistence.
    """

    workspace_id: str
    run_id: str
    project_profile_hash: str
    run_metadata: RunMetadata
    candidates: tuple[Candidate, ...] = ()
    next_actions: tuple[NextAction, ...] = ()
    summary: DiscoverySummary = field(default_factory=DiscoverySummary)

    def with_duration(self, duration_seconds: float) -> ConnectionBrief:
        return replace(
            self,
            run_metadata=replace(self.run_metadata, duration_seconds=duration_seconds),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "workspace_id": self.workspace_id,
            "run_id": self.run_id,
            "project_profile_hash": self.project_profile_hash,
            "run_metadata": self.run_metadata.to_dict(),
            "candidates": [candidate.to_dict() for candidate in self.candidates],
            "next_actions": [action.to_dict() for action in self.next_actions],
            "summary": self.summary.to_dict(),
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> ConnectionBrief:
        metadata = raw.get("run_metadata") if isinstance(raw.get("run_metadata"), dict) else {}
        summary = raw.get("summary") if isinstance(raw.get("summary"), dict) else {}
        return cls(
            workspace_id=str(raw.get("workspace_id") or ""),
            run_id=str(raw.get("run_id") or ""),
            project_profile_hash=str(raw.get("project_profile_hash") or ""),
            run_metadata=RunMetadata(
                duration_seconds=float(metadata.get("duration_seconds", 0.0)),
                searches_performed=int(metadata.get("searches_performed", 0)),
                pages_fetched=int(metadata.get("pages_fetched", 0)),
                candidates_evaluated=int(metadata.get("candidates_evaluated", 0)),
                skill_version=str(metadata.get("skill_version", SKILL_VERSION)),
            ),
            candidates=tuple(
                Candidate.from_dict(item)
                for item in raw.get("candidates", [])
                if isinstance(item, dict)
            ),
            next_actions=tuple(
                NextAction(
                    candidate_handle=str(item.get("candidate_handle", "")),
                    action=str(item.get("action", "")),
                    reason=str(item.get("reason", "")),
                    via=item.get("via"),
                    priority=item.get("priority"),
                )
                for item in raw.get("next_actions", [])
                if isinstance(item, dict)
            ),
            summary=DiscoverySummary(
                headline=str(summary.get("headline", "")),
                key_insights=list(summary.get("key_insights", [])),
                venues_searched=list(summary.get("venues_searched", [])),
            ),
        )


def new_run_id(now: datetime | None = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. ``2026-02-03T21:00:00.123Z``."""

    moment = (now or datetime.now(tz=UTC)).astimezone(UTC)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def profile_hash(profile: dict[str, Any]) -> str:
    content = json.dumps(profile, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return f"sha256:{hashlib.sha256(content.encode('utf-8')).hexdigest()}"


def derive_next_actions(candidates: list[Candidate] | tuple[Candidate, ...]) -> tuple[NextAction, ...]:
    actions: list[NextAction] = []
    for candidate in candidates:
        handle = candidate.handle or candidate.name
        score = candidate.scores.final_score if candidate.scores is not None else None
        if score is not None and score >= _REACH_OUT_THRESHOLD:
            action, priority, reason = "reach_out", "high", "Strong match with high score"
        elif score is None or score >= _RESEARCH_THRESHOLD:
            action, priority, reason = "research_more", "medium", "Promising match, verify intent"
        else:
            action, priority, reason = "monitor", "low", "Weak signal, revisit later"
        actions.append(
            NextAction(candidate_handle=handle, action=action, reason=reason, priority=priority),
        )
    return tuple(actions)


def assemble_brief(
    *,
    result: DiscoveryResult,
    workspace_id: str,
    run_id: str,
    project_profile_hash: str,
) -> ConnectionBrief:
    """Build the run bundle from a normalized discovery result."""

    return ConnectionBrief(
        workspace_id=workspace_id,
        run_id=run_id,
        project_profile_hash=project_profile_hash,
        run_metadata=RunMetadata(
            searches_performed=result.metadata.searches_performed,
            pages_fetched=result.metadata.pages_fetched,
            candidates_evaluated=result.metadata.candidates_evaluated,
        ),
        candidates=tuple(result.candidates),
        next_actions=derive_next_actions(result.candidates),
        summary=result.summary,
    )


def sample_brief(*, workspace_id: str, run_id: str, project_profile_hash: str) -> ConnectionBrief:
    """Clearly labelled placeholder bundle for ``--dry-run``."""

    candidate = Candidate(
        name="Sample Candidate",
        handle="@sample_user",
        role="VP of Marketing",
        company="Example Corp",
        why_match=["Matches target persona", "Recent activity in target vertical"],
        evidence_urls=["https://example.com/profile", "https://example.com/posts"],
        suggested_intro="Hi [Name],\n\nI noticed your work on [topic]...",
        suggested_followup="Hi [Name],\n\nJust wanted to follow up...",
    )
    return ConnectionBrief(
        workspace_id=workspace_id,
        run_id=run_id,
        project_profile_hash=project_profile_hash,
        run_metadata=RunMetadata(),
        candidates=(candidate,),
        next_actions=derive_next_actions([candidate]),
        summary=DiscoverySummary(
            headline="Sample run completed - 1 candidate found",
            key_insights=["This is a sample/dry-run output"],
            venues_searched=[],
        ),
    )
