"""Domain models for discovery jobs and agent results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

SCORING_WEIGHTS: dict[str, float] = {
    "relevance": 0.30,
    "intent": 0.25,
    "credibility": 0.20,
    "recency": 0.15,
    "engagement": 0.10,
}

RISK_PENALTIES: dict[str, float] = {
    "low_evidence": -5,
    "spammy_language": -15,
    "unclear_identity": -10,
    "too_salesy": -10,
    "irrelevant": -20,
}

TOOL_CONSTRAINTS = """\
---
## HARD CONSTRAINTS (MUST FOLLOW)
- Use web_search as your PRIMARY tool. It works reliably.
- Use web_fetch only if available and needed for detail pages.
- Do NOT use browser automation.
- Avoid login-walled sources (LinkedIn, Facebook, etc.).
- If a tool is unavailable, work with what you have - do NOT fail.
- Return ONLY valid JSON. No markdown. No code fences. No commentary."""


class DiscoveryMode(str, Enum):
    """Run variant: smoke verifies the pipeline, real performs discovery."""

    SMOKE = "smoke"
    REAL = "real"


class AgentTool(str, Enum):
    """Interchangeable agent executables, in fallback priority order."""

    OPENCLAW = "openclaw"
    CLAWDBOT = "clawdbot"

    @property
    def executable(self) -> str:
        match self:
            case AgentTool.OPENCLAW:
                return "openclaw"
            case AgentTool.CLAWDBOT:
                return "clawdbot"


DEFAULT_TOOL_CHAIN: tuple[AgentTool, ...] = (AgentTool.OPENCLAW, AgentTool.CLAWDBOT)


@dataclass(frozen=True, slots=True)
class DiscoveryJob:
    """Prompt-and-mode package sent to one agent tool."""

    system_prompt: str
    user_prompt: str
    mode: DiscoveryMode

    @property
    def message(self) -> str:
        """Compose the single opaque prompt argument passed to the tool."""

        return f"{self.system_prompt}\n\n---\n\n{self.user_prompt}\n\n{TOOL_CONSTRAINTS}"


@dataclass(slots=True)
class CandidateScores:
    relevance: float = 0.0
    intent: float = 0.0
    credibility: float = 0.0
    recency: float = 0.0
    engagement: float = 0.0
    final_score: float = 0.0

    @classmethod
    def from_dict(cls, raw: dict[str, Any], risk_flags: list[str]) -> CandidateScores:
        parts = {name: _as_float(raw.get(name)) for name in SCORING_WEIGHTS}
        final_raw = raw.get("final_score")
        if isinstance(final_raw, (int, float)) and not isinstance(final_raw, bool):
            final = float(final_raw)
        else:
            final = weighted_score(parts, risk_flags)
        return cls(final_score=final, **parts)

    def to_dict(self) -> dict[str, float]:
        return {
            "relevance": self.relevance,
            "intent": self.intent,
            "credibility": self.credibility,
            "recency": self.recency,
            "engagement": self.engagement,
            "final_score": self.final_score,
        }


def weighted_score(parts: dict[str, float], risk_flags: list[str]) -> float:
    """Weighted sub-score sum with risk penalties, clamped to 0..100."""

    total = sum(parts.get(name, 0.0) * weight for name, weight in SCORING_WEIGHTS.items())
    total += sum(RISK_PENALTIES.get(flag, 0) for flag in risk_flags)
    return round(min(100.0, max(0.0, total)), 1)


@dataclass(slots=True)
class Candidate:
    """One discovered person or company with supporting evidence."""

    name: str
    why_match: list[str] = field(default_factory=list)
    evidence_urls: list[str] = field(default_factory=list)
    suggested_intro: str = ""
    handle: str | None = None
    role: str | None = None
    company: str | None = None
    risk_flags: list[str] = field(default_factory=list)
    scores: CandidateScores | None = None
    last_activity: str | None = None
    suggested_followup: str | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Candidate:
        risk_flags = _str_list(raw.get("risk_flags"))
        raw_scores = raw.get("scores")
        return cls(
            name=_as_str(raw.get("name")) or "Unknown",
            why_match=_str_list(raw.get("why_match")),
            evidence_urls=_str_list(raw.get("evidence_urls")),
            suggested_intro=_as_str(raw.get("suggested_intro")) or "",
            handle=_as_str(raw.get("handle")),
            role=_as_str(raw.get("role")),
            company=_as_str(raw.get("company")),
            risk_flags=risk_flags,
            scores=(
                CandidateScores.from_dict(raw_scores, risk_flags)
                if isinstance(raw_scores, dict)
                else None
            ),
            last_activity=_as_str(raw.get("last_activity")),
            suggested_followup=_as_str(raw.get("suggested_followup")),
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "name": self.name,
            "why_match": list(self.why_match),
            "evidence_urls": list(self.evidence_urls),
            "suggested_intro": self.suggested_intro,
            "risk_flags": list(self.risk_flags),
        }
        optional = {
            "handle": self.handle,
            "role": self.role,
            "company": self.company,
            "last_activity": self.last_activity,
            "suggested_followup": self.suggested_followup,
        }
        payload.update({key: value for key, value in optional.items() if value is not None})
        if self.scores is not None:
            payload["scores"] = self.scores.to_dict()
        return payload

    def identifiers(self) -> list[str]:
        """Name, company and handle values used for the avoid list."""

        return [value for value in (self.name, self.company, self.handle) if value]


@dataclass(slots=True)
class DiscoverySummary:
    headline: str = ""
    key_insights: list[str] = field(default_factory=list)
    venues_searched: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "headline": self.headline,
            "key_insights": list(self.key_insights),
            "venues_searched": list(self.venues_searched),
        }


@dataclass(slots=True)
class DiscoveryMetadata:
    searches_performed: int = 0
    pages_fetched: int = 0
    candidates_evaluated: int = 0
    completed: bool = True


@dataclass(slots=True)
class DiscoveryResult:
    """Normalized outcome of one successful tool attempt."""

    candidates: list[Candidate]
    summary: DiscoverySummary
    metadata: DiscoveryMetadata
    source: AgentTool | None = None
    smoke_ack: bool = False


def _as_str(value: object) -> str | None:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return None


def _as_float(value: object) -> float:
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    return 0.0


def _str_list(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]
