"""Best-effort recovery of a discovery payload from agent CLI stdout."""

from __future__ import annotations

import json
import re
from collections.abc import Callable
from typing import Any

from clawbridge.context import RunContext
from clawbridge.discovery.models import (
    AgentTool,
    Candidate,
    DiscoveryMetadata,
    DiscoveryResult,
    DiscoverySummary,
)

SMOKE_HEADLINE = "Smoke test passed"
SMOKE_INSIGHT = "Pipeline verified"
MARKER_FIELD = "candidates"
_MAX_ENCLOSING_SPANS = 32

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL | re.IGNORECASE)
_MARKER_KEY = re.compile(rf'"{MARKER_FIELD}"\s*:')

TextStrategy = Callable[[str], dict[str, Any] | None]


def extract(
    raw_text: str,
    *,
    source: AgentTool | None = None,
    ctx: RunContext | None = None,
) -> DiscoveryResult | None:
    """Turn raw tool stdout into a `DiscoveryResult`; ``None`` means try another tool."""

    log = (ctx or RunContext()).for_stage("parser").log
    text = raw_text.strip()
    if not text:
        log.warning("Empty tool output")
        return None

    envelope = _try_load_dict(text)
    if envelope is not None and envelope.get("status") == "error":
        log.warning("Agent returned error status: %s", envelope.get("summary"))
        return None

    answer = extract_payload_text(envelope) if envelope is not None else text
    if not answer:
        log.warning("No text found in payloads")
        return None

    if is_smoke_acknowledgment_text(answer):
        log.info("Smoke test response received")
        return smoke_result(source)

    payload = parse_answer(answer)
    if payload is None:
        log.warning(
            "Could not parse JSON from agent text (length=%d): %s",
            len(answer),
            answer[:500],
        )
        return None

    if not isinstance(payload.get(MARKER_FIELD), list):
        if str(payload.get("status", "")).lower() == "ok":
            log.info("Smoke test response received")
            return smoke_result(source)
        log.warning("No candidates array in response")
        return None

    return normalize_payload(payload, source=source)


def extract_payload_text(envelope: dict[str, Any]) -> str:
    """Return the last non-empty ``text`` among envelope payloads."""

    result = envelope.get("result")
    payloads: object = None
    if isinstance(result, dict):
        payloads = result.get("payloads")
    if payloads is None:
        payloads = envelope.get("payloads")
    if not isinstance(payloads, list):
        # A bare discovery payload printed without the CLI envelope.
        return json.dumps(envelope) if MARKER_FIELD in envelope or "status" in envelope else ""

    for item in reversed(payloads):
        if not isinstance(item, dict):
            continue
        text = item.get("text")
        if isinstance(text, str) and text.strip():
            return text.strip()
    return ""


def parse_answer(text: str) -> dict[str, Any] | None:
    """Run text strategies in order and return the first JSON object found."""

    for strategy in TEXT_STRATEGIES:
        payload = strategy(text)
        if payload is not None:
            return payload
    return None


def parse_direct(text: str) -> dict[str, Any] | None:
    return _try_load_dict(text.strip())


def parse_fenced_block(text: str) -> dict[str, Any] | None:
    match = _FENCED_BLOCK.search(text)
    if match is None:
        return None
    return _try_load_dict(match.group(1))


def parse_marker_span(text: str) -> dict[str, Any] | None:
    """Parse the smallest balanced ``{...}`` span that carries the marker key."""

    for marker in _MARKER_KEY.finditer(text):
        start = text.rfind("{", 0, marker.start())
        for _ in range(_MAX_ENCLOSING_SPANS):
            if start == -1:
                break
            end = _matching_brace(text, start)
            if end is None:
                # Every brace further out encloses this one, so none can close either.
                break
            if end > marker.start():
                payload = _try_load_dict(text[start : end + 1])
                if payload is not None and MARKER_FIELD in payload:
                    return payload
            start = text.rfind("{", 0, start)
    return None


TEXT_STRATEGIES: tuple[TextStrategy, ...] = (
    parse_direct,
    parse_fenced_block,
    parse_marker_span,
)


def is_smoke_acknowledgment_text(text: str) -> bool:
    return text.strip().strip(".!").upper() == "OK"


def smoke_result(source: AgentTool | None) -> DiscoveryResult:
    return DiscoveryResult(
        candidates=[],
        summary=DiscoverySummary(
            headline=SMOKE_HEADLINE,
            key_insights=[SMOKE_INSIGHT],
            venues_searched=[],
        ),
        metadata=DiscoveryMetadata(completed=True),
        source=source,
        smoke_ack=True,
    )


def normalize_payload(payload: dict[str, Any], *, source: AgentTool | None) -> DiscoveryResult:
    """Fill defaults for any field the agent left out."""

    candidates = [
        Candidate.from_dict(item) for item in payload.get(MARKER_FIELD, []) if isinstance(item, dict)
    ]
    summary_raw = payload.get("summary")
    summary = summary_raw if isinstance(summary_raw, dict) else {}
    metadata_raw = payload.get("metadata")
    metadata = metadata_raw if isinstance(metadata_raw, dict) else {}

    headline = summary.get("headline")
    completed = metadata.get("completed")
    return DiscoveryResult(
        candidates=candidates,
        summary=DiscoverySummary(
            headline=(
                headline.strip()
                if isinstance(headline, str) and headline.strip()
                else f"Found {len(candidates)} candidates"
            ),
            key_insights=_str_list(summary.get("key_insights")),
            venues_searched=_str_list(summary.get("venues_searched")),
        ),
        metadata=DiscoveryMetadata(
            searches_performed=_as_int(metadata.get("searches_performed")),
            pages_fetched=_as_int(metadata.get("pages_fetched")),
            candidates_evaluated=len(candidates),
            completed=completed if isinstance(completed, bool) else True,
        ),
        source=source,
    )


def _matching_brace(text: str, start: int) -> int | None:
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
    return None


def _try_load_dict(raw: str) -> dict[str, Any] | None:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return None
    if not isinstance(parsed, dict):
        return None
    return parsed


def _as_int(value: object) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    return 0


def _str_list(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]
