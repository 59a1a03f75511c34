from __future__ import annotations

import re
from datetime import UTC, datetime

import allure
import pytest

from clawbridge import __version__
from clawbridge.brief.models import (
    ConnectionBrief,
    assemble_brief,
    derive_next_actions,
    new_run_id,
    profile_hash,
    sample_brief,
)
from clawbridge.brief.report import render_markdown
from clawbridge.discovery.models import (
    CandidateScores,
    DiscoveryMetadata,
    DiscoveryResult,
    DiscoverySummary,
)
from tests.conftest import make_brief, make_candidate

pytestmark = [
    allure.epic("Connection Brief"),
    allure.feature("Assembly and Rendering"),
]


def test_run_id_is_iso_utc_with_milliseconds() -> None:
    run_id = new_run_id(datetime(2026, 2, 3, 21, 0, 0, 123456, tzinfo=UTC))

    assert run_id == "2026-02-03T21:00:00.123Z"
    assert re.fullmatch(r"\d{4}-\d\d-\d\dT\d\d:\d\d:\d\d\.\d{3}Z", new_run_id())


def test_profile_hash_ignores_key_order() -> None:
    first = profile_hash({"offer": "a", "verticals": ["x"]})
    second = profile_hash({"verticals": ["x"], "offer": "a"})

    assert first == second
    assert first.startswith("sha256:")
    assert len(first) == len("sha256:") + 64
    assert profile_hash({"offer": "b", "verticals": ["x"]}) != first


@pytest.mark.parametrize(
    ("score", "action", "priority"),
    [
        (92.0, "reach_out", "high"),
        (80.0, "reach_out", "high"),
        (79.9, "research_more", "medium"),
        (60.0, "research_more", "medium"),
        (59.9, "monitor", "low"),
        (None, "research_more", "medium"),
    ],
)
def test_next_action_follows_score_thresholds(score, action, priority) -> None:
    scores = CandidateScores(final_score=score) if score is not None else None
    candidate = make_candidate(scores=scores)

    (next_action,) = derive_next_actions([candidate])

    assert next_action.action == action
    assert next_action.priority == priority
    assert next_action.candidate_handle == candidate.handle


def test_next_action_falls_back_to_name_without_handle() -> None:
    (next_action,) = derive_next_actions([make_candidate("No Handle", handle=None)])

    assert next_action.candidate_handle == "No Handle"


def test_assemble_brief_copies_result_fields() -> None:
    candidate = make_candidate()
    result = DiscoveryResult(
        candidates=[candidate],
        summary=DiscoverySummary(headline="One found"),
        metadata=DiscoveryMetadata(searches_performed=7, pages_fetched=3, candidates_evaluated=1),
    )

    brief = assemble_brief(
        result=result,
        workspace_id="ws_1",
        run_id="2026-01-01T00:00:00.000Z",
        project_profile_hash="sha256:x",
    )

    assert brief.candidates == (candidate,)
    assert brief.run_metadata.searches_performed == 7
    assert brief.run_metadata.pages_fetched == 3
    assert brief.run_metadata.duration_seconds == 0.0
    assert len(brief.next_actions) == 1
    assert brief.summary.headline == "One found"


def test_with_duration_returns_new_frozen_instance() -> None:
    brief = make_brief(make_candidate())

    updated = brief.with_duration(12.5)

    assert updated.run_metadata.duration_seconds == 12.5
    assert brief.run_metadata.duration_seconds == 0.0
    with pytest.raises(AttributeError):
        updated.run_id = "other"  # type: ignore[misc]


def test_from_dict_restores_serialized_brief() -> None:
    candidate = make_candidate(scores=CandidateScores(final_score=88.0))
    brief = make_brief(candidate, next_actions=derive_next_actions([candidate]))

    restored = ConnectionBrief.from_dict(brief.to_dict())

    assert restored.to_dict() == brief.to_dict()


def test_sample_brief_is_labelled_and_valid_shape() -> None:
    brief = sample_brief(workspace_id="ws", run_id="r", project_profile_hash="sha256:p")

    assert brief.summary.headline.startswith("Sample run")
    assert brief.summary.key_insights == ["This is a sample/dry-run output"]
    assert len(brief.candidates) == 1
    assert len(brief.candidates[0].evidence_urls) == 2


def test_markdown_report_lists_candidates_and_footer() -> None:
    candidate = make_candidate(
        risk_flags=["too_salesy"],
        scores=CandidateScores(final_score=85.0),
    )
    brief = make_brief(candidate, next_actions=derive_next_actions([candidate]))

    report = render_markdown(brief)

    assert report.startswith("# Connection Brief\n")
    assert "**Workspace:** ws_123" in report
    assert "### #1: Sarah Jenkins" in report
    assert "**Head of Growth** at **CloudScale AI**" in report
    assert "Score: **85.0** / 100" in report
    assert "- ⚠️ too_salesy" in report
    assert "🟢 **REACH_OUT**" in report
    assert report.rstrip().endswith(f"*Generated by clawbridge v{__version__}*")


def test_markdown_report_for_empty_run() -> None:
    report = render_markdown(make_brief())

    assert "*No candidates found matching criteria.*" in report
