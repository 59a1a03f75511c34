"""Human-readable Markdown rendering of a connection brief."""

from __future__ import annotations

from datetime import datetime

from clawbridge import __version__
from clawbridge.brief.models import ConnectionBrief

_PRIORITY_MARKERS = {"high": "🟢", "medium": "🟡"}


def render_markdown(brief: ConnectionBrief) -> str:
    lines: list[str] = [
        "# Connection Brief",
        "",
        f"**Workspace:** {brief.workspace_id}  ",
        f"**Run Date:** {_format_run_date(brief.run_id)}  ",
        "",
        "---",
        "",
    ]

    summary = brief.summary
    lines += ["## Summary", "", f"**{summary.headline}**", ""]
    if summary.key_insights:
        lines.append("### Key Insights")
        lines += [f"- {insight}" for insight in summary.key_insights]
        lines.append("")
    if summary.venues_searched:
        lines += [f"**Venues Searched:** {', '.join(summary.venues_searched)}", ""]

    metadata = brief.run_metadata
    lines += [
        "### Run Statistics",
        f"- Duration: {metadata.duration_seconds:.1f}s",
        f"- Searches: {metadata.searches_performed}",
        f"- Pages fetched: {metadata.pages_fetched}",
        f"- Candidates evaluated: {metadata.candidates_evaluated}",
        "",
        "---",
        "",
        "## Top Candidates",
        "",
    ]

    if not brief.candidates:
        lines += ["*No candidates found matching criteria.*", ""]

    actions = {action.candidate_handle: action for action in brief.next_actions}
    for index, candidate in enumerate(brief.candidates, start=1):
        lines.append(f"### #{index}: {candidate.name}")
        if candidate.role and candidate.company:
            lines.append(f"**{candidate.role}** at **{candidate.company}**  ")
        if candidate.handle:
            lines.append(f"Handle: {candidate.handle}  ")
        if candidate.scores is not None:
            lines.append(f"Score: **{candidate.scores.final_score:.1f}** / 100")
        lines += ["", "#### Why This Match"]
        lines += [f"- ✅ {reason}" for reason in candidate.why_match]
        lines += ["", "#### Evidence"]
        lines += [f"- [{url}]({url})" for url in candidate.evidence_urls]
        lines.append("")
        if candidate.risk_flags:
            lines.append("#### Risk Flags")
            lines += [f"- ⚠️ {flag}" for flag in candidate.risk_flags]
            lines.append("")
        lines += ["#### Suggested Introduction", "```", candidate.suggested_intro, "```", ""]
        if candidate.suggested_followup:
            lines += ["#### Suggested Follow-up", "```", candidate.suggested_followup, "```", ""]

        action = actions.get(candidate.handle or candidate.name)
        if action is not None:
            marker = _PRIORITY_MARKERS.get(action.priority or "", "⚪")
            lines += [
                "#### Recommended Action",
                f"{marker} **{action.action.upper()}**",
                f"Reason: {action.reason}",
                "",
            ]
        lines += ["---", ""]

    lines += [
        "## Reminders",
        "",
        "⚠️ **Human Approval Required**  ",
        "All outreach drafts are suggestions only. Review and personalize before sending.",
        "",
        "⚠️ **No Auto-Send**  ",
        "This system does not automatically send messages.",
        "",
        "---",
        "",
        f"*Generated by clawbridge v{__version__}*",
        "",
    ]
    return "\n".join(lines)


def _format_run_date(run_id: str) -> str:
    try:
        moment = datetime.fromisoformat(run_id.replace("Z", "+00:00"))
    except ValueError:
        return run_id
    return moment.strftime("%Y-%m-%d %H:%M:%S %Z").strip()
