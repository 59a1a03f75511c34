"""Discovery job composition for smoke and real runs."""

from __future__ import annotations

from clawbridge.config import Settings
from clawbridge.discovery.models import DiscoveryJob, DiscoveryMode

SMOKE_SYSTEM_PROMPT = """\
You are a test agent. Your task is to verify the pipeline is working.

Do NOT perform any web_search or web_fetch.
Return ONLY this JSON (no markdown, no code fences):
{"status": "ok"}"""

SMOKE_USER_PROMPT = """\
This is a SMOKE TEST. Do NOT search the web.
Just return the minimal JSON specified in the system prompt."""

REAL_SYSTEM_PROMPT = """\
You are a connection discovery agent. Find potential business connection opportunities.

## Quality Requirements
- Find real people or companies with verifiable evidence.
- Focus on recent activity and intent signals (hiring, seeking partners, expanding).

## Time Management
- If you are running low on time, STOP searching and return what you have.
- Always return valid JSON, even with a single candidate.

## Output Format
Return ONLY valid JSON:
{
  "candidates": [
    {
      "name": "Full Name",
      "handle": "@handle",
      "role": "Job Title",
      "company": "Company Name",
      "why_match": ["reason 1"],
      "evidence_urls": ["url1", "url2"],
      "last_activity": "YYYY-MM-DD",
      "suggested_intro": "Personalized intro message",
      "scores": {"relevance": 0, "intent": 0, "credibility": 0,
                 "recency": 0, "engagement": 0, "final_score": 0}
    }
  ],
  "summary": {"headline": "", "key_insights": [], "venues_searched": []},
  "metadata": {"searches_performed": 0, "pages_fetched": 0,
               "candidates_evaluated": 0, "completed": true}
}

If you run out of time, set "completed": false in metadata and return whatever you have."""


def build_discovery_job(settings: Settings, mode: DiscoveryMode) -> DiscoveryJob:
    if mode is DiscoveryMode.SMOKE:
        return DiscoveryJob(
            system_prompt=SMOKE_SYSTEM_PROMPT,
            user_prompt=SMOKE_USER_PROMPT,
            mode=mode,
        )
    return DiscoveryJob(
        system_prompt=REAL_SYSTEM_PROMPT,
        user_prompt=build_user_prompt(settings),
        mode=mode,
    )


def build_user_prompt(settings: Settings) -> str:
    profile = settings.project_profile
    constraints = settings.constraints
    budget = settings.run_budget

    lines = [
        "## Project Profile",
        f"**What we offer:** {profile.offer}",
        f"**What we're looking for:** {profile.ask}",
        f"**Ideal persona:** {profile.ideal_persona}",
        f"**Target verticals:** {', '.join(profile.verticals)}",
    ]
    if profile.tone:
        lines.append(f"**Tone for messages:** {profile.tone}")
    if profile.disallowed:
        lines.append(f"**Do not contact:** {', '.join(profile.disallowed)}")

    lines += [
        "",
        "## Budget Limits",
        f"- Maximum searches: {budget.max_searches}",
        f"- Maximum page fetches: {budget.max_fetches}",
        f"- Target candidates: {constraints.top_k}",
        "",
        "## Quality Constraints",
        f"- Minimum evidence URLs per candidate: {constraints.min_evidence}",
        f"- Activity recency: within {constraints.recency_days} days",
    ]
    if constraints.regions:
        lines.append(f"- Target regions: {', '.join(constraints.regions)}")
    if constraints.avoid_list:
        lines.append(f"- Avoid: {', '.join(constraints.avoid_list)}")
    if constraints.no_spam_rules:
        lines.append(f"- Rules: {'; '.join(constraints.no_spam_rules)}")

    lines += [
        "",
        "## Your Task",
        f"Return the top {constraints.top_k} candidates with evidence, reasons, "
        "intro drafts and risk flags.",
        "Partial results are better than no results.",
    ]
    return "\n".join(lines)
