"""Validation gate for connection briefs before any network upload."""

from __future__ import annotations

import json
from dataclasses import dataclass
from functools import lru_cache
from importlib import resources
from typing import Any

from jsonschema import Draft202012Validator

from clawbridge.brief.models import ConnectionBrief

DEFAULT_MIN_EVIDENCE = 2
SCHEMA_RESOURCE = "connection_brief.schema.json"


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


@dataclass(frozen=True, slots=True)
class ValidationReport:
    """Outcome of validation; ``errors`` is empty when ``valid``."""

    valid: bool
    errors: tuple[ValidationIssue, ...]


def validate(brief: ConnectionBrief, *, min_evidence: int = DEFAULT_MIN_EVIDENCE) -> ValidationReport:
    """Schema check, then hard business rules. Pure and idempotent."""

    return validate_payload(brief.to_dict(), min_evidence=min_evidence)


def validate_payload(
    payload: dict[str, Any],
    *,
    min_evidence: int = DEFAULT_MIN_EVIDENCE,
) -> ValidationReport:
    schema_issues = _schema_issues(payload)
    if schema_issues:
        return ValidationReport(valid=False, errors=schema_issues)

    issues = _hard_rule_issues(payload, min_evidence=min_evidence)
    return ValidationReport(valid=not issues, errors=issues)


@lru_cache(maxsize=1)
def _validator() -> Draft202012Validator:
    schema_text = resources.files("clawbridge.resources").joinpath(SCHEMA_RESOURCE).read_text("utf-8")
    schema = json.loads(schema_text)
    Draft202012Validator.check_schema(schema)
    return Draft202012Validator(schema)


def _schema_issues(payload: dict[str, Any]) -> tuple[ValidationIssue, ...]:
    issues = [
        ValidationIssue(
            path="/" + "/".join(str(part) for part in error.absolute_path),
            message=error.message,
        )
        for error in _validator().iter_errors(payload)
    ]
    return tuple(sorted(issues, key=lambda issue: (issue.path, issue.message)))


def _hard_rule_issues(payload: dict[str, Any], *, min_evidence: int) -> tuple[ValidationIssue, ...]:
    issues: list[ValidationIssue] = []

    for index, candidate in enumerate(payload.get("candidates", [])):
        urls = candidate.get("evidence_urls") or []
        if len(urls) < min_evidence:
            label = candidate.get("handle") or candidate.get("name") or str(index)
            issues.append(
                ValidationIssue(
                    path=f"/candidates/{label}/evidence_urls",
                    message=(
                        f'Candidate "{candidate.get("name", "")}" has fewer than {min_evidence} '
                        f"evidence URLs (required: {min_evidence}, found: {len(urls)})"
                    ),
                ),
            )

    for key in ("workspace_id", "run_id", "project_profile_hash"):
        value = payload.get(key)
        if not isinstance(value, str) or not value.strip():
            issues.append(ValidationIssue(path=f"/{key}", message=f"{key} is required"))

    return tuple(issues)
