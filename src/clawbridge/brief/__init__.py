"""Connection brief assembly, validation and rendering."""

from clawbridge.brief.models import ConnectionBrief, NextAction, RunMetadata
from clawbridge.brief.validator import ValidationIssue, ValidationReport, validate

__all__ = [
    "ConnectionBrief",
    "NextAction",
    "RunMetadata",
    "ValidationIssue",
    "ValidationReport",
    "validate",
]
