"""Validation and rule-consistency engine for client, worker and task records."""

from phaseguard.validation.engine import validate
from phaseguard.validation.summary import diff_findings, summarize

__all__ = ["validate", "summarize", "diff_findings"]
