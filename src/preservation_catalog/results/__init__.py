"""Audit result ledger, codes, and reporters."""

from .codes import DB_UPDATED_CODES, TEMPLATES, ResultCode, extract_args, render, template_fields
from .ledger import AuditResults, Finding, is_status_changed_to_ok
from .reporters import BaseReporter, LoggerReporter, ResultsReporter, severity_for

__all__ = [
    "AuditResults",
    "BaseReporter",
    "DB_UPDATED_CODES",
    "Finding",
    "LoggerReporter",
    "ResultCode",
    "ResultsReporter",
    "TEMPLATES",
    "extract_args",
    "is_status_changed_to_ok",
    "render",
    "severity_for",
    "template_fields",
]
