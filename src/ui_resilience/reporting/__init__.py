"""
Consent-aware, privacy-preserving failure reporting.
"""

from .error_reporter import ErrorReporter
from .sanitizer import (
    hash_identifier,
    sanitize_metadata,
    sanitize_report,
    sanitize_stack,
    sanitize_url,
    scrub_text,
)
from .sinks import HttpReportSink, MemorySink

__all__ = [
    "ErrorReporter",
    "hash_identifier",
    "sanitize_metadata",
    "sanitize_report",
    "sanitize_stack",
    "sanitize_url",
    "scrub_text",
    "HttpReportSink",
    "MemorySink",
]
