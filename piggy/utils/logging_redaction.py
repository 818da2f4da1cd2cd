"""
Logging redaction helpers.
Masks UPI references and credentials in log messages.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable


_PATTERNS: Iterable[tuple[re.Pattern, str]] = (
    # UPI reference ids: UPI<alnum>, keep a short prefix for correlation
    (re.compile(r"\b(UPI[A-Z0-9]{2})[A-Z0-9]{4,}\b"), r"\1****"),
    # VPA handles: name@bank
    (re.compile(r"\b[\w.\-]{2,}@(ok)?[a-z]{3,}\b"), "[VPA REDACTED]"),
    # Authorization: Bearer <token>
    (re.compile(r"(Bearer\s+)([A-Za-z0-9\-\._]+)"), r"\1[REDACTED]"),
    # Generic secrets in key/value form
    (re.compile(r"(?i)(key[_-]?secret|api[_-]?key|password|token)\s*[:=]\s*([^\s,;]+)"), r"\1=[REDACTED]"),
)


def redact_message(message: str) -> str:
    redacted = message
    for pattern, replacement in _PATTERNS:
        redacted = pattern.sub(replacement, redacted)
    return redacted


class RedactingFilter(logging.Filter):
    """Filter that redacts sensitive data from log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            # Malformed format args; let the handler report it
            return True
        record.msg = redact_message(message)
        record.args = ()
        return True


def install_redaction_filter() -> None:
    """Attach the filter to the root logger and its handlers (idempotent)."""
    root = logging.getLogger()
    targets = [root, *root.handlers]
    for target in targets:
        if any(isinstance(existing, RedactingFilter) for existing in target.filters):
            continue
        target.addFilter(RedactingFilter())
