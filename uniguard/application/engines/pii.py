"""
PII Detection

Regex-based detection and redaction of common PII.
Patterns are applied in table order, each one independently over the
running redacted text.
"""

import re

from uniguard.core.results import PIIDetectionResult


# (name, pattern, replacement)
PII_PATTERNS = [
    ("SSN", r"\b\d{3}-\d{2}-\d{4}\b", "[SSN-REDACTED]"),
    ("Email", r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b", "[EMAIL-REDACTED]"),
    ("Phone", r"\b(\+\d{1,2}\s?)?\(?\d{3}\)?[\s.-]?\d{3}[\s.-]?\d{4}\b", "[PHONE-REDACTED]"),
    ("CreditCard", r"\b\d{4}[\s-]?\d{4}[\s-]?\d{4}[\s-]?\d{4}\b", "[CARD-REDACTED]"),
    ("IPAddress", r"\b(?:\d{1,3}\.){3}\d{1,3}\b", "[IP-REDACTED]"),
]

_COMPILED = [
    (name, re.compile(pattern), replacement)
    for name, pattern, replacement in PII_PATTERNS
]


def detect_pii(text: str) -> PIIDetectionResult:
    """Detect PII in text and return the redacted text."""
    detected: list[str] = []
    redacted = text

    for name, pattern, replacement in _COMPILED:
        if pattern.search(text):
            if name not in detected:
                detected.append(name)
            redacted = pattern.sub(replacement, redacted)

    return PIIDetectionResult(
        detected=len(detected) > 0,
        patterns=detected,
        redacted=redacted,
    )
