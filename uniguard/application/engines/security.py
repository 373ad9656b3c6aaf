"""
Built-in Security Middleware

Zero-configuration checks applied when no security plugins are registered:
- Input validation (length, message count, blocked patterns, sanitization)
- In-memory rate limiting
- PII detection, redacted or rejected depending on config

No moderation check exists on this path.
"""

import logging
from typing import Optional

from uniguard.core.options import GenerateOptions
from uniguard.core.presets import resolve_security_config
from uniguard.exceptions import PIIDetectedError
from .pii import detect_pii
from .rate_limiter import RateLimiter, check_rate_limit
from .validation import validate_input

logger = logging.getLogger(__name__)


def apply_security_middleware(
    options: GenerateOptions,
    user_id: Optional[str] = None,
    limiter: Optional[RateLimiter] = None,
) -> GenerateOptions:
    """
    Apply the built-in checks in order: validate, rate-limit, PII.

    `options` may be sanitized in place; the returned options carry any
    PII redaction.

    Raises:
        ValidationError, RateLimitError, PIIDetectedError
    """
    config = resolve_security_config(options.security)

    if config.input_validation:
        validate_input(options, config.input_validation)

    if config.rate_limiting:
        check_rate_limit(config.rate_limiting, user_id=user_id, limiter=limiter)

    if config.pii_detection and config.pii_detection.enabled:
        options = _apply_pii_detection(options, redact=config.pii_detection.redact)

    return options


def _apply_pii_detection(options: GenerateOptions, redact: bool) -> GenerateOptions:
    """Redact PII from every text field, or reject if redaction is disabled."""
    patterns: list[str] = []

    if options.prompt:
        result = detect_pii(options.prompt)
        if result.detected:
            patterns.extend(p for p in result.patterns if p not in patterns)
            options = options.model_copy(update={"prompt": result.redacted})

    if options.messages:
        messages = []
        for message in options.messages:
            if isinstance(message.content, str):
                result = detect_pii(message.content)
                if result.detected:
                    patterns.extend(p for p in result.patterns if p not in patterns)
                    message = message.model_copy(update={"content": result.redacted})
            messages.append(message)
        options = options.model_copy(update={"messages": messages})

    if patterns and not redact:
        raise PIIDetectedError("PII detected in prompt", patterns=patterns)

    if patterns:
        logger.info(f"Redacted PII from prompt: {', '.join(patterns)}")

    return options
