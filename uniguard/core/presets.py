"""
Security Presets

Named configurations for common use cases, and resolution of the
`security` field of a request into a full SecurityConfig.
"""

import re
from typing import Optional, Union

from uniguard.core.config import settings
from uniguard.core.options import (
    InputValidationConfig,
    ModerationConfig,
    PIIDetectionConfig,
    RateLimitingConfig,
    SecurityConfig,
    SecurityPreset,
)


SECURITY_PRESETS: dict[SecurityPreset, SecurityConfig] = {
    # Recommended for production: aggressive limits, redaction, blocking moderation
    SecurityPreset.STRICT: SecurityConfig(
        input_validation=InputValidationConfig(
            max_prompt_length=10000,
            max_messages_length=50,
            sanitize_inputs=True,
            blocked_patterns=[
                re.compile(r"ignore\s+previous\s+instructions", re.IGNORECASE),
                re.compile(r"ignore\s+all\s+previous", re.IGNORECASE),
                re.compile(r"disregard\s+previous", re.IGNORECASE),
                re.compile(r"system\s*:\s*you\s+are", re.IGNORECASE),
            ],
        ),
        rate_limiting=RateLimitingConfig(
            max_requests_per_minute=10,
            max_requests_per_hour=100,
        ),
        pii_detection=PIIDetectionConfig(enabled=True, redact=True),
        moderation=ModerationConfig(
            enabled=True,
            provider="openai",
            threshold="medium",
            on_violation="block",
        ),
    ),
    # Balanced default: PII is detected and rejected, moderation only warns
    SecurityPreset.MODERATE: SecurityConfig(
        input_validation=InputValidationConfig(
            max_prompt_length=50000,
            max_messages_length=100,
            sanitize_inputs=True,
        ),
        rate_limiting=RateLimitingConfig(
            max_requests_per_minute=30,
            max_requests_per_hour=500,
        ),
        pii_detection=PIIDetectionConfig(enabled=True, redact=False),
        moderation=ModerationConfig(
            enabled=True,
            provider="openai",
            threshold="medium",
            on_violation="warn",
        ),
    ),
    # Development/testing only
    SecurityPreset.PERMISSIVE: SecurityConfig(
        input_validation=InputValidationConfig(
            max_prompt_length=100000,
            max_messages_length=200,
            sanitize_inputs=False,
        ),
        rate_limiting=RateLimitingConfig(
            max_requests_per_minute=100,
            max_requests_per_hour=1000,
        ),
        pii_detection=PIIDetectionConfig(enabled=False),
        moderation=ModerationConfig(enabled=False),
    ),
}


def get_preset(preset: Union[SecurityPreset, str]) -> SecurityConfig:
    """Return a copy of a named preset."""
    return SECURITY_PRESETS[SecurityPreset(preset)].model_copy(deep=True)


def resolve_security_config(
    security: Optional[Union[SecurityPreset, str, SecurityConfig]],
) -> SecurityConfig:
    """
    Convert the `security` field of a request into a full config.

    - None: the configured default preset
    - preset name: that preset
    - inline config with `preset`: preset, overridden by the fields set inline
    - inline config without `preset`: used as given
    """
    if security is None:
        return get_preset(settings.default_security_preset)

    if isinstance(security, (SecurityPreset, str)):
        return get_preset(security)

    if security.preset is not None:
        base = get_preset(security.preset)
        overrides = {
            name: getattr(security, name) for name in security.model_fields_set
        }
        return base.model_copy(update=overrides)

    return security
