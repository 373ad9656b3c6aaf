from uniguard.core.config import settings, get_settings, Settings
from uniguard.core.options import (
    GenerateOptions,
    Message,
    MessageRole,
    SecurityConfig,
    SecurityPreset,
    InputValidationConfig,
    RateLimitingConfig,
    ModerationConfig,
    PIIDetectionConfig,
)
from uniguard.core.presets import (
    SECURITY_PRESETS,
    get_preset,
    resolve_security_config,
)
from uniguard.core.results import (
    ValidationResult,
    RateLimitResult,
    PIIEntity,
    PIIDetectionResult,
    ModerationAction,
    ModerationResult,
    SecurityCheckResults,
)

__all__ = [
    "settings",
    "get_settings",
    "Settings",
    # Options
    "GenerateOptions",
    "Message",
    "MessageRole",
    "SecurityConfig",
    "SecurityPreset",
    "InputValidationConfig",
    "RateLimitingConfig",
    "ModerationConfig",
    "PIIDetectionConfig",
    # Presets
    "SECURITY_PRESETS",
    "get_preset",
    "resolve_security_config",
    # Results
    "ValidationResult",
    "RateLimitResult",
    "PIIEntity",
    "PIIDetectionResult",
    "ModerationAction",
    "ModerationResult",
    "SecurityCheckResults",
]
