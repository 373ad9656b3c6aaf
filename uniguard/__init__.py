"""uniguard - plugin-driven security pipeline for AI generation requests."""

__version__ = "0.1.0"

from uniguard.core.options import (
    GenerateOptions,
    Message,
    MessageRole,
    SecurityConfig,
    SecurityPreset,
)
from uniguard.exceptions import (
    UniGuardError,
    PluginError,
    PluginInitializationError,
    PluginValidationError,
    PluginRateLimitError,
    PluginModerationError,
    InvalidPluginError,
    SecurityError,
    ValidationError,
    RateLimitError,
    PIIDetectedError,
)
from uniguard.application.engines.security_plugins import (
    HookName,
    PluginConfig,
    PluginContext,
    PluginHooks,
    PluginMetadata,
    PluginPriority,
    PluginRegistry,
    RegisterPluginOptions,
    SecurityPipeline,
    SecurityPlugin,
    ValidationResult,
    RateLimitResult,
    PIIDetectionResult,
    ModerationResult,
    SecurityCheckResults,
    plugin_registry,
    register_plugin,
    unregister_plugin,
    execute_security_plugins,
)

__all__ = [
    "__version__",
    # Options
    "GenerateOptions",
    "Message",
    "MessageRole",
    "SecurityConfig",
    "SecurityPreset",
    # Errors
    "UniGuardError",
    "PluginError",
    "PluginInitializationError",
    "PluginValidationError",
    "PluginRateLimitError",
    "PluginModerationError",
    "InvalidPluginError",
    "SecurityError",
    "ValidationError",
    "RateLimitError",
    "PIIDetectedError",
    # Plugins
    "HookName",
    "PluginConfig",
    "PluginContext",
    "PluginHooks",
    "PluginMetadata",
    "PluginPriority",
    "PluginRegistry",
    "RegisterPluginOptions",
    "SecurityPipeline",
    "SecurityPlugin",
    "ValidationResult",
    "RateLimitResult",
    "PIIDetectionResult",
    "ModerationResult",
    "SecurityCheckResults",
    "plugin_registry",
    "register_plugin",
    "unregister_plugin",
    "execute_security_plugins",
]
