"""
Security Plugin System

Extensible security pipeline for uniguard. Plugins hook into request
transformation, validation, rate limiting, PII redaction, moderation and
error recovery.

Usage:
    from uniguard.application.engines.security_plugins import (
        PluginHooks, PluginMetadata, SecurityPlugin, ValidationResult,
        plugin_registry, execute_security_plugins,
    )

    class MyCustomPlugin(SecurityPlugin):
        metadata = PluginMetadata(name="my-plugin", version="1.0.0")

        def build_hooks(self) -> PluginHooks:
            return PluginHooks(validation=self.validate)

        def validate(self, context) -> ValidationResult:
            return ValidationResult(valid=True)

    await plugin_registry.register(MyCustomPlugin())
    secured = await execute_security_plugins(options)
"""

from uniguard.application.engines.security_plugins.base import (
    SUBJECT_FIRST_HOOKS,
    HookName,
    ModerationAction,
    ModerationResult,
    PIIDetectionResult,
    PIIEntity,
    PluginConfig,
    PluginContext,
    PluginHooks,
    PluginMetadata,
    PluginPriority,
    RateLimitResult,
    RegisteredPlugin,
    RegisterPluginOptions,
    SecurityCheckResults,
    SecurityPlugin,
    ValidationResult,
)
from uniguard.application.engines.security_plugins.registry import (
    PluginRegistry,
    plugin_registry,
    register_plugin,
    unregister_plugin,
    enable_plugin,
    disable_plugin,
    get_plugin,
    get_plugins,
    clear_plugins,
)
from uniguard.application.engines.security_plugins.pipeline import (
    SecurityPipeline,
    SecurityPipelineResult,
    security_pipeline,
    execute_security_plugins,
)
from uniguard.application.engines.security_plugins.builtin import (
    PromptInjectionPlugin,
    SecretsPlugin,
    PIIRedactionPlugin,
    InMemoryRateLimitPlugin,
    register_builtin_plugins,
)

__all__ = [
    # Base
    "SUBJECT_FIRST_HOOKS",
    "HookName",
    "PluginConfig",
    "PluginContext",
    "PluginHooks",
    "PluginMetadata",
    "PluginPriority",
    "RegisteredPlugin",
    "RegisterPluginOptions",
    "SecurityPlugin",
    # Results
    "ValidationResult",
    "RateLimitResult",
    "PIIEntity",
    "PIIDetectionResult",
    "ModerationAction",
    "ModerationResult",
    "SecurityCheckResults",
    # Registry
    "PluginRegistry",
    "plugin_registry",
    "register_plugin",
    "unregister_plugin",
    "enable_plugin",
    "disable_plugin",
    "get_plugin",
    "get_plugins",
    "clear_plugins",
    # Pipeline
    "SecurityPipeline",
    "SecurityPipelineResult",
    "security_pipeline",
    "execute_security_plugins",
    # Built-in plugins
    "PromptInjectionPlugin",
    "SecretsPlugin",
    "PIIRedactionPlugin",
    "InMemoryRateLimitPlugin",
    "register_builtin_plugins",
]
