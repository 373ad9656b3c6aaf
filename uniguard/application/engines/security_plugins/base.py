"""
Security Plugin Base Classes

Defines the interface for security plugins and the values that flow
between the registry, the pipeline and plugin hooks.
"""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Awaitable, Callable, Optional, Union
import time

from pydantic import BaseModel, ConfigDict

from uniguard.core.options import GenerateOptions, SecurityConfig
from uniguard.core.results import (
    ValidationResult,
    RateLimitResult,
    PIIEntity,
    PIIDetectionResult,
    ModerationAction,
    ModerationResult,
    SecurityCheckResults,
)


class PluginPriority(IntEnum):
    """Plugin priority levels (higher = runs first)."""

    CRITICAL = 100  # Critical security checks
    HIGH = 75  # Important checks
    NORMAL = 50  # Standard checks (default)
    LOW = 25  # Optional enhancements
    MINIMAL = 10  # Nice-to-have features


class HookName(str, Enum):
    """Pipeline hooks, in the order the pipeline runs them."""

    BEFORE_VALIDATION = "before_validation"
    VALIDATION = "validation"
    RATE_LIMIT = "rate_limit"
    PII_DETECTION = "pii_detection"
    MODERATION = "moderation"
    AFTER_SECURITY = "after_security"
    ON_SECURITY_ERROR = "on_security_error"


# Hooks called as hook(subject, context) rather than hook(context, ...)
SUBJECT_FIRST_HOOKS = frozenset(
    {HookName.PII_DETECTION, HookName.MODERATION, HookName.ON_SECURITY_ERROR}
)


class PluginMetadata(BaseModel):
    """Plugin identity. `name` is unique across a registry."""

    name: str
    version: str
    description: Optional[str] = None
    author: Optional[str] = None
    homepage: Optional[str] = None
    required_version: Optional[str] = None


class PluginConfig(BaseModel):
    """Plugin configuration. Extra plugin-specific fields are kept."""

    enabled: Optional[bool] = None
    priority: Optional[int] = None

    model_config = ConfigDict(extra="allow")

    def get(self, key: str, default: Any = None) -> Any:
        value = getattr(self, key, None)
        if value is None and self.model_extra:
            value = self.model_extra.get(key)
        return default if value is None else value


class RegisterPluginOptions(BaseModel):
    """Overrides supplied by the caller at registration time."""

    config: Optional[PluginConfig] = None
    enabled: Optional[bool] = None
    priority: Optional[int] = None


@dataclass
class PluginContext:
    """
    Per-request state shared by every hook of one pipeline run.

    `options` is replaced as stages transform the request; `metadata` is a
    scratch space plugins may annotate for later hooks.
    """

    options: GenerateOptions
    security: SecurityConfig
    metadata: dict[str, Any] = field(default_factory=dict)
    start_time: float = field(default_factory=time.time)
    user_id: Optional[str] = None


# Hook signatures. Each may return its value directly or an awaitable.
BeforeValidationHook = Callable[
    [PluginContext],
    Union[Optional[GenerateOptions], Awaitable[Optional[GenerateOptions]]],
]
ValidationHook = Callable[
    [PluginContext], Union[ValidationResult, Awaitable[ValidationResult]]
]
RateLimitHook = Callable[
    [PluginContext], Union[RateLimitResult, Awaitable[RateLimitResult]]
]
PIIDetectionHook = Callable[
    [str, PluginContext], Union[PIIDetectionResult, Awaitable[PIIDetectionResult]]
]
ModerationHook = Callable[
    [str, PluginContext], Union[ModerationResult, Awaitable[ModerationResult]]
]
AfterSecurityHook = Callable[
    [PluginContext, SecurityCheckResults], Union[None, Awaitable[None]]
]
OnSecurityErrorHook = Callable[
    [Exception, PluginContext],
    Union[Optional[GenerateOptions], Awaitable[Optional[GenerateOptions]]],
]


@dataclass
class PluginHooks:
    """
    The hooks a plugin implements. A hook is implemented when its field is set.
    """

    before_validation: Optional[BeforeValidationHook] = None
    validation: Optional[ValidationHook] = None
    rate_limit: Optional[RateLimitHook] = None
    pii_detection: Optional[PIIDetectionHook] = None
    moderation: Optional[ModerationHook] = None
    after_security: Optional[AfterSecurityHook] = None
    on_security_error: Optional[OnSecurityErrorHook] = None

    def get(self, hook_name: Union[HookName, str]) -> Optional[Callable[..., Any]]:
        """Return the hook function for `hook_name`, or None."""
        hooks = {
            HookName.BEFORE_VALIDATION: self.before_validation,
            HookName.VALIDATION: self.validation,
            HookName.RATE_LIMIT: self.rate_limit,
            HookName.PII_DETECTION: self.pii_detection,
            HookName.MODERATION: self.moderation,
            HookName.AFTER_SECURITY: self.after_security,
            HookName.ON_SECURITY_ERROR: self.on_security_error,
        }
        return hooks[HookName(hook_name)]

    def implements(self, hook_name: Union[HookName, str]) -> bool:
        return self.get(hook_name) is not None

    def implemented(self) -> list[HookName]:
        return [hook for hook in HookName if self.implements(hook)]


class SecurityPlugin:
    """
    Base class for security plugins.

    Either subclass it and return hooks from build_hooks(), or instantiate
    it directly with metadata and hooks.

    Example:
        class BlocklistPlugin(SecurityPlugin):
            metadata = PluginMetadata(name="blocklist", version="1.0.0")

            def build_hooks(self) -> PluginHooks:
                return PluginHooks(validation=self.validate)

            def validate(self, context: PluginContext) -> ValidationResult:
                text = context.options.get_prompt_text()
                if "forbidden" in text:
                    return ValidationResult(valid=False, error="Forbidden word")
                return ValidationResult(valid=True)

        plugin = SecurityPlugin(
            metadata=PluginMetadata(name="logger", version="1.0.0"),
            hooks=PluginHooks(after_security=log_results),
        )
    """

    # Plugin metadata and default configuration (override in subclass)
    metadata: Optional[PluginMetadata] = None
    config: Optional[PluginConfig] = None

    def __init__(
        self,
        metadata: Optional[PluginMetadata] = None,
        hooks: Optional[PluginHooks] = None,
        config: Optional[PluginConfig] = None,
        initialize: Optional[Callable[[], Any]] = None,
        cleanup: Optional[Callable[[], Any]] = None,
    ):
        if metadata is not None:
            self.metadata = metadata
        if config is not None:
            self.config = config
        if initialize is not None:
            self.initialize = initialize
        if cleanup is not None:
            self.cleanup = cleanup
        self.hooks = hooks if hooks is not None else self.build_hooks()

    @property
    def name(self) -> str:
        return self.metadata.name if self.metadata else ""

    def build_hooks(self) -> PluginHooks:
        """Return the hooks this plugin implements. Override in subclass."""
        return PluginHooks()

    def initialize(self) -> Optional[Awaitable[None]]:
        """
        Called once at registration. May be a coroutine.
        Override to connect to external services, compile patterns, etc.
        """
        return None

    def cleanup(self) -> Optional[Awaitable[None]]:
        """
        Called once at unregistration. May be a coroutine.
        Override to release resources.
        """
        return None

    def __repr__(self) -> str:
        version = self.metadata.version if self.metadata else "?"
        return f"{self.__class__.__name__}(name={self.name}, version={version})"


@dataclass
class RegisteredPlugin:
    """Registry entry: plugin, merged config, live flag, effective priority."""

    plugin: SecurityPlugin
    config: PluginConfig
    enabled: bool
    priority: int
    sequence: int = 0  # registration order, breaks priority ties

    @property
    def name(self) -> str:
        return self.plugin.name

    def implements(self, hook_name: Union[HookName, str]) -> bool:
        return self.plugin.hooks.implements(hook_name)


__all__ = [
    "PluginPriority",
    "HookName",
    "SUBJECT_FIRST_HOOKS",
    "PluginMetadata",
    "PluginConfig",
    "RegisterPluginOptions",
    "PluginContext",
    "PluginHooks",
    "SecurityPlugin",
    "RegisteredPlugin",
    # Results
    "ValidationResult",
    "RateLimitResult",
    "PIIEntity",
    "PIIDetectionResult",
    "ModerationAction",
    "ModerationResult",
    "SecurityCheckResults",
]
