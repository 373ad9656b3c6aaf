"""uniguard exceptions."""

from typing import Optional, Dict, Any


class UniGuardError(Exception):
    """Base exception for uniguard."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


# =============================================================================
# Plugin errors - attributed to the plugin and hook that raised them
# =============================================================================


class PluginError(UniGuardError):
    """Raised when a security plugin fails or rejects a request."""

    def __init__(
        self,
        message: str,
        plugin_name: str,
        hook_name: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.plugin_name = plugin_name
        self.hook_name = hook_name

    def __str__(self) -> str:
        if self.hook_name:
            return f"[{self.plugin_name}:{self.hook_name}] {self.message}"
        return f"[{self.plugin_name}] {self.message}"


class PluginInitializationError(PluginError):
    """Raised when a plugin's initialize() fails during registration."""

    def __init__(self, plugin_name: str, cause: Optional[BaseException] = None):
        reason = str(cause) if cause is not None and str(cause) else "Unknown error"
        super().__init__(
            f"Failed to initialize plugin: {reason}",
            plugin_name,
            hook_name="initialize",
        )
        self.__cause__ = cause


class PluginValidationError(PluginError):
    """Raised when a validation hook rejects the input."""

    def __init__(self, plugin_name: str, message: str):
        super().__init__(message, plugin_name, hook_name="validation")


class PluginRateLimitError(PluginError):
    """Raised when a rate_limit hook denies the request."""

    def __init__(
        self,
        plugin_name: str,
        message: str,
        remaining: Optional[int] = None,
        reset_in: Optional[float] = None,
    ):
        super().__init__(
            message,
            plugin_name,
            hook_name="rate_limit",
            details={"remaining": remaining, "reset_in": reset_in},
        )
        self.remaining = remaining
        self.reset_in = reset_in


class PluginModerationError(PluginError):
    """Raised when a moderation hook blocks the content."""

    def __init__(
        self,
        plugin_name: str,
        message: str,
        categories: Optional[list[str]] = None,
    ):
        super().__init__(
            message,
            plugin_name,
            hook_name="moderation",
            details={"categories": categories or []},
        )
        self.categories = categories or []


class InvalidPluginError(UniGuardError, ValueError):
    """Raised when a plugin is structurally invalid (no name, version or hooks)."""

    pass


# =============================================================================
# Built-in check errors - raised by the zero-configuration path
# =============================================================================


class SecurityError(UniGuardError):
    """Raised when a built-in security check rejects a request."""

    pass


class ValidationError(SecurityError):
    """Raised when input validation fails (length, message count, pattern)."""

    pass


class RateLimitError(SecurityError):
    """Raised when the in-memory rate limiter rejects a request."""

    def __init__(
        self,
        message: str,
        limit: int,
        current: int,
        reset_in: int,
    ):
        super().__init__(
            message,
            details={"limit": limit, "current": current, "reset_in": reset_in},
        )
        self.limit = limit
        self.current = current
        self.reset_in = reset_in

    @property
    def user_message(self) -> str:
        return (
            "You're sending requests too quickly. "
            f"Please wait {self.reset_in} seconds."
        )


class PIIDetectedError(SecurityError):
    """Raised when PII is found and redaction is disabled."""

    def __init__(self, message: str, patterns: list[str]):
        super().__init__(message, details={"patterns": patterns})
        self.patterns = patterns
