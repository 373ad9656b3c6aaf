"""
Audit Logger Plugin

Logs every pipeline outcome for compliance and debugging: one JSON line per
event on the `uniguard.audit` logger, plus an in-memory event list.
Prompts are left out unless explicitly enabled.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union
import inspect
import json
import logging

from pydantic import BaseModel, Field

from uniguard.core.config import settings
from uniguard.exceptions import (
    PIIDetectedError,
    PluginError,
    PluginModerationError,
    PluginRateLimitError,
    PluginValidationError,
)
from uniguard.application.engines.security_plugins.base import (
    PluginConfig,
    PluginContext,
    PluginHooks,
    PluginMetadata,
    PluginPriority,
    SecurityCheckResults,
    SecurityPlugin,
)

PROMPT_PREVIEW_LENGTH = 200


class AuditEventType(str, Enum):
    SECURITY_CHECK_PASSED = "security_check_passed"
    SECURITY_CHECK_FAILED = "security_check_failed"
    VALIDATION_FAILED = "validation_failed"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    PII_DETECTED = "pii_detected"
    MODERATION_FLAGGED = "moderation_flagged"
    PLUGIN_ERROR = "plugin_error"


class AuditEntry(BaseModel):
    """Audit log entry."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    event: AuditEventType
    user_id: Optional[str] = None
    model: Optional[str] = None
    prompt: Optional[str] = None
    error: Optional[str] = None
    plugin: Optional[str] = None
    results: Optional[dict[str, Any]] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


AuditHandler = Callable[[AuditEntry], Union[None, Awaitable[None]]]


class AuditLoggerPlugin(SecurityPlugin):
    """
    Security audit logging.

    Runs at LOW priority so that it observes results after the other
    plugins. Never supplies recovery options.
    """

    metadata = PluginMetadata(
        name="audit-logger",
        version="1.0.0",
        description="Security audit logging",
    )
    config = PluginConfig(priority=PluginPriority.LOW)

    def __init__(
        self,
        include_prompts: Optional[bool] = None,
        include_results: bool = True,
        events: Optional[list[AuditEventType]] = None,
        handler: Optional[AuditHandler] = None,
    ):
        self.include_prompts = (
            settings.audit_include_prompts if include_prompts is None else include_prompts
        )
        self.include_results = include_results
        self.event_filter = set(AuditEventType(e) for e in events) if events else None
        self.handler = handler

        self.logger = logging.getLogger("uniguard.audit")
        self.entries: list[AuditEntry] = []

        super().__init__()

    def build_hooks(self) -> PluginHooks:
        return PluginHooks(
            after_security=self.after_security,
            on_security_error=self.on_security_error,
        )

    async def after_security(
        self, context: PluginContext, results: SecurityCheckResults
    ) -> None:
        entry = self._create_entry(
            AuditEventType.SECURITY_CHECK_PASSED, context, results=results
        )
        await self.log(entry)

    async def on_security_error(self, error: Exception, context: PluginContext) -> None:
        entry = self._create_entry(self.classify(error), context, error=error)
        await self.log(entry)

    async def log(self, entry: AuditEntry) -> None:
        """Record an entry unless its event type is filtered out."""
        if self.event_filter is not None and entry.event not in self.event_filter:
            return

        self.entries.append(entry)

        line = entry.model_dump_json(exclude_none=True)
        if entry.event == AuditEventType.SECURITY_CHECK_PASSED:
            self.logger.info(line)
        else:
            self.logger.warning(line)

        if self.handler is not None:
            outcome = self.handler(entry)
            if inspect.isawaitable(outcome):
                await outcome

    @staticmethod
    def classify(error: Exception) -> AuditEventType:
        """Map a pipeline error to the audit event it represents."""
        if isinstance(error, PluginValidationError):
            return AuditEventType.VALIDATION_FAILED
        if isinstance(error, PluginRateLimitError):
            return AuditEventType.RATE_LIMIT_EXCEEDED
        if isinstance(error, PluginModerationError):
            return AuditEventType.MODERATION_FLAGGED
        if isinstance(error, PIIDetectedError):
            return AuditEventType.PII_DETECTED
        if isinstance(error, PluginError):
            return AuditEventType.PLUGIN_ERROR
        return AuditEventType.SECURITY_CHECK_FAILED

    def _create_entry(
        self,
        event: AuditEventType,
        context: PluginContext,
        error: Optional[Exception] = None,
        results: Optional[SecurityCheckResults] = None,
    ) -> AuditEntry:
        prompt = None
        if self.include_prompts:
            prompt = context.options.get_prompt_text()[:PROMPT_PREVIEW_LENGTH]

        return AuditEntry(
            event=event,
            user_id=context.user_id,
            model=context.options.model,
            prompt=prompt,
            error=getattr(error, "message", None) or (str(error) if error else None),
            plugin=getattr(error, "plugin_name", None),
            results=(
                results.to_api_response()
                if results is not None and self.include_results
                else None
            ),
            metadata=_json_safe(context.metadata),
        )

    def clear(self) -> None:
        self.entries.clear()


def _json_safe(metadata: dict[str, Any]) -> dict[str, Any]:
    """Drop metadata values that cannot be written as JSON."""
    safe = {}
    for key, value in metadata.items():
        try:
            json.dumps(value)
        except (TypeError, ValueError):
            continue
        safe[key] = value
    return safe
