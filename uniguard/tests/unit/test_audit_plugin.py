"""Tests for the audit logger plugin."""

import json
import logging

import pytest

from uniguard.core.options import GenerateOptions
from uniguard.exceptions import (
    PIIDetectedError,
    PluginError,
    PluginModerationError,
    PluginRateLimitError,
    PluginValidationError,
)
from uniguard.application.engines.security_plugins import (
    PluginConfig,
    PluginHooks,
    PluginMetadata,
    SecurityPipeline,
    SecurityPlugin,
    ValidationResult,
)
from uniguard.application.engines.security_plugins.audit import (
    AuditEventType,
    AuditLoggerPlugin,
)


def rejecting_plugin() -> SecurityPlugin:
    return SecurityPlugin(
        metadata=PluginMetadata(name="rejecter", version="1.0.0"),
        hooks=PluginHooks(
            validation=lambda ctx: ValidationResult(valid=False, error="Rejected")
        ),
        config=PluginConfig(priority=90),
    )


class TestAuditLoggerPlugin:
    """Audit entries produced by pipeline runs."""

    @pytest.mark.asyncio
    async def test_logs_passed_checks(self, registry, caplog):
        caplog.set_level(logging.INFO, logger="uniguard.audit")
        audit = AuditLoggerPlugin()
        await registry.register(audit)

        await SecurityPipeline(registry).execute(
            GenerateOptions(model="gpt", prompt="hello"), user_id="u1"
        )

        assert len(audit.entries) == 1
        entry = audit.entries[0]
        assert entry.event == AuditEventType.SECURITY_CHECK_PASSED
        assert entry.user_id == "u1"
        assert entry.model == "gpt"
        assert entry.prompt is None
        assert entry.results["modified"] is False

        lines = [r.getMessage() for r in caplog.records if r.name == "uniguard.audit"]
        record = json.loads(lines[-1])
        assert record["event"] == "security_check_passed"

    @pytest.mark.asyncio
    async def test_logs_validation_failure_without_recovering(self, registry):
        audit = AuditLoggerPlugin()
        await registry.register(rejecting_plugin())
        await registry.register(audit)

        with pytest.raises(PluginValidationError):
            await SecurityPipeline(registry).execute(
                GenerateOptions(model="m", prompt="hi")
            )

        entry = audit.entries[0]
        assert entry.event == AuditEventType.VALIDATION_FAILED
        assert entry.plugin == "rejecter"
        assert entry.error == "Rejected"

    @pytest.mark.asyncio
    async def test_prompt_included_and_truncated(self, registry):
        audit = AuditLoggerPlugin(include_prompts=True)
        await registry.register(audit)

        await SecurityPipeline(registry).execute(GenerateOptions(model="m", prompt="a" * 500))

        assert audit.entries[0].prompt == "a" * 200

    @pytest.mark.asyncio
    async def test_event_filter(self, registry):
        audit = AuditLoggerPlugin(events=[AuditEventType.VALIDATION_FAILED])
        await registry.register(audit)

        await SecurityPipeline(registry).execute(GenerateOptions(model="m", prompt="hi"))

        assert audit.entries == []

    @pytest.mark.asyncio
    async def test_custom_handlers(self, registry):
        received = []

        async def handler(entry):
            received.append(entry)

        await registry.register(AuditLoggerPlugin(handler=handler))

        await SecurityPipeline(registry).execute(GenerateOptions(model="m", prompt="hi"))

        assert [e.event for e in received] == [AuditEventType.SECURITY_CHECK_PASSED]

    @pytest.mark.asyncio
    async def test_sync_handler(self, registry):
        received = []
        await registry.register(AuditLoggerPlugin(handler=received.append))

        await SecurityPipeline(registry).execute(GenerateOptions(model="m", prompt="hi"))

        assert len(received) == 1


class TestClassify:
    def test_error_types(self):
        classify = AuditLoggerPlugin.classify

        assert classify(PluginValidationError("p", "x")) == AuditEventType.VALIDATION_FAILED
        assert classify(PluginRateLimitError("p", "x")) == AuditEventType.RATE_LIMIT_EXCEEDED
        assert classify(PluginModerationError("p", "x")) == AuditEventType.MODERATION_FLAGGED
        assert classify(PIIDetectedError("found", ["SSN"])) == AuditEventType.PII_DETECTED
        assert classify(PluginError("PII leaked", "p")) == AuditEventType.PLUGIN_ERROR
        assert classify(RuntimeError("PII in prompt")) == AuditEventType.SECURITY_CHECK_FAILED
        assert classify(PluginError("boom", "p")) == AuditEventType.PLUGIN_ERROR
        assert classify(RuntimeError("other")) == AuditEventType.SECURITY_CHECK_FAILED
