"""Security Pipeline - Orchestrates plugin hooks for one generation request.

Stages, in fixed order over a single PluginContext:
1. before_validation  (transform options)
2. validation         (abort on any invalid result)
3. rate_limit         (abort on any denial)
4. pii_detection      (redact prompt text)
5. moderation         (abort on unsafe + block)
6. after_security     (informational)

Any error in stages 1-6 gives on_security_error hooks one chance to supply
replacement options. With no plugins registered, the built-in checks run
instead.
"""

from collections.abc import Mapping
from dataclasses import dataclass
import logging
import time
from typing import Any, Optional, Type, TypeVar

from pydantic import BaseModel

from uniguard.core.options import GenerateOptions
from uniguard.core.presets import resolve_security_config
from uniguard.exceptions import (
    PluginError,
    PluginModerationError,
    PluginRateLimitError,
    PluginValidationError,
)
from uniguard.application.engines.rate_limiter import RateLimiter
from uniguard.application.engines.security import apply_security_middleware
from .base import (
    HookName,
    ModerationAction,
    ModerationResult,
    PIIDetectionResult,
    PluginContext,
    RateLimitResult,
    RegisteredPlugin,
    SecurityCheckResults,
    ValidationResult,
)
from .registry import PluginRegistry, plugin_registry

logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT", bound=BaseModel)


@dataclass
class SecurityPipelineResult:
    """Options to dispatch to the provider, and what the checks found."""

    options: GenerateOptions
    results: SecurityCheckResults


class SecurityPipeline:
    """
    Runs the security stages for each request.

    The registry is read-only while requests are processed; register
    plugins at startup.
    """

    def __init__(
        self,
        registry: Optional[PluginRegistry] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        self.registry = registry if registry is not None else plugin_registry
        self.rate_limiter = rate_limiter

    async def execute(
        self,
        options: GenerateOptions,
        user_id: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> SecurityPipelineResult:
        """
        Evaluate a request through the security pipeline.

        Returns the (possibly modified) options and the aggregated results.
        Raises the triggering error when no on_security_error hook recovers.
        """
        if len(self.registry) == 0:
            return self._run_builtin_checks(options, user_id)

        context = PluginContext(
            options=options,
            security=resolve_security_config(options.security),
            metadata=dict(metadata or {}),
            start_time=time.time(),
            user_id=user_id,
        )
        results = SecurityCheckResults()

        try:
            await self._before_validation(context, results)
            await self._validation(context, results)
            await self._rate_limit(context, results)

            if context.options.get_prompt_text():
                await self._pii_detection(context, results)
                await self._moderation(context, results)

            results.execution_time = self._elapsed_ms(context)
            await self.registry.execute_hook(
                HookName.AFTER_SECURITY, context, results
            )

            return SecurityPipelineResult(options=context.options, results=results)

        except Exception as error:
            logger.warning(f"Security check failed: {error}")

            recovered = await self._recover(error, context)
            if recovered is None:
                raise

            logger.info(f"Request recovered after security error: {error}")
            results.modified = True
            results.execution_time = self._elapsed_ms(context)
            return SecurityPipelineResult(options=recovered, results=results)

    # =========================================================================
    # Stages
    # =========================================================================

    async def _before_validation(
        self, context: PluginContext, results: SecurityCheckResults
    ) -> None:
        """Each returned options object replaces the current one (last wins)."""
        pairs = await self.registry.execute_hook_attributed(
            HookName.BEFORE_VALIDATION, context
        )
        for registered, value in pairs:
            replacement = self._coerce_options(value, registered, HookName.BEFORE_VALIDATION)
            if replacement is not None:
                context.options = replacement
                results.modified = True

    async def _validation(
        self, context: PluginContext, results: SecurityCheckResults
    ) -> None:
        pairs = await self._collect(HookName.VALIDATION, ValidationResult, context)
        results.validation = [result for _, result in pairs]

        for registered, result in pairs:
            if not result.valid:
                raise PluginValidationError(
                    registered.name, result.error or "Validation failed"
                )

    async def _rate_limit(
        self, context: PluginContext, results: SecurityCheckResults
    ) -> None:
        pairs = await self._collect(HookName.RATE_LIMIT, RateLimitResult, context)
        results.rate_limit = [result for _, result in pairs]

        for registered, result in pairs:
            if not result.allowed:
                raise PluginRateLimitError(
                    registered.name,
                    result.error or "Rate limit exceeded",
                    remaining=result.remaining,
                    reset_in=result.reset_in,
                )

    async def _pii_detection(
        self, context: PluginContext, results: SecurityCheckResults
    ) -> None:
        """
        Progressive redaction: each plugin scans the text as left by the
        plugins before it.
        """
        text = context.options.get_prompt_text()

        for registered in self.registry.get_for_hook(HookName.PII_DETECTION):
            value = await self.registry.invoke_hook(
                registered, HookName.PII_DETECTION, context, text
            )
            result = self._coerce(
                value, PIIDetectionResult, registered, HookName.PII_DETECTION
            )
            if result is None:
                continue
            results.pii_detection.append(result)

            if result.detected and result.redacted != text:
                logger.info(
                    f"Plugin {registered.name} redacted PII: {', '.join(result.patterns)}"
                )
                context.options = context.options.with_prompt_text(result.redacted)
                results.modified = True
                text = context.options.get_prompt_text()

    async def _moderation(
        self, context: PluginContext, results: SecurityCheckResults
    ) -> None:
        text = context.options.get_prompt_text()
        if not text:
            return

        pairs = await self._collect(HookName.MODERATION, ModerationResult, context, text)
        results.moderation = [result for _, result in pairs]

        for registered, result in pairs:
            if result.safe:
                continue
            if result.action == ModerationAction.BLOCK:
                raise PluginModerationError(
                    registered.name,
                    result.reason or "Content moderation failed",
                    categories=result.categories,
                )
            logger.warning(
                f"Plugin {registered.name} flagged content "
                f"({', '.join(result.categories) or 'unspecified'}), action={result.action}"
            )

    async def _recover(
        self, error: Exception, context: PluginContext
    ) -> Optional[GenerateOptions]:
        """Run every on_security_error hook; the first options returned win."""
        pairs = await self.registry.execute_hook_attributed(
            HookName.ON_SECURITY_ERROR, context, error
        )
        for registered, value in pairs:
            recovered = self._coerce_options(
                value, registered, HookName.ON_SECURITY_ERROR
            )
            if recovered is not None:
                return recovered
        return None

    # =========================================================================
    # Built-in path
    # =========================================================================

    def _run_builtin_checks(
        self, options: GenerateOptions, user_id: Optional[str]
    ) -> SecurityPipelineResult:
        """Validate, rate-limit and PII-check without any plugins."""
        start = time.time()
        secured = apply_security_middleware(
            options.model_copy(deep=True), user_id=user_id, limiter=self.rate_limiter
        )

        results = SecurityCheckResults(
            execution_time=(time.time() - start) * 1000,
            modified=(
                secured.prompt != options.prompt or secured.messages != options.messages
            ),
        )
        return SecurityPipelineResult(options=secured, results=results)

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _collect(
        self,
        hook_name: HookName,
        result_type: Type[ResultT],
        context: PluginContext,
        *args: Any,
    ) -> list[tuple[RegisteredPlugin, ResultT]]:
        """Run a hook and keep the non-empty results, typed."""
        pairs = await self.registry.execute_hook_attributed(hook_name, context, *args)
        collected = []
        for registered, value in pairs:
            result = self._coerce(value, result_type, registered, hook_name)
            if result is not None:
                collected.append((registered, result))
        return collected

    @staticmethod
    def _coerce(
        value: Any,
        result_type: Type[ResultT],
        registered: RegisteredPlugin,
        hook_name: HookName,
    ) -> Optional[ResultT]:
        """Accept a result model or a mapping; None means no result."""
        if value is None:
            return None
        if isinstance(value, result_type):
            return value
        if isinstance(value, Mapping):
            try:
                return result_type.model_validate(value)
            except ValueError as e:
                raise PluginError(
                    f"Invalid {result_type.__name__}: {e}",
                    registered.name,
                    hook_name.value,
                ) from e
        raise PluginError(
            f"Hook returned {type(value).__name__}, expected {result_type.__name__}",
            registered.name,
            hook_name.value,
        )

    @classmethod
    def _coerce_options(
        cls, value: Any, registered: RegisteredPlugin, hook_name: HookName
    ) -> Optional[GenerateOptions]:
        # Non-object results (e.g. True) carry no replacement
        if not isinstance(value, (GenerateOptions, Mapping)):
            return None
        return cls._coerce(value, GenerateOptions, registered, hook_name)

    @staticmethod
    def _elapsed_ms(context: PluginContext) -> float:
        return (time.time() - context.start_time) * 1000


# Default pipeline over the default registry
security_pipeline = SecurityPipeline()


async def execute_security_plugins(
    options: GenerateOptions,
    registry: Optional[PluginRegistry] = None,
    user_id: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
) -> SecurityPipelineResult:
    """Run the security pipeline once for `options`."""
    pipeline = SecurityPipeline(registry) if registry is not None else security_pipeline
    return await pipeline.execute(options, user_id=user_id, metadata=metadata)
