"""
OpenAI Moderation Plugin

Content moderation using the OpenAI Moderation API.

Moderation categories:
- hate, hate/threatening
- harassment, harassment/threatening
- self-harm, self-harm/intent, self-harm/instructions
- sexual, sexual/minors
- violence, violence/graphic

Requirements:
- An OpenAI API key (UNIGUARD_OPENAI_API_KEY or `api_key=`)
"""

import logging
from typing import Optional

import httpx

from uniguard.core.config import settings
from uniguard.application.engines.security_plugins.base import (
    ModerationAction,
    ModerationResult,
    PluginConfig,
    PluginContext,
    PluginHooks,
    PluginMetadata,
    PluginPriority,
    SecurityPlugin,
)

logger = logging.getLogger(__name__)


STRICT_BLOCK_CATEGORIES = [
    "hate",
    "hate/threatening",
    "harassment",
    "harassment/threatening",
    "violence",
    "violence/graphic",
    "sexual/minors",
    "self-harm/intent",
    "self-harm/instructions",
]

SEVERE_BLOCK_CATEGORIES = [
    "hate/threatening",
    "harassment/threatening",
    "violence/graphic",
    "sexual/minors",
    "self-harm/instructions",
]


class OpenAIModerationPlugin(SecurityPlugin):
    """
    Moderation hook backed by the OpenAI Moderation API.

    Flagged content is unsafe when a flagged category is in
    `block_categories` (or any category, if none are listed) and the
    highest category score reaches `threshold`. API or transport failures
    fail open.
    """

    metadata = PluginMetadata(
        name="openai-moderation",
        version="1.0.0",
        description="Content moderation using OpenAI Moderation API",
        homepage="https://platform.openai.com/docs/guides/moderation",
    )
    config = PluginConfig(priority=PluginPriority.NORMAL)

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "text-moderation-latest",
        block_categories: Optional[list[str]] = None,
        threshold: float = 0.5,
        action: ModerationAction = ModerationAction.BLOCK,
        error_message: str = "Content violates moderation policies",
        endpoint: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            api_key: OpenAI API key (defaults to settings)
            model: Moderation model name
            block_categories: Only these categories block; empty means all
            threshold: Minimum top score for a flag to count
            action: Action reported for unsafe content (block or warn)
            endpoint: Moderation endpoint URL (defaults to settings)
            timeout: Request timeout in seconds
            transport: Optional httpx transport, mainly for tests
        """
        self.api_key = api_key if api_key is not None else settings.openai_api_key
        self.model = model
        self.block_categories = block_categories or []
        self.threshold = threshold
        self.action = ModerationAction(action)
        self.error_message = error_message
        self.endpoint = endpoint or settings.openai_moderation_url
        self.timeout = timeout if timeout is not None else settings.moderation_timeout
        self.transport = transport
        super().__init__()

    @classmethod
    def strict(cls, **kwargs) -> "OpenAIModerationPlugin":
        """Low threshold, blocks a broad category list."""
        return cls(
            threshold=0.3,
            action=ModerationAction.BLOCK,
            block_categories=STRICT_BLOCK_CATEGORIES,
            **kwargs,
        )

    @classmethod
    def permissive(cls, **kwargs) -> "OpenAIModerationPlugin":
        """High threshold, only warns on severe categories."""
        return cls(
            threshold=0.8,
            action=ModerationAction.WARN,
            block_categories=SEVERE_BLOCK_CATEGORIES,
            **kwargs,
        )

    def initialize(self) -> None:
        if not self.api_key:
            raise ValueError(
                "OpenAI API key required for moderation plugin. "
                "Set UNIGUARD_OPENAI_API_KEY or pass api_key."
            )

    def build_hooks(self) -> PluginHooks:
        return PluginHooks(moderation=self.moderate)

    async def moderate(self, text: str, context: PluginContext) -> ModerationResult:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.post(
                    self.endpoint,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json={"input": text, "model": self.model},
                )

            if response.status_code != 200:
                logger.error(
                    f"OpenAI Moderation API error ({response.status_code}): {response.text}"
                )
                return self._allow()

            result = response.json()["results"][0]
            return self._evaluate(result)

        except httpx.TimeoutException:
            logger.warning("OpenAI Moderation request timed out")
            return self._allow()
        except Exception as e:
            logger.error(f"OpenAI Moderation error: {e}")
            return self._allow()

    def _evaluate(self, result: dict) -> ModerationResult:
        scores = result.get("category_scores") or {}

        if not result.get("flagged"):
            return ModerationResult(
                safe=True, scores=scores, action=ModerationAction.ALLOW
            )

        flagged = [name for name, hit in (result.get("categories") or {}).items() if hit]

        if self.block_categories:
            blocking = [c for c in flagged if c in self.block_categories]
        else:
            blocking = flagged

        should_block = bool(blocking)
        if scores and max(scores.values()) < self.threshold:
            should_block = False

        return ModerationResult(
            safe=not should_block,
            categories=flagged,
            scores=scores,
            action=self.action if should_block else ModerationAction.ALLOW,
            reason=(
                f"Content flagged for: {', '.join(blocking)}" if should_block else None
            ),
        )

    @staticmethod
    def _allow() -> ModerationResult:
        return ModerationResult(safe=True, action=ModerationAction.ALLOW)
