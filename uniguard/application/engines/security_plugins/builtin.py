"""
Built-in Security Plugins

Default plugins that ship with uniguard. They cover the same ground as the
built-in checks, but run inside the plugin pipeline so they can be mixed
with third-party plugins and ordered by priority.
"""

import re
from typing import Optional

from uniguard.exceptions import RateLimitError
from uniguard.application.engines.pii import detect_pii
from uniguard.application.engines.rate_limiter import RateLimiter
from uniguard.application.engines.security_plugins.base import (
    PIIDetectionResult,
    PluginConfig,
    PluginContext,
    PluginHooks,
    PluginMetadata,
    PluginPriority,
    RateLimitResult,
    SecurityPlugin,
    ValidationResult,
)


class PromptInjectionPlugin(SecurityPlugin):
    """
    Rejects prompt injection attacks.

    Covers OWASP LLM01: Prompt Injection
    - Instruction override attempts
    - Role hijacking
    - System prompt injection
    - Token injection
    - Safety bypass attempts

    Only user text is scanned; system prompts are trusted.
    """

    metadata = PluginMetadata(
        name="prompt-injection",
        version="1.0.0",
        description="Rejects prompt injection attacks (OWASP LLM01)",
    )
    config = PluginConfig(priority=PluginPriority.CRITICAL)

    PATTERNS = [
        (r"ignore\s+(previous|all|above)\s+instructions", "instruction_override"),
        (r"disregard\s+(previous|all|above)", "instruction_override"),
        (r"forget\s+(everything|all|previous)", "memory_manipulation"),
        (r"you\s+are\s+now\s+", "role_hijacking"),
        (r"pretend\s+(you're|to\s+be)", "role_hijacking"),
        (r"new\s+instructions?:", "instruction_injection"),
        (r"system\s*:\s*", "system_prompt_injection"),
        (r"\[system\]", "system_prompt_injection"),
        (r"<\|im_start\|>", "token_injection"),
        (r"<\|endoftext\|>", "token_injection"),
        (r"###\s*instruction", "delimiter_injection"),
        (r"ignore\s+safety", "safety_bypass"),
        (r"bypass\s+(filter|safety|restriction)", "safety_bypass"),
        (r"jailbreak", "jailbreak_attempt"),
        (r"DAN\s*mode", "jailbreak_attempt"),
        (r"developer\s+mode", "jailbreak_attempt"),
    ]

    def __init__(self):
        self._compiled = []
        super().__init__()

    def initialize(self) -> None:
        self._compiled = [
            (re.compile(p, re.IGNORECASE), name)
            for p, name in self.PATTERNS
        ]

    def build_hooks(self) -> PluginHooks:
        return PluginHooks(validation=self.validate)

    def validate(self, context: PluginContext) -> ValidationResult:
        for content in _user_texts(context):
            for pattern, pattern_name in self._compiled:
                if pattern.search(content):
                    return ValidationResult(
                        valid=False,
                        error=f"Potential prompt injection: {pattern_name}",
                        metadata={"pattern": pattern_name},
                    )

        return ValidationResult(valid=True)


class SecretsPlugin(SecurityPlugin):
    """
    Rejects prompts carrying secrets and credentials.

    Covers OWASP LLM06: Sensitive Information Disclosure
    """

    metadata = PluginMetadata(
        name="secrets",
        version="1.0.0",
        description="Rejects API keys, passwords, and credentials",
    )
    config = PluginConfig(priority=PluginPriority.HIGH)

    PATTERNS = [
        (r"(?i)(password|passwd|pwd)\s*[:=]\s*\S+", "password"),
        (r"(?i)(api[_-]?key|apikey)\s*[:=]\s*\S+", "api_key"),
        (r"(?i)(secret|token)\s*[:=]\s*\S+", "secret_token"),
        (r"sk-[a-zA-Z0-9]{20,}", "openai_api_key"),
        (r"(?i)bearer\s+[a-zA-Z0-9\-_.]{20,}", "bearer_token"),
        (r"-----BEGIN\s+(RSA\s+)?PRIVATE\s+KEY-----", "private_key"),
        (r"(?i)(aws_access_key_id|aws_secret)\s*[:=]\s*\S+", "aws_credential"),
        (r"ghp_[a-zA-Z0-9]{36}", "github_token"),
        (r"xox[baprs]-[a-zA-Z0-9-]+", "slack_token"),
        (r"(?i)AKIA[0-9A-Z]{16}", "aws_access_key"),
        (r"(?i)(mysql|postgres|mongodb)://[^:]+:[^@]+@", "database_url"),
    ]

    def __init__(self):
        self._compiled = []
        super().__init__()

    def initialize(self) -> None:
        self._compiled = [
            (re.compile(p), name)
            for p, name in self.PATTERNS
        ]

    def build_hooks(self) -> PluginHooks:
        return PluginHooks(validation=self.validate)

    def validate(self, context: PluginContext) -> ValidationResult:
        found = []
        text = context.options.get_prompt_text()

        for pattern, secret_type in self._compiled:
            if pattern.search(text):
                found.append(secret_type)

        if found:
            return ValidationResult(
                valid=False,
                error=f"Potential {found[0]} detected in prompt",
                metadata={"secrets": found},
            )
        return ValidationResult(valid=True)


class PIIRedactionPlugin(SecurityPlugin):
    """
    Redacts emails, phone numbers, SSNs, credit cards and IP addresses.
    """

    metadata = PluginMetadata(
        name="pii-redaction",
        version="1.0.0",
        description="Redacts emails, phone numbers, SSN, credit cards, IPs",
    )
    config = PluginConfig(priority=PluginPriority.HIGH)

    def build_hooks(self) -> PluginHooks:
        return PluginHooks(pii_detection=self.detect)

    def detect(self, text: str, context: PluginContext) -> PIIDetectionResult:
        result = detect_pii(text)
        if result.detected:
            context.metadata.setdefault("pii_patterns", []).extend(result.patterns)
        return result


class InMemoryRateLimitPlugin(SecurityPlugin):
    """
    Per-user rate limiting in process memory.

    Reports denials as results rather than raising, so the pipeline can
    attribute them to this plugin.
    """

    metadata = PluginMetadata(
        name="in-memory-rate-limit",
        version="1.0.0",
        description="Sliding window rate limiting in process memory",
    )
    config = PluginConfig(priority=PluginPriority.HIGH)

    def __init__(
        self,
        max_requests_per_minute: Optional[int] = 60,
        max_requests_per_hour: Optional[int] = 1000,
        limiter: Optional[RateLimiter] = None,
    ):
        if limiter is None:
            limiter = RateLimiter(
                max_requests_per_minute=max_requests_per_minute,
                max_requests_per_hour=max_requests_per_hour,
            )
        self.limiter = limiter
        super().__init__()

    def build_hooks(self) -> PluginHooks:
        return PluginHooks(rate_limit=self.check)

    def check(self, context: PluginContext) -> RateLimitResult:
        try:
            self.limiter.check_limit(context.user_id)
        except RateLimitError as e:
            return RateLimitResult(
                allowed=False,
                remaining=0,
                reset_in=e.reset_in,
                error=e.message,
            )

        return RateLimitResult(
            allowed=True,
            remaining=self.limiter.remaining(context.user_id),
        )

    def cleanup(self) -> None:
        self.limiter.reset()


def _user_texts(context: PluginContext) -> list[str]:
    """Text written by the user: the flat prompt, or user-role messages."""
    options = context.options
    if options.prompt:
        return [options.prompt]

    return [
        m.content
        for m in options.messages or []
        if m.role == "user" and isinstance(m.content, str)
    ]


async def register_builtin_plugins(registry) -> None:
    """Register all built-in plugins with the registry."""
    plugins = [
        PromptInjectionPlugin(),
        SecretsPlugin(),
        PIIRedactionPlugin(),
        InMemoryRateLimitPlugin(),
    ]

    for plugin in plugins:
        await registry.register(plugin)
