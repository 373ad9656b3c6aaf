"""
Input Validation

Length limits, message count limits, blocked patterns (prompt injection
signatures) and basic sanitization. Sanitization runs only once the length
and pattern checks have passed.
"""

import re

from uniguard.core.options import GenerateOptions, InputValidationConfig
from uniguard.exceptions import ValidationError


_NULL_BYTES = re.compile(r"\x00")
_WHITESPACE = re.compile(r"\s+")


def sanitize_text(text: str) -> str:
    """Strip null bytes, collapse whitespace runs, trim."""
    text = _NULL_BYTES.sub("", text)
    text = _WHITESPACE.sub(" ", text)
    return text.strip()


def validate_input(options: GenerateOptions, config: InputValidationConfig) -> None:
    """
    Validate options against input rules. Sanitizes `options` in place.

    Raises:
        ValidationError: on the first violated rule
    """
    if options.prompt and config.max_prompt_length:
        if len(options.prompt) > config.max_prompt_length:
            raise ValidationError(
                f"Prompt exceeds maximum length of {config.max_prompt_length} characters",
                details={
                    "length": len(options.prompt),
                    "max": config.max_prompt_length,
                },
            )

    if options.messages and config.max_messages_length:
        if len(options.messages) > config.max_messages_length:
            raise ValidationError(
                f"Messages array exceeds maximum length of {config.max_messages_length}",
                details={
                    "length": len(options.messages),
                    "max": config.max_messages_length,
                },
            )

    if config.blocked_patterns:
        text = options.get_prompt_text()
        # First match wins
        for pattern in config.blocked_patterns:
            if pattern.search(text):
                raise ValidationError(
                    "Input contains blocked pattern (potential prompt injection)",
                    details={"pattern": pattern.pattern},
                )

    if config.sanitize_inputs:
        if options.prompt:
            options.prompt = sanitize_text(options.prompt)
        if options.messages:
            for message in options.messages:
                if isinstance(message.content, str):
                    message.content = sanitize_text(message.content)
