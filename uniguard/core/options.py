"""
Generation Options - request schema handed to the security pipeline.

The surrounding generation layer builds a GenerateOptions, passes it through
the pipeline, and dispatches the (possibly mutated) result to a provider.
"""

import re
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class MessageRole(str, Enum):
    """Message roles."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class SecurityPreset(str, Enum):
    """Named security configurations."""

    STRICT = "strict"
    MODERATE = "moderate"
    PERMISSIVE = "permissive"


class Message(BaseModel):
    """Chat message. Content is text or a list of content parts (text, image)."""

    role: MessageRole
    content: Union[str, list[dict[str, Any]]]
    name: Optional[str] = None
    tool_call_id: Optional[str] = None

    model_config = ConfigDict(use_enum_values=True)


# =============================================================================
# Security configuration
# =============================================================================


class InputValidationConfig(BaseModel):
    max_prompt_length: Optional[int] = None
    max_messages_length: Optional[int] = None
    sanitize_inputs: bool = False
    blocked_patterns: list[re.Pattern] = Field(default_factory=list)


class RateLimitingConfig(BaseModel):
    max_requests_per_minute: Optional[int] = None
    max_requests_per_hour: Optional[int] = None
    user_id: Optional[str] = None


class ModerationConfig(BaseModel):
    enabled: bool = False
    provider: Optional[str] = None  # "openai"
    threshold: Optional[str] = None  # low, medium, high
    on_violation: Optional[str] = None  # block, warn, log


class PIIDetectionConfig(BaseModel):
    enabled: bool = False
    redact: bool = False


class SecurityConfig(BaseModel):
    """Inline security configuration, optionally layered over a preset."""

    preset: Optional[SecurityPreset] = None
    input_validation: Optional[InputValidationConfig] = None
    rate_limiting: Optional[RateLimitingConfig] = None
    moderation: Optional[ModerationConfig] = None
    pii_detection: Optional[PIIDetectionConfig] = None


# =============================================================================
# Generation options
# =============================================================================


class GenerateOptions(BaseModel):
    """A single generation request: model, prompt or messages, parameters."""

    model: str
    prompt: Optional[str] = None
    messages: Optional[list[Message]] = None

    # Generation parameters
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None
    stop_sequences: Optional[list[str]] = None
    stream: bool = False

    # Security
    security: Optional[Union[SecurityPreset, SecurityConfig]] = None

    def get_prompt_text(self) -> str:
        """Flat prompt if set, otherwise the text of all messages joined by newlines."""
        if self.prompt:
            return self.prompt

        if self.messages:
            return "\n".join(
                m.content if isinstance(m.content, str) else ""
                for m in self.messages
            )

        return ""

    def with_prompt_text(self, text: str) -> "GenerateOptions":
        """
        Return a copy whose prompt text is replaced by `text`.

        For message lists the lines of `text` are mapped back onto the
        messages they were joined from. When the line count no longer
        matches, only the changed run of lines is rewritten: lines shared
        with the old text at either end stay in their messages, and the
        changed lines go to the last message they touch.
        """
        if self.prompt:
            return self.model_copy(update={"prompt": text})

        if not self.messages:
            return self

        line_counts = [
            (m.content.count("\n") + 1) if isinstance(m.content, str) else 1
            for m in self.messages
        ]
        old_lines = self.get_prompt_text().split("\n")
        lines = text.split("\n")

        if len(old_lines) == len(lines):
            messages = []
            offset = 0
            for message, count in zip(self.messages, line_counts):
                chunk = lines[offset : offset + count]
                offset += count
                if isinstance(message.content, str):
                    message = message.model_copy(update={"content": "\n".join(chunk)})
                messages.append(message)
            return self.model_copy(update={"messages": messages})

        # Common leading and trailing lines bound the changed run
        shortest = min(len(old_lines), len(lines))
        head = 0
        while head < shortest and old_lines[head] == lines[head]:
            head += 1
        tail = 0
        while tail < shortest - head and old_lines[-1 - tail] == lines[-1 - tail]:
            tail += 1
        if head + tail == len(old_lines):
            # Pure insertion; widen to one old line so a message owns it
            if head:
                head -= 1
            else:
                tail -= 1

        old_end = len(old_lines) - tail
        changed = lines[head : len(lines) - tail]

        spans = []
        offset = 0
        for count in line_counts:
            spans.append((offset, offset + count))
            offset += count
        touched = [
            i for i, (start, end) in enumerate(spans) if start < old_end and end > head
        ]
        owner = next(
            (i for i in reversed(touched) if isinstance(self.messages[i].content, str)),
            None,
        )

        messages = []
        for i, (message, (start, end)) in enumerate(zip(self.messages, spans)):
            if i in touched and isinstance(message.content, str):
                kept_before = old_lines[start:head] if start < head else []
                kept_after = old_lines[old_end:end] if end > old_end else []
                middle = changed if i == owner else []
                content = "\n".join(kept_before + middle + kept_after)
                message = message.model_copy(update={"content": content})
            messages.append(message)
        return self.model_copy(update={"messages": messages})
