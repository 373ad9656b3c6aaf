"""
Security check results.

Values returned by security hooks and by the built-in checks, and the
aggregate handed to after_security hooks and to the caller.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ValidationResult(BaseModel):
    """Result from a validation hook."""

    valid: bool
    error: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


class RateLimitResult(BaseModel):
    """Result from a rate_limit hook."""

    allowed: bool
    remaining: Optional[int] = None
    reset_in: Optional[float] = None  # seconds
    error: Optional[str] = None


class PIIEntity(BaseModel):
    """A detected PII span."""

    type: str
    text: str
    start: int
    end: int
    confidence: Optional[float] = None


class PIIDetectionResult(BaseModel):
    """Result from PII detection."""

    detected: bool
    patterns: list[str] = Field(default_factory=list)
    redacted: str
    entities: Optional[list[PIIEntity]] = None


class ModerationAction(str, Enum):
    BLOCK = "block"
    WARN = "warn"
    ALLOW = "allow"


class ModerationResult(BaseModel):
    """Result from a moderation hook."""

    safe: bool
    categories: list[str] = Field(default_factory=list)
    scores: Optional[dict[str, float]] = None
    action: Optional[ModerationAction] = None
    reason: Optional[str] = None

    model_config = ConfigDict(use_enum_values=True)


class SecurityCheckResults(BaseModel):
    """Aggregated results of one pipeline run."""

    validation: list[ValidationResult] = Field(default_factory=list)
    rate_limit: list[RateLimitResult] = Field(default_factory=list)
    pii_detection: list[PIIDetectionResult] = Field(default_factory=list)
    moderation: list[ModerationResult] = Field(default_factory=list)
    execution_time: float = 0.0  # milliseconds
    modified: bool = False

    def to_api_response(self) -> dict:
        """Summary suitable for logs and API responses."""
        return {
            "validation_checks": len(self.validation),
            "rate_limit_checks": len(self.rate_limit),
            "pii_detected": sorted(
                {p for r in self.pii_detection if r.detected for p in r.patterns}
            ),
            "moderation_flags": sorted(
                {c for r in self.moderation if not r.safe for c in r.categories}
            ),
            "execution_time_ms": round(self.execution_time, 2),
            "modified": self.modified,
        }
