"""Security engines - built-in checks and the plugin pipeline."""

from .pii import detect_pii, PII_PATTERNS
from .validation import validate_input, sanitize_text
from .rate_limiter import RateLimiter, default_rate_limiter, check_rate_limit
from .security import apply_security_middleware

__all__ = [
    # PII
    "detect_pii",
    "PII_PATTERNS",
    # Validation
    "validate_input",
    "sanitize_text",
    # Rate limiting
    "RateLimiter",
    "default_rate_limiter",
    "check_rate_limit",
    # Middleware
    "apply_security_middleware",
]
