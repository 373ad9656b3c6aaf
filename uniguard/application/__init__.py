"""Application Layer - security engines and plugin orchestration.

Structure:
- engines/ : built-in checks (validation, rate limiting, PII)
- engines/security_plugins/ : plugin registry, pipeline and bundled plugins
"""
