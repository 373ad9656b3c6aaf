from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from functools import lru_cache
import warnings


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="UNIGUARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Environment
    environment: str = "development"
    log_level: str = "INFO"

    # Security defaults
    default_security_preset: str = "moderate"
    rate_limit_cleanup_probability: float = 0.01

    # Redis (distributed rate limiting plugin)
    redis_url: str = "redis://localhost:6379"

    # Moderation plugin
    openai_api_key: str = ""
    openai_moderation_url: str = "https://api.openai.com/v1/moderations"
    moderation_timeout: float = 10.0

    # Audit
    audit_include_prompts: bool = False  # privacy: off by default

    @field_validator("default_security_preset")
    @classmethod
    def validate_preset(cls, v: str) -> str:
        if v not in ("strict", "moderate", "permissive"):
            raise ValueError(f"Unknown security preset: {v}")
        return v

    @field_validator("rate_limit_cleanup_probability")
    @classmethod
    def validate_probability(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("rate_limit_cleanup_probability must be within [0, 1]")
        return v

    def validate_production_settings(self) -> list[str]:
        """Validate settings for production deployment. Returns list of warnings."""
        issues = []

        if self.environment == "production":
            if self.log_level.upper() == "DEBUG":
                issues.append("SECURITY: DEBUG logging in production environment")

            if self.default_security_preset == "permissive":
                issues.append(
                    "SECURITY: permissive security preset is the default in production"
                )

            if self.audit_include_prompts:
                issues.append("WARNING: prompts are written to the audit log")

        return issues


@lru_cache()
def get_settings() -> Settings:
    instance = Settings()

    issues = instance.validate_production_settings()
    for issue in issues:
        warnings.warn(issue, RuntimeWarning)

    return instance


settings = get_settings()
