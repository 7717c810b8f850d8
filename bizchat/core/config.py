from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str = "sqlite:///./bizchat.db"
    project_name: str = "BizChat API"
    api_v1_prefix: str = "/api/v1"

    # Debug flag; also raises the default log level to DEBUG
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = "INFO"

    # The chat widget is embedded on arbitrary customer sites
    cors_origins: list[str] = ["*"]

    # Gemini AI configuration
    # gemini_api_key: used by the metered (streamed) chat endpoint only; the free tier
    #   hands the prompt off to the relay and never calls the model itself
    gemini_api_key: str | None = None
    gemini_model: str = "gemini-2.5-flash"
    gemini_temperature: float = 0.7
    gemini_max_output_tokens: int = 1000
    # Per-request HTTP timeout for the upstream model
    gemini_timeout_seconds: int = 60
    # Hard deadline for a whole streamed answer
    stream_timeout_seconds: int = 120
    # Used when RetryInfo is not present on a 429
    gemini_retry_after_seconds: int = 60

    # Plans / metering
    free_plan_name: str = "free"
    # Fallback when the owner's plan or the plans table row cannot be resolved
    free_message_limit: int = 100

    # Response cache
    cache_enabled: bool = True
    # How many cached rows per business are scanned for fuzzy matches
    cache_scan_limit: int = 50
    cache_similarity_threshold: float = 0.7

    # When true the metered endpoint refuses free-tier businesses (useFree: true)
    enforce_tier_on_metered: bool = False
    # Write assistant replies back to chat_messages on the metered tier
    persist_assistant_messages: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="forbid",
        populate_by_name=True,
    )


settings = Settings()


def get_settings() -> Settings:
    """FastAPI dependency returning the process-wide settings object."""
    return settings
