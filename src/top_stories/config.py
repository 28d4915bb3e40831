from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    nyt_api_key: str | None = None
    nyt_base_url: str = "https://api.nytimes.com/svc/topstories/v2"

    request_timeout_ms: int = 10000
    max_attempts: int = 3
    initial_backoff_ms: int = 1000

    state_file: str | None = None
    default_section: str = "home"
    log_level: str = "INFO"
    log_format: str = "json"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


settings = Settings()
