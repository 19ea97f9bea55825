"""Application configuration using Pydantic Settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Marketplace reports API
    SP_API_BASE_URL: str = "https://sellingpartnerapi-na.amazon.com"
    SP_API_ACCESS_TOKEN: str = ""  # Issued elsewhere, sent as-is
    REPORTS_API_VERSION: str = "2021-06-30"
    DEFAULT_MARKETPLACE_ID: str = "ATVPDKIKX0DER"

    # Polling
    REPORT_POLL_INTERVAL: float = 5.0
    REPORT_TIMEOUT: float = 300.0
    REPORT_PAGE_SIZE: int = 10
    REPORT_CANCEL_ON_TIMEOUT: bool = False
    REPORT_RUN_RETENTION: int = 100  # Finished runs kept in memory

    # HTTP transport
    HTTP_TIMEOUT: float = 30.0
    HTTP_MAX_RETRIES: int = 3

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)


# Global settings instance
settings = Settings()
