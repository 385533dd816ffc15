"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.01.00"

    # Database
    DATABASE_URL: str

    # Logging level for CLI and scheduled runs
    LOG_LEVEL: str = "INFO"

    # Uploaded import files and generated exports live under this directory
    STORAGE_ROOT: str = "storage"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Billing defaults (used when a request does not name them)
    DEFAULT_RATE_TYPE_ID: int | None = None
    DEFAULT_TAX_RATE_ID: int | None = None
    INVOICE_DUE_DAYS: int = 7

    # Renewals within this many days of expiry are "early"
    EARLY_RENEWAL_WINDOW_DAYS: int = 7

    # Members
    MEMBER_REFERENCE_PREFIX: str = "MBR"
    DEFAULT_PHONE_COUNTRY_CODE: str = "250"

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
