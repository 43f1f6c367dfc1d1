from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="",
        extra="ignore",
    )

    app_name: str = "scriptdesk"
    environment: str = Field(default="local", validation_alias=AliasChoices("ENVIRONMENT", "SCRIPTDESK_ENVIRONMENT"))
    database_url: str = Field(
        default="postgresql+asyncpg://postgres:postgres@db:5432/scriptdesk",
        validation_alias=AliasChoices("DATABASE_URL", "SCRIPTDESK_DATABASE_URL"),
    )
    data_dir: str = Field(default="/data", validation_alias=AliasChoices("DATA_DIR", "SCRIPTDESK_DATA_DIR"))
    public_base_url: str = Field(
        default="http://localhost:8080", validation_alias=AliasChoices("PUBLIC_BASE_URL", "SCRIPTDESK_PUBLIC_BASE_URL")
    )
    secret_key: str = Field(default="change-me", validation_alias=AliasChoices("SECRET_KEY", "SCRIPTDESK_SECRET_KEY"))
    admin_email: str | None = Field(default=None, validation_alias=AliasChoices("ADMIN_EMAIL", "SCRIPTDESK_ADMIN_EMAIL"))
    admin_password: str | None = Field(default=None, validation_alias=AliasChoices("ADMIN_PASSWORD", "SCRIPTDESK_ADMIN_PASSWORD"))
    token_expiry_hours: int = Field(default=24, validation_alias=AliasChoices("TOKEN_EXPIRY_HOURS", "SCRIPTDESK_TOKEN_EXPIRY_HOURS"))
    signed_url_ttl_sec: int = Field(default=3600, validation_alias=AliasChoices("SIGNED_URL_TTL_SEC", "SCRIPTDESK_SIGNED_URL_TTL_SEC"))
    max_upload_mb: int = Field(default=10, validation_alias=AliasChoices("MAX_UPLOAD_MB", "SCRIPTDESK_MAX_UPLOAD_MB"))
    stripe_secret_key: str | None = Field(default=None, validation_alias=AliasChoices("STRIPE_SECRET_KEY", "SCRIPTDESK_STRIPE_SECRET_KEY"))
    stripe_api_url: str = Field(
        default="https://api.stripe.com/v1", validation_alias=AliasChoices("STRIPE_API_URL", "SCRIPTDESK_STRIPE_API_URL")
    )
    payment_bypass_tiers: str = Field(
        default="free,tier3", validation_alias=AliasChoices("PAYMENT_BYPASS_TIERS", "SCRIPTDESK_PAYMENT_BYPASS_TIERS")
    )
    telegram_bot_token: str | None = Field(default=None, validation_alias=AliasChoices("TELEGRAM_BOT_TOKEN", "SCRIPTDESK_TELEGRAM_BOT_TOKEN"))
    telegram_chat_id: str | None = Field(default=None, validation_alias=AliasChoices("TELEGRAM_CHAT_ID", "SCRIPTDESK_TELEGRAM_CHAT_ID"))
    scheduler_enabled: bool = Field(default=True, validation_alias=AliasChoices("SCHEDULER_ENABLED", "SCRIPTDESK_SCHEDULER_ENABLED"))
    contact_sync_interval_minutes: int = Field(
        default=10, validation_alias=AliasChoices("CONTACT_SYNC_INTERVAL_MINUTES", "SCRIPTDESK_CONTACT_SYNC_INTERVAL_MINUTES")
    )
    pdf_header_logo: str | None = Field(default=None, validation_alias=AliasChoices("PDF_HEADER_LOGO", "SCRIPTDESK_PDF_HEADER_LOGO"))
    pdf_footer_logo: str | None = Field(default=None, validation_alias=AliasChoices("PDF_FOOTER_LOGO", "SCRIPTDESK_PDF_FOOTER_LOGO"))
    company_name: str = Field(
        default="Honey & Hemlock Productions", validation_alias=AliasChoices("COMPANY_NAME", "SCRIPTDESK_COMPANY_NAME")
    )

    @property
    def async_database_url(self) -> str:
        if self.database_url.startswith("postgresql+"):
            return self.database_url
        if self.database_url.startswith("postgresql://"):
            return self.database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return self.database_url

    @property
    def bypass_tier_ids(self) -> set[str]:
        return {t.strip() for t in self.payment_bypass_tiers.split(",") if t.strip()}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
