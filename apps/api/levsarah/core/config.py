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
    DATABASE_URL: str = "sqlite:///./levsarah.db"

    # Session Token (supports key rotation)
    JWT_SECRET: str = "change-this-in-production"
    JWT_SECRET_PREVIOUS: str = ""  # Set during rotation, clear after
    JWT_EXPIRES_HOURS: int = 24 * 30

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Frontend (magic links and invite links point here)
    FRONTEND_URL: str = "http://localhost:3000"

    # Internal scheduled endpoints (cron jobs) and magic-token storage
    INTERNAL_SECRET: str = ""

    # Twilio WhatsApp
    TWILIO_SID: str = ""
    TWILIO_TOKEN: str = ""
    WHATSAPP_SENDER: str = ""  # E.164 number registered as WhatsApp sender
    WHATSAPP_API_BASE: str = "https://api.twilio.com/2010-04-01"
    WHATSAPP_TIMEOUT_SECONDS: float = 15.0
    WHATSAPP_VALIDATE_SIGNATURE: bool = False
    WHATSAPP_WEBHOOK_URL: str = ""  # Public URL Twilio signs; request URL when empty

    # Pre-approved WhatsApp content templates
    WHATSAPP_TEMPLATE_CONFIRMATION: str = "HX5acc3b264e947ebfaf4c0a87d41b67ed"
    WHATSAPP_TEMPLATE_REMINDER: str = "HX922d58d14a871614c1595cd9748d6367"
    WHATSAPP_TEMPLATE_GAP_ALERT: str = "HX92aa09f05f109de0ff8afc3762f9b2f2"
    WHATSAPP_MAGIC_LINK_TEMPLATE_SID: str = ""  # Plain text link when empty

    # Notification dispatch
    NOTIFICATION_BATCH_SIZE: int = 50

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    # Rate Limiting (requests per minute)
    RATE_LIMIT_AUTH: int = 10  # Magic-link validate/consume/resend
    RATE_LIMIT_WEBHOOK: int = 120  # Inbound WhatsApp messages
    RATE_LIMIT_API: int = 60  # General API

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def jwt_secrets(self) -> list[str]:
        """Returns list of valid secrets (current first, then previous if set)."""
        secrets = [self.JWT_SECRET]
        if self.JWT_SECRET_PREVIOUS:
            secrets.append(self.JWT_SECRET_PREVIOUS)
        return secrets

    @property
    def cookie_secure(self) -> bool:
        """Secure cookies only in production."""
        return self.ENV != "dev"


settings = Settings()
