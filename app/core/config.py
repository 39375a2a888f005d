from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    All config comes from .env file.
    Change values in .env, they apply everywhere.
    """

    # ── Database ──────────────────────────────────────────
    DATABASE_URL: str                      # asyncpg, used by FastAPI
    DATABASE_SYNC_URL: str | None = None   # psycopg2, read by alembic/env.py

    # ── JWT (staff back office) ───────────────────────────
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    BCRYPT_ROUNDS: int = 12

    # ── Applicant session cookie ──────────────────────────
    SESSION_SECRET_KEY: str | None = None  # falls back to SECRET_KEY
    SESSION_COOKIE_NAME: str = "docportal_session"
    SESSION_MAX_AGE_SECONDS: int = 2 * 60 * 60

    # ── Verification policies ─────────────────────────────
    OTP_TTL_MINUTES: int = 10
    VERIFICATION_WINDOW_MINUTES: int = 30
    DUPLICATE_WINDOW_HOURS: int = 24
    OTP_BYPASS_ENABLED: bool = False       # honoured only when DEBUG is on

    # ── Document requests ─────────────────────────────────
    TRACKING_ID_PREFIX: str = "BNHS"
    TRACKING_ID_MAX_ATTEMPTS: int = 100
    DEFAULT_PROCESSING_DAYS: int = 7

    # ── Audit retention ───────────────────────────────────
    AUDIT_RETENTION_DAYS: int = 365

    # ── Email (Brevo / Sendinblue) ────────────────────────
    SENDINBLUE_API_KEY: str | None = None
    EMAIL_FROM: str = "registrar@bnhs.edu.ph"
    EMAIL_FROM_NAME: str = "BNHS Registrar"
    EMAIL_API_URL: str = "https://api.brevo.com/v3/smtp/email"
    EMAIL_TIMEOUT_SECONDS: float = 20.0

    # ── CORS ──────────────────────────────────────────────
    ALLOWED_ORIGINS: str = "http://localhost:5173"

    # ── App ───────────────────────────────────────────────
    APP_NAME: str = "BNHS Document Request Portal"
    APP_ENV: str = "production"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def origins_list(self) -> list[str]:
        """Splits comma-separated ALLOWED_ORIGINS into a list."""
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]

    @property
    def session_secret(self) -> str:
        return self.SESSION_SECRET_KEY or self.SECRET_KEY

    @property
    def migration_url(self) -> str:
        """Sync URL for Alembic, derived from DATABASE_URL when DATABASE_SYNC_URL is unset."""
        if self.DATABASE_SYNC_URL:
            return self.DATABASE_SYNC_URL
        return (
            self.DATABASE_URL
            .replace("+asyncpg", "+psycopg2")
            .replace("+aiosqlite", "")
        )

    @property
    def otp_bypass_active(self) -> bool:
        return self.DEBUG and self.OTP_BYPASS_ENABLED


@lru_cache()
def get_settings() -> Settings:
    return Settings()


# Single instance used across the entire app
settings = get_settings()
