from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    APP_ENV: str = "local"
    APP_NAME: str = "flex-form"
    LOG_LEVEL: str = "INFO"

    USER_JWT_SECRET: str = "change_me_user"
    USER_JWT_TTL_MINUTES: int = 480
    ADMIN_EMAILS: str = "admin@company.com"
    # pbkdf2_sha256 hash; the admin role is never granted while empty
    ADMIN_PASSWORD_HASH: str = ""

    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:8081"

    # Local persistence for templates, drafts and cached profiles
    DATABASE_URL: str = "sqlite+pysqlite:///./flexform.db"

    # Hosted submission table (PostgREST)
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: str = ""
    SUPABASE_SERVICE_KEY: str = ""
    SUBMISSIONS_TABLE: str = "gemba_requests"
    STORE_TIMEOUT_SECONDS: float = 15.0

    KEY_DERIVATION_SALT: str = "flex-form-salt-2025"
    KEY_DERIVATION_ITERATIONS: int = 100_000
    FLEXFORM_MASTER_PASSWORD: str = ""
    ENCRYPTED_SERVICE_KEY: str = ""

    IMPORT_BATCH_SIZE: int = 100
    IMPORT_UPLOAD_BATCH_SIZE: int = 50
    IMPORT_DELAY_MS: int = 0
    IMPORT_SOURCE_FILE: str = "Gemba Requests.csv"
    IMPORT_USER: str = "data-import@system"

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def admin_emails_list(self) -> List[str]:
        return [e.strip().lower() for e in self.ADMIN_EMAILS.split(",") if e.strip()]

settings = Settings()
