# repair_tracker/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite+aiosqlite:///./repair_tracker.db"
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    # Batas jumlah state session (cached stats) yang disimpan di memory
    SESSION_STATE_MAX: int = 1000

    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000"]
    ALLOWED_HOSTS: List[str] = ["*"]

    LOG_LEVEL: str = "INFO"
    SQL_ECHO: bool = False

    # Connection pool, dipakai bareng semua request. max_overflow selalu 0.
    DB_POOL_SIZE: int = 5
    DB_POOL_TIMEOUT: int = 30

    # ERP (erp.aero)
    ERP_API_BASE_URL: str = "https://wapi.erp.aero/v1"
    ERP_CID: Optional[str] = None
    ERP_EMAIL: Optional[str] = None
    ERP_PASSWORD: Optional[str] = None
    ERP_SOURCE: str = "genthrust-ro-tracker"
    ERP_PAGE_SIZE: int = 50
    ERP_REQUEST_DELAY_SECONDS: float = 0.5
    ERP_TIMEOUT: int = 30

    # OAuth provider, untuk refresh token background worker
    OAUTH_TOKEN_URL: str = "https://login.microsoftonline.com/common/oauth2/v2.0/token"
    OAUTH_CLIENT_ID: Optional[str] = None
    OAUTH_CLIENT_SECRET: Optional[str] = None
    OAUTH_SCOPE: str = "openid profile email User.Read Files.ReadWrite.All Sites.ReadWrite.All offline_access"
    OAUTH_PROVIDER: str = "microsoft-entra-id"

    # Cloud drive (documents)
    GRAPH_API_BASE_URL: str = "https://graph.microsoft.com/v1.0"
    SHAREPOINT_SITE_ID: Optional[str] = None
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024

    # Background task dispatcher
    TASKS_API_URL: str = "https://api.trigger.dev"
    TASKS_SECRET_KEY: Optional[str] = None

    # Email
    SMTP_HOST: str = "localhost"
    SMTP_PORT: int = 587
    SMTP_USERNAME: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_USE_TLS: bool = True
    SMTP_FROM: str = "repairs@genthrust.net"
    FOLLOWUP_FALLBACK_EMAIL: str = "repairs@genthrust.net"
    APP_URL: str = "http://localhost:3000"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding='utf-8', extra='ignore')

    @property
    def email_config(self) -> dict:
        return {
            'smtp_host': self.SMTP_HOST,
            'smtp_port': self.SMTP_PORT,
            'smtp_username': self.SMTP_USERNAME,
            'smtp_password': self.SMTP_PASSWORD,
            'smtp_use_tls': self.SMTP_USE_TLS,
            'smtp_from': self.SMTP_FROM,
            'app_url': self.APP_URL,
            'followup_fallback_email': self.FOLLOWUP_FALLBACK_EMAIL,
        }

    @property
    def oauth_config(self) -> dict:
        return {
            'provider': self.OAUTH_PROVIDER,
            'token_url': self.OAUTH_TOKEN_URL,
            'client_id': self.OAUTH_CLIENT_ID,
            'client_secret': self.OAUTH_CLIENT_SECRET,
            'scope': self.OAUTH_SCOPE,
        }

settings = Settings()
