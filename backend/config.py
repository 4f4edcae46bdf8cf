from __future__ import annotations
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "ittar_store"

    # Auth
    JWT_SECRET: str = "your-secret-key"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRES_DAYS: int = 7
    ADMIN_EMAIL: str = "admin@mybrand.com"
    ADMIN_PASSWORD: str = "admin123"

    # Mail
    EMAIL_PROVIDER: str = "smtp"  # smtp | resend
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_USE_TLS: bool = True
    RESEND_API_KEY: Optional[str] = None
    MAIL_FROM_NAME: str = "A & N"

    # Image storage
    CLOUDINARY_CLOUD_NAME: Optional[str] = None
    CLOUDINARY_API_KEY: Optional[str] = None
    CLOUDINARY_API_SECRET: Optional[str] = None
    UPLOAD_FOLDER: str = "mybrand/products"
    MAX_UPLOAD_MB: int = 5

    FRONTEND_URL: str = "http://localhost:3000"
    LOG_LEVEL: str = "INFO"
    TAX_RATE: float = 0.1

    @property
    def smtp_user(self) -> str:
        return self.SMTP_USER or self.ADMIN_EMAIL

    @property
    def smtp_password(self) -> str:
        return self.SMTP_PASSWORD or self.ADMIN_PASSWORD


settings = Settings()


def get_settings() -> Settings:
    return settings
