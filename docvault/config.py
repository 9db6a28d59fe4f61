"""
Application settings.
"""
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./data/docvault.db"

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8081"]

    # Blob storage
    DATA_DIR: str = "./data"
    STORAGE_DIR: str = "./data/documents"
    MAX_UPLOAD_BYTES: int = 15 * 1024 * 1024

    # Signed URLs
    SECRET_KEY: str = "your-secret-key-change-in-production"
    PUBLIC_BASE_URL: str = "http://localhost:8000"
    SIGNED_URL_TTL_SECONDS: int = 3600

    # Extraction model
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-2.0-flash"
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1"
    EXTRACTION_TIMEOUT_SECONDS: float = 60.0

    # Reminders
    REMINDER_LEAD_DAYS: int = 90

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
