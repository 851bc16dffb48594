import os
from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env
load_dotenv()

# Security settings
SECRET_KEY = os.getenv("SECRET_KEY", "supersecretkey")  # Replace with the backend's JWT secret in production
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60))

# Storage
ARCHIVE_DIR = os.getenv("ARCHIVE_DIR", "./data/sow_archive")  # one JSON file per teacher

# Scheme of work generation
DEFAULT_LESSONS_PER_WEEK = int(os.getenv("DEFAULT_LESSONS_PER_WEEK", 5))

# CORS (comma-separated)
CORS_ORIGINS = [
    o.strip()
    for o in os.getenv(
        "CORS_ORIGINS",
        "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173",
    ).split(",")
    if o.strip()
]


class AIConfig(BaseSettings):
    """AI configuration with environment variable support (AI_* variables)."""

    model_config = SettingsConfigDict(env_prefix="AI_", case_sensitive=False, extra="ignore")

    api_url: str = "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.5-flash:generateContent"
    api_key: str = ""
    model: str = "gemini-2.5-flash"
    max_retries: int = 2
    timeout: float = 120.0


config = AIConfig()
