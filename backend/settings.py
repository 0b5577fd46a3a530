"""
settings.py — SamvidhanAI
Environment configuration, loaded once from .env at import.
"""

import os

from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class Settings:
    GROQ_API_KEY = os.getenv("GROQ_API_KEY")
    GROQ_MODEL = os.getenv("GROQ_MODEL", "llama-3.3-70b-versatile")
    GROQ_VISION_MODEL = os.getenv(
        "GROQ_VISION_MODEL", "meta-llama/llama-4-scout-17b-16e-instruct"
    )
    GROQ_WHISPER_MODEL = os.getenv("GROQ_WHISPER_MODEL", "whisper-large-v3")
    AI_TIMEOUT_SECONDS = float(os.getenv("AI_TIMEOUT_SECONDS", "20"))

    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./samvidhan.db")

    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me-in-production")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_EXPIRE_DAYS = int(os.getenv("JWT_EXPIRE_DAYS", "7"))

    ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "samvidhan")
    ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "samvidhanai")

    OTP_TTL_MINUTES = int(os.getenv("OTP_TTL_MINUTES", "10"))
    # Echo OTP codes back in API responses. Development only.
    EXPOSE_OTP = _flag("EXPOSE_OTP")

    PREMIUM_PRICE_INR = 2999
    ADS_REMOVAL_PRICE_INR = 199
    PREMIUM_DAYS = 365

    CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
