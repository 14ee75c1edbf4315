"""Configuration for the fleet fare service."""

import os
from dotenv import load_dotenv

load_dotenv()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


class Settings:
    """Application settings."""

    # API Settings
    API_TITLE = "Fleet Fare Service"
    API_VERSION = "1.0.0"
    API_DESCRIPTION = (
        "Pricing configuration and fare estimation for a multi-tenant "
        "taxi brokerage back office"
    )

    # Database Settings
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./fleetfare_config.db")

    # Cache Settings (Redis is optional; empty means memory-only)
    REDIS_URL = os.getenv("REDIS_URL", "")
    CACHE_TTL_SECONDS = int(_env_float("CACHE_TTL_SECONDS", 3600))

    # CORS Settings
    CORS_ORIGINS = [
        origin.strip()
        for origin in os.getenv(
            "CORS_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000,"
            "http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if origin.strip()
    ]

    # Tenancy
    GLOBAL_BRANCH = "Global"
    HEAD_OFFICE_OWNER = os.getenv("HEAD_OFFICE_OWNER", "admin")

    # Distance provider (Google Distance Matrix)
    MAPS_API_KEY = os.getenv("MAPS_API_KEY", "")
    DISTANCE_MATRIX_URL = os.getenv(
        "DISTANCE_MATRIX_URL",
        "https://maps.googleapis.com/maps/api/distancematrix/json",
    )
    DISTANCE_TIMEOUT_SECONDS = _env_float("DISTANCE_TIMEOUT_SECONDS", 8.0)

    # Shown in estimate summaries only; no currency conversion happens
    CURRENCY_SYMBOL = os.getenv("CURRENCY_SYMBOL", "₹")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()
