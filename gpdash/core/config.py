"""
GP Dashboard Configuration
Core settings for the sales dashboard API
"""
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List
import json
from pathlib import Path


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # Application Info
    APP_NAME: str = "GP Sales Dashboard API"
    APP_VERSION: str = "1.4.0"
    DEBUG: bool = False

    # Application database (owns serial reservations)
    APP_DATABASE_URL: str = "sqlite:///./gpdash.db"

    # Dynamics GP company database (read-only)
    ERP_DATABASE_URL: str = "sqlite:///./gp_company.db"

    DATABASE_POOL_SIZE: int = 10
    DATABASE_MAX_OVERFLOW: int = 20

    # Security
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 480

    # CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",  # Next.js frontend
    ]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: Path = Path("logs")
    LOG_FILE: str = "app.log"
    ERROR_LOG_FILE: str = "error.log"
    LOG_TO_FILE: bool = False

    # Serial reservations
    RESERVATION_TIMEOUT_MINUTES: int = 10
    RESERVATION_SWEEP_ENABLED: bool = True
    RESERVATION_SWEEP_INTERVAL_MINUTES: int = 5

    # SOP document types that hold serials: 2=Order, 3=Invoice, 5=Back Order
    OPEN_SOP_TYPES: List[int] = [2, 3, 5]

    # API Configuration
    API_V1_STR: str = "/api/v1"
    DOCS_URL: str = "/docs"
    OPENAPI_URL: str = "/openapi.json"

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Accept a JSON array or a comma-separated string"""
        if isinstance(v, str):
            if v.startswith("["):
                return json.loads(v)
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("RESERVATION_TIMEOUT_MINUTES")
    @classmethod
    def validate_reservation_timeout(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("RESERVATION_TIMEOUT_MINUTES must be positive")
        return v


# Global settings instance
settings = Settings()
