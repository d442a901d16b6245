import os
import logging
from dotenv import load_dotenv
from pydantic import Field, computed_field
from pydantic_settings import BaseSettings
from typing import ClassVar, Dict, List, Optional

# Load environment variables from .env file
load_dotenv(".env", override=True)
logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Class to store all the settings of the CCPM360 assessment service."""

    # ------------------------------
    # Database - Optional (absent means the backend is unconfigured)
    # ------------------------------
    DATABASE_URL: Optional[str] = Field(default=None, env="DATABASE_URL")
    DATABASE_ECHO: bool = Field(default=False, env="DATABASE_ECHO")

    # ------------------------------
    # API Keys - Optional
    # ------------------------------
    HASHED_API_KEY: str = Field(default="dev-hashed-key", env="HASHED_API_KEY")

    # ------------------------------
    # Email (Microsoft Graph) - Optional
    # ------------------------------
    MICROSOFT_CLIENT_ID: str = Field(default="", env="MICROSOFT_CLIENT_ID")
    MICROSOFT_CLIENT_SECRET: str = Field(default="", env="MICROSOFT_CLIENT_SECRET")
    MICROSOFT_TENANT_ID: str = Field(default="", env="MICROSOFT_TENANT_ID")
    EMAIL_SENDER: str = Field(default="info@ccpm360.com", env="EMAIL_SENDER")
    ALERT_EMAIL: str = Field(default="admin@ccpm360.com", env="ALERT_EMAIL")

    # ------------------------------
    # URLs
    # ------------------------------
    APP_BASE_URL: str = Field(default="http://localhost:8000", env="APP_BASE_URL")
    TRACKING_DEFAULT_REDIRECT: str = Field(default="https://ccpm360.com", env="TRACKING_DEFAULT_REDIRECT")

    # ------------------------------
    # Environment
    # ------------------------------
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # ------------------------------
    # Scoring
    # ------------------------------
    OPTION_POINTS: List[float] = Field(default=[100, 75, 50, 25], env="OPTION_POINTS")
    DIMENSION_WEIGHTS: Dict[str, float] = Field(
        default={
            "time_management": 0.25,
            "resource_coordination": 0.25,
            "risk_control": 0.25,
            "team_collaboration": 0.25,
        },
        env="DIMENSION_WEIGHTS",
    )

    # ------------------------------
    # PDF reports & download tokens
    # ------------------------------
    PDF_TOKEN_EXPIRY_DAYS: int = Field(default=7, env="PDF_TOKEN_EXPIRY_DAYS")
    PDF_CONTENT_TIMEOUT_SECONDS: int = Field(default=30, env="PDF_CONTENT_TIMEOUT_SECONDS")
    PDF_GENERATION_TIMEOUT_SECONDS: int = Field(default=60, env="PDF_GENERATION_TIMEOUT_SECONDS")
    CHROMEDRIVER_PATH: Optional[str] = Field(default=None, env="CHROMEDRIVER_PATH")
    CHROME_BINARY: Optional[str] = Field(default=None, env="CHROME_BINARY")

    # ------------------------------
    # Backend calls
    # ------------------------------
    BACKEND_TIMEOUT_SECONDS: float = Field(default=8.0, env="BACKEND_TIMEOUT_SECONDS")
    BACKEND_RETRY_ATTEMPTS: int = Field(default=3, env="BACKEND_RETRY_ATTEMPTS")
    BACKEND_RETRY_BASE_DELAY: float = Field(default=1.0, env="BACKEND_RETRY_BASE_DELAY")
    BACKEND_RETRY_MAX_DELAY: float = Field(default=5.0, env="BACKEND_RETRY_MAX_DELAY")

    # ------------------------------
    # Alerts & rate limits
    # ------------------------------
    ALERT_COOLDOWN_SECONDS: int = Field(default=3600, env="ALERT_COOLDOWN_SECONDS")
    ALERT_CACHE_MAX_KEYS: int = Field(default=1000, env="ALERT_CACHE_MAX_KEYS")
    SUBMIT_RATE_LIMIT: str = Field(default="20/minute", env="SUBMIT_RATE_LIMIT")
    PDF_RATE_LIMIT: str = Field(default="10/minute", env="PDF_RATE_LIMIT")

    # ------------------------------
    # Database models
    # ------------------------------
    DB_MODELS: ClassVar[List[str]] = [
        "app.models.assessment",
        "app.models.downloadtoken",
        "app.models.emailhistory",
        "app.models.adminuser",
    ]

    # ------------------------------
    # Computed Fields
    # ------------------------------
    @computed_field
    @property
    def ALLOWED_ORIGINS(self) -> List[str]:
        """Computed field for CORS origins based on environment."""
        if self.ENVIRONMENT == "production":
            return ["https://ccpm360.com", "https://www.ccpm360.com"]
        return ["http://localhost:3000", "http://localhost:3001"]

    @computed_field
    @property
    def MAIL_CONFIGURED(self) -> bool:
        """Whether Microsoft Graph credentials are present."""
        return bool(self.MICROSOFT_TENANT_ID and self.MICROSOFT_CLIENT_ID and self.MICROSOFT_CLIENT_SECRET)

    class Config:
        """Configuration for the settings class."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


# Instantiate the settings
settings = Settings()
