"""
Configuration management using Pydantic settings.
"""
from typing import List, Union
import os
from pydantic import AnyHttpUrl, field_validator
from pydantic_settings import BaseSettings
from dotenv import load_dotenv
load_dotenv()



class Settings(BaseSettings):
    """Application settings."""

    # API Configuration
    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "Deck Test Engine"
    DEBUG: bool = True
    ENV: str = os.getenv("ENV", "development")  # development, production

    # Database Configuration
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./deck_tests.db")

    # JWT Configuration
    SECRET_KEY: str = os.getenv("SECRET_KEY", "change-me")
    ALGORITHM: str = os.getenv("ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Assessment rules
    DEFAULT_PASSING_SCORE: int = int(os.getenv("DEFAULT_PASSING_SCORE", 70))
    STALE_ATTEMPT_HOURS: int = int(os.getenv("STALE_ATTEMPT_HOURS", 24))
    ATTEMPT_TIME_LIMIT_GRACE_SECONDS: int = int(os.getenv("ATTEMPT_TIME_LIMIT_GRACE_SECONDS", 60))
    HISTORY_PAGE_LIMIT_MAX: int = 100

    # CORS Configuration
    BACKEND_CORS_ORIGINS: Union[List[AnyHttpUrl], str] = "*"

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v):
        if v == "*" or v == ["*"]:
            return "*"
        if isinstance(v, str):
            return [i.strip() for i in v.split(",")]
        return v

    class Config:
        """Pydantic config."""

        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
