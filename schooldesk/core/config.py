import os
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    PROJECT_NAME: str = "SchoolDesk API"
    API_PREFIX: str = "/api"

    # Database
    DATABASE_URL: str = "postgresql+psycopg://postgres@localhost:5432/schooldesk"

    # Security
    SECRET_KEY: str = os.getenv("SECRET_KEY", "SECRET_KEY_CHANGE_ME_IN_PRODUCTION")
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_HOURS: int = 24
    REMEMBER_ME_EXPIRE_DAYS: int = 30
    AUTH_COOKIE_NAME: str = "auth_token"
    COOKIE_SECURE: bool = False
    MAX_LOGIN_ATTEMPTS: int = 5
    LOCKOUT_MINUTES: int = 120

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "allow"


settings = Settings()
