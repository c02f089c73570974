from __future__ import annotations
import os
from pydantic import BaseModel

class Settings(BaseModel):
    environment: str = os.getenv("ENVIRONMENT", "dev")
    app_name: str = os.getenv("APP_NAME", "engage-api")
    app_display_name: str = os.getenv("APP_DISPLAY_NAME", "Engage")
    app_version: str = os.getenv("APP_VERSION", "0.1.0")
    git_sha: str = os.getenv("GIT_SHA", "dev")
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    cors_origins: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")
    database_url: str = os.getenv("DATABASE_URL", "postgresql+asyncpg://postgres:postgres@db:5432/engage_dev")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Tokens are minted by the identity service; we only verify them
    jwt_secret: str = os.getenv("JWT_SECRET", "dev-secret-change-me")
    jwt_alg: str = os.getenv("JWT_ALG", "HS256")

    # Leaderboard / moderator queue sizing
    leaderboard_default_size: int = int(os.getenv("LEADERBOARD_DEFAULT_SIZE", "5"))
    leaderboard_max_size: int = int(os.getenv("LEADERBOARD_MAX_SIZE", "100"))
    pending_queue_max: int = int(os.getenv("PENDING_QUEUE_MAX", "200"))

settings = Settings()
