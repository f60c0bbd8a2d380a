"""Application configuration."""

import os
from pathlib import Path
from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # App info
    VERSION: str = "1.0.0"
    APP_NAME: str = "Recognition Engine"
    DEBUG: bool = False

    # Server
    HOST: str = "127.0.0.1"
    PORT: int = 7870
    CORS_ORIGINS: List[str] = ["http://localhost:5173", "http://localhost:3000"]

    # Paths
    DATA_PATH: Path = Path.home() / "RECOGNITION_DATA"
    DATABASE_URL: str = ""

    # Inference service
    AI_SERVICE_URL: str = "http://localhost:8000"
    AI_SERVICE_TOKEN: str = ""

    # Worker pool
    WORKER_COUNT: int = 2
    WORKER_POLL_INTERVAL: float = 2.0
    CANCEL_POLL_INTERVAL: float = 5.0
    CLAIM_BATCH_SIZE: int = 10

    # Job defaults
    DEFAULT_PRIORITY: int = 3
    DEFAULT_MAX_ATTEMPTS: int = 3
    JOB_TIMEOUT: int = 3600  # 1 hour, used when neither job nor model sets one

    # Watchdog
    WATCHDOG_INTERVAL: float = 30.0

    # Retry backoff: base * 2^attempt, capped
    BACKOFF_BASE_SECONDS: int = 60
    BACKOFF_CEILING_SECONDS: int = 86400

    # Notifications
    WEBHOOK_URL: Optional[str] = None
    WEBHOOK_TIMEOUT: float = 10.0

    class Config:
        env_prefix = "RECOG_"
        env_file = ".env"
        case_sensitive = True

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.DATA_PATH.mkdir(parents=True, exist_ok=True)

        if not self.DATABASE_URL:
            self.DATABASE_URL = f"sqlite+aiosqlite:///{self.DATA_PATH / 'recognition.db'}"


# Override data path from environment
if os.environ.get("RECOG_DATA_PATH"):
    settings = Settings(DATA_PATH=Path(os.environ["RECOG_DATA_PATH"]))
else:
    settings = Settings()
