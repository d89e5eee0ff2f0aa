from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# DB SQLite su file nella root del progetto
DEFAULT_DB_PATH = Path(__file__).resolve().parents[1] / "clinica_laser.sqlite"


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """
    Configurazione applicativa letta dalle variabili d'ambiente (.env supportato).
    """

    def __init__(
        self,
        database_url: str | None = None,
        frontend_url: str = "http://localhost:5173",
        api_prefix: str = "/api",
        app_env: str = "production",
        log_level: str = "INFO",
        log_format: str = "json",
        db_echo: bool = False,
        db_pool_pre_ping: bool = True,
        expose_error_details: bool | None = None,
        seed_zones: bool = True,
        host: str = "127.0.0.1",
        port: int = 8080,
    ) -> None:
        self.database_url = database_url or f"sqlite:///{DEFAULT_DB_PATH}"
        self.frontend_url = frontend_url
        self.api_prefix = api_prefix
        self.app_env = app_env
        self.log_level = log_level
        self.log_format = log_format
        self.db_echo = db_echo
        self.db_pool_pre_ping = db_pool_pre_ping
        if expose_error_details is None:
            expose_error_details = app_env == "development"
        self.expose_error_details = expose_error_details
        self.seed_zones = seed_zones
        self.host = host
        self.port = port

    @classmethod
    def from_env(cls) -> "Settings":
        details = os.getenv("EXPOSE_ERROR_DETAILS")
        return cls(
            database_url=os.getenv("DATABASE_URL"),
            frontend_url=os.getenv("FRONTEND_URL", "http://localhost:5173"),
            api_prefix=os.getenv("API_PREFIX", "/api"),
            app_env=os.getenv("APP_ENV", "production"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
            db_echo=_env_bool("DB_ECHO"),
            db_pool_pre_ping=_env_bool("DB_POOL_PRE_PING", True),
            expose_error_details=None if details is None else _env_bool("EXPOSE_ERROR_DETAILS"),
            seed_zones=_env_bool("SEED_ZONES", True),
            host=os.getenv("HOST", "127.0.0.1"),
            port=int(os.getenv("PORT", "8080")),
        )

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    def __repr__(self) -> str:
        return f"Settings(env={self.app_env}, db={self.database_url}, prefix={self.api_prefix})"
