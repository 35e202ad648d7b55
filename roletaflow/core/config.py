"""
Configuration for the RoletaFlow operator console.

Settings are loaded from environment variables or default values suitable
for a single operator workstation. Use environment variables or a `.env`
file to override as needed.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from pathlib import Path
from dotenv import load_dotenv
import logging
import os

ENV_PATH = Path(__file__).resolve().parents[2] / ".env"
load_dotenv(ENV_PATH, override=False)


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    # Document store backend. Default is a local SQLite file.
    database_url: str = Field(default="sqlite+pysqlite:///./data/roletaflow.db")
    # Local durable storage (offline queue + last operation day)
    local_storage_path: str = Field(default="./data/local_storage.json")
    # Operation days are interpreted in this timezone
    timezone_name: str = Field(default="America/Sao_Paulo")
    auto_create_db: bool = Field(default=True)
    enable_connectivity_probe: bool = Field(default=False)
    connectivity_probe_url: str | None = Field(default=None)
    connectivity_probe_interval_sec: float = Field(default=15.0)
    connectivity_probe_timeout_sec: float = Field(default=5.0)
    operator_csv_delimiter: str = Field(default=";")
    report_csv_delimiter: str = Field(default=",")

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


settings = Settings()


def get_app_env() -> str:
    raw = os.getenv("ROLETA_ENV") or os.getenv("APP_ENV") or "dev"
    env = raw.strip().lower()
    if env not in {"dev", "prod"}:
        logging.getLogger("config").warning("Unknown ROLETA_ENV=%s; defaulting to dev", raw)
        env = "dev"
    return env


def validate_runtime_settings(current: Settings | None = None) -> None:
    current = current or settings
    env = get_app_env()
    logger = logging.getLogger("config")

    if len(current.operator_csv_delimiter) != 1:
        raise RuntimeError("OPERATOR_CSV_DELIMITER must be a single character.")
    if len(current.report_csv_delimiter) != 1:
        raise RuntimeError("REPORT_CSV_DELIMITER must be a single character.")

    if current.enable_connectivity_probe and not current.connectivity_probe_url:
        logger.error("ENABLE_CONNECTIVITY_PROBE is set but CONNECTIVITY_PROBE_URL missing; probe disabled.")
        current.enable_connectivity_probe = False
    if current.connectivity_probe_interval_sec < 1:
        logger.warning(
            "CONNECTIVITY_PROBE_INTERVAL_SEC=%s too small; using 1s",
            current.connectivity_probe_interval_sec,
        )
        current.connectivity_probe_interval_sec = 1.0

    if env == "prod":
        if current.database_url.startswith("sqlite"):
            logger.warning("DATABASE_URL points to SQLite in prod. Readings stay on this machine only.")
        if current.auto_create_db:
            logger.warning("AUTO_CREATE_DB is enabled in prod. Consider setting it to false.")
        if not current.enable_connectivity_probe:
            logger.warning("Connectivity probe disabled in prod; offline queue drains only on manual sync.")


validate_runtime_settings()
