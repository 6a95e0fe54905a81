"""
Settings read from the environment (and a local ``.env`` via python-dotenv).

    DIMVERSION_DATABASE_URL     full SQLAlchemy URL; wins over POSTGRES_*
    POSTGRES_USER / POSTGRES_PASSWORD / POSTGRES_DB / POSTGRES_HOST
    DIMVERSION_TIME_UNIT        day | instant
    DIMVERSION_CLOSED_END       end expired rows one unit before the successor
    DIMVERSION_TRACK_POINTER    maintain current_pointer on every version
    DIMVERSION_DIMENSIONS       comma-separated dimension names
    DIMVERSION_LOG_LEVEL / DIMVERSION_HOST / DIMVERSION_PORT
"""

from __future__ import annotations

import os
from typing import List, Mapping

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator
from sqlalchemy.engine import URL

from .core.intervals import TimeUnit

DEFAULT_DATABASE_URL = "sqlite:///dimversion.db"


class Settings(BaseModel):
    database_url: str = DEFAULT_DATABASE_URL
    unit: TimeUnit = TimeUnit.DAY
    closed_end: bool = False
    track_current_pointer: bool = False
    dimensions: List[str] = []
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000

    @field_validator("dimensions", mode="before")
    @classmethod
    def _split_names(cls, value):
        if isinstance(value, str):
            return [name.strip() for name in value.split(",") if name.strip()]
        return value

    @field_validator("log_level")
    @classmethod
    def _upper(cls, value: str) -> str:
        return value.upper()

    def manager_options(self) -> dict:
        """Keyword arguments shared by every configured manager."""
        return {
            "unit": self.unit,
            "closed_end": self.closed_end,
            "track_current_pointer": self.track_current_pointer,
        }


def _postgres_url(env: Mapping[str, str]) -> str | None:
    parts = [env.get(k) for k in ("POSTGRES_USER", "POSTGRES_PASSWORD", "POSTGRES_DB")]
    if not all(parts):
        return None
    user, password, db = parts
    url = URL.create(
        "postgresql",
        username=user,
        password=password,
        host=env.get("POSTGRES_HOST", "localhost"),
        database=db,
    )
    return url.render_as_string(hide_password=False)


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """
    Build `Settings` from *env* (defaults to ``os.environ`` after loading
    ``.env``). Unset variables fall back to the model defaults.
    """
    if env is None:
        load_dotenv()
        env = os.environ

    raw = {
        "database_url": env.get("DIMVERSION_DATABASE_URL") or _postgres_url(env),
        "unit": env.get("DIMVERSION_TIME_UNIT"),
        "closed_end": env.get("DIMVERSION_CLOSED_END"),
        "track_current_pointer": env.get("DIMVERSION_TRACK_POINTER"),
        "dimensions": env.get("DIMVERSION_DIMENSIONS"),
        "log_level": env.get("DIMVERSION_LOG_LEVEL"),
        "host": env.get("DIMVERSION_HOST"),
        "port": env.get("DIMVERSION_PORT"),
    }
    return Settings(**{k: v for k, v in raw.items() if v not in (None, "")})
