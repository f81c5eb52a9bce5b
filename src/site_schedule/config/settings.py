"""
Site Schedule configuration: single source of truth.

Pydantic BaseSettings, load at startup, fail fast on invalid.
"""

import os
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env from project root so settings load regardless of cwd
_CONFIG_DIR = os.path.dirname(os.path.abspath(__file__))
_PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.dirname(_CONFIG_DIR)))
_DOTENV_PATH = os.path.join(_PROJECT_ROOT, ".env")


class AppSettings(BaseSettings):
    """Central config; single initialization."""

    model_config = SettingsConfigDict(
        env_file=_DOTENV_PATH,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Schedule engine
    critical_path_size: int = Field(
        default=5,
        ge=1,
        description="Number of longest non-milestone items reported by the heuristic critical path",
    )
    upcoming_window_days: int = Field(default=7, ge=0, description="Look-ahead window for upcoming deadlines")
    default_critical_path_method: Literal["heuristic", "float"] = Field(
        default="heuristic",
        description="Critical path used by stats endpoints when the caller does not pick one",
    )
    default_project_id: str = Field(default="tower-a", description="Project served when none is given")

    log_level: str = Field(default="INFO", description="Level for the site_schedule logger")

    cors_allow_all: bool = Field(default=True)
    cors_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000"
    )

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, v: str) -> str:
        return v.upper()

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


_settings: Optional[AppSettings] = None


def get_settings() -> AppSettings:
    """Return settings singleton. Fail fast on first load if invalid."""
    global _settings
    if _settings is None:
        _settings = AppSettings()
    return _settings
