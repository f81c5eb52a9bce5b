"""Configuration for Site Schedule."""

from site_schedule.config.settings import AppSettings, get_settings

__all__ = ["AppSettings", "get_settings"]
