"""Configuration package."""

from refnet.config.settings import Settings, settings

__all__ = ["Settings", "settings"]
