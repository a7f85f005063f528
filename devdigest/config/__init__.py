"""Configuration: environment settings and static vocabularies."""

from devdigest.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
