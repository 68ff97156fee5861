"""Configuration module for the Verifolio engine."""

from verifolio_engine.config.logging import configure_logging
from verifolio_engine.config.settings import FlatSettings, get_settings

__all__ = ["FlatSettings", "get_settings", "configure_logging"]
