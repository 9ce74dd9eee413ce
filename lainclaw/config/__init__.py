"""Configuration module for lainclaw."""

from lainclaw.config.loader import load_config, get_config_path
from lainclaw.config.schema import Config

__all__ = ["Config", "load_config", "get_config_path"]
