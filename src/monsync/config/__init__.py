"""Configuration management for monsync."""

from monsync.config.loader import load_config
from monsync.config.models import Config

__all__ = ["Config", "load_config"]
