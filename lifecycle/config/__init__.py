"""Configuration module for identity lifecycle automation."""
from .settings import AppConfig, load_settings

__all__ = ["AppConfig", "load_settings"]
