"""Configuration module for the PAM container services."""
from .settings import PamConfig, load_settings

__all__ = ["PamConfig", "load_settings"]
