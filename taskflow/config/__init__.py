"""Configuration module for taskflow."""

from taskflow.config.settings import AppConfig, load_config

__all__ = ["AppConfig", "load_config"]
