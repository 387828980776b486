"""Configuration — pydantic-settings models loaded from env and YAML."""

from push_relay.config.settings import AppConfig

__all__ = ["AppConfig"]
