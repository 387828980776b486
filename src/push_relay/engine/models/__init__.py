"""ORM models."""

from push_relay.engine.models.base import Base
from push_relay.engine.models.device_token import DeviceToken

ALL_MODELS = [DeviceToken]

__all__ = ["ALL_MODELS", "Base", "DeviceToken"]
