"""DeviceToken model — one row per (user, device token) pair."""

from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, Boolean, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from push_relay.engine.models.base import Base, TimestampMixin


class DeviceToken(Base, TimestampMixin):
    """A push delivery token registered by a user's device.

    Inactive rows are excluded from delivery but kept until purged.
    """

    __tablename__ = "device_tokens"
    __table_args__ = (UniqueConstraint("user_id", "token", name="uq_device_tokens_user_token"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(255), nullable=False, index=True, comment="Owning user ID"
    )
    token: Mapped[str] = mapped_column(
        String(1024), nullable=False, index=True, comment="Opaque device token"
    )
    device_info: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<DeviceToken user={self.user_id} token={self.token[:12]}... active={self.is_active}>"
