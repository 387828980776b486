"""Token store protocol and the token record value type."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class TokenRecord:
    """One registered (user, device token) pair."""

    user_id: str
    token: str
    device_info: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None
    last_updated: datetime | None = None
    is_active: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "token": self.token,
            "deviceInfo": dict(self.device_info),
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "lastUpdated": self.last_updated.isoformat() if self.last_updated else None,
            "isActive": self.is_active,
        }


@runtime_checkable
class TokenStore(Protocol):
    """Persistence for device tokens, keyed by (user_id, token).

    ``save`` is an upsert: registering an existing pair refreshes it (and
    reactivates it) instead of adding a second record. Failures raise
    :class:`~push_relay.errors.StoreError`.
    """

    async def save(self, user_id: str, token: str, device_info: dict[str, Any]) -> bool: ...

    async def update(self, user_id: str, token: str, device_info: dict[str, Any]) -> bool: ...

    async def remove(self, user_id: str, token: str) -> bool: ...

    async def mark_inactive(self, token: str) -> bool: ...

    async def is_active(self, token: str) -> bool: ...

    async def get_active_tokens_by_user(self, user_id: str) -> list[str]: ...

    async def get_all_by_user(self, user_id: str) -> list[TokenRecord]: ...

    async def purge_older_than(self, days: int) -> int: ...
