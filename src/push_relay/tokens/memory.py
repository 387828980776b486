"""In-memory token store."""

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime, timedelta
from typing import Any

from push_relay.tokens.store import TokenRecord


class MemoryTokenStore:
    """Dict-backed :class:`TokenStore` for development and testing.

    All mutations happen between awaits on a single event loop, so disjoint
    keys never race.
    """

    def __init__(self) -> None:
        self._records: dict[tuple[str, str], TokenRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    async def save(self, user_id: str, token: str, device_info: dict[str, Any]) -> bool:  # noqa: ASYNC910
        """Insert the pair, or refresh and reactivate an existing one."""
        now = datetime.now(UTC)
        key = (user_id, token)
        existing = self._records.get(key)
        if existing is None:
            self._records[key] = TokenRecord(
                user_id=user_id,
                token=token,
                device_info=dict(device_info),
                created_at=now,
                last_updated=now,
                is_active=True,
            )
        else:
            self._records[key] = replace(
                existing,
                device_info={**existing.device_info, **device_info},
                last_updated=now,
                is_active=True,
            )
        return True

    async def update(self, user_id: str, token: str, device_info: dict[str, Any]) -> bool:  # noqa: ASYNC910
        """Merge *device_info* and refresh ``last_updated``; False if absent."""
        key = (user_id, token)
        existing = self._records.get(key)
        if existing is None:
            return False
        self._records[key] = replace(
            existing,
            device_info={**existing.device_info, **device_info},
            last_updated=datetime.now(UTC),
        )
        return True

    async def remove(self, user_id: str, token: str) -> bool:  # noqa: ASYNC910
        return self._records.pop((user_id, token), None) is not None

    async def mark_inactive(self, token: str) -> bool:  # noqa: ASYNC910
        """Deactivate every active record holding *token*."""
        now = datetime.now(UTC)
        changed = False
        for key, record in list(self._records.items()):
            if record.token == token and record.is_active:
                self._records[key] = replace(record, is_active=False, last_updated=now)
                changed = True
        return changed

    async def is_active(self, token: str) -> bool:  # noqa: ASYNC910
        return any(r.token == token and r.is_active for r in self._records.values())

    async def get_active_tokens_by_user(self, user_id: str) -> list[str]:  # noqa: ASYNC910
        return [
            r.token for r in self._ordered() if r.user_id == user_id and r.is_active
        ]

    async def get_all_by_user(self, user_id: str) -> list[TokenRecord]:  # noqa: ASYNC910
        return [r for r in self._ordered() if r.user_id == user_id]

    async def purge_older_than(self, days: int) -> int:  # noqa: ASYNC910
        """Delete records not updated within the last *days* days."""
        cutoff = datetime.now(UTC) - timedelta(days=days)
        stale = [
            key
            for key, record in self._records.items()
            if record.last_updated is not None and record.last_updated < cutoff
        ]
        for key in stale:
            del self._records[key]
        return len(stale)

    def _ordered(self) -> list[TokenRecord]:
        return sorted(
            self._records.values(),
            key=lambda r: r.created_at or datetime.min.replace(tzinfo=UTC),
        )
