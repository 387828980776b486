"""Token registration use case — validated register / remove / list."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from push_relay.errors.definitions import (
    ErrInvalidDeviceInfo,
    ErrInvalidPurgeDays,
    ErrMissingToken,
    ErrMissingUserId,
)
from push_relay.errors.push_errors import PushRelayError

if TYPE_CHECKING:
    from push_relay.tokens.store import TokenRecord, TokenStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegistrationResult:
    """Outcome of a token registration."""

    success: bool
    user_id: str = ""
    token: str = ""
    created: bool = False
    updated: bool = False
    error: PushRelayError | None = None

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": self.success}
        if self.success:
            body |= {
                "created": self.created,
                "updated": self.updated,
                "userId": self.user_id,
                "token": self.token,
            }
        elif self.error is not None:
            body |= {"code": self.error.code, "error": self.error.message}
        return body


@dataclass(frozen=True)
class RemovalResult:
    """Outcome of a token removal; removing an absent pair is still a success."""

    success: bool
    user_id: str = ""
    token: str = ""
    removed: bool = False
    error: PushRelayError | None = None

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": self.success}
        if self.success:
            body |= {"removed": self.removed, "userId": self.user_id, "token": self.token}
        elif self.error is not None:
            body |= {"code": self.error.code, "error": self.error.message}
        return body


def _require_text(value: Any, error: PushRelayError) -> str:
    if not isinstance(value, str) or not value.strip():
        raise error
    return value.strip()


class TokenRegistrationService:
    """Registers, removes and lists device tokens for users.

    Validation happens before any store access; a rejected request never
    writes.
    """

    def __init__(self, store: TokenStore) -> None:
        self._store = store

    @property
    def store(self) -> TokenStore:
        return self._store

    async def register(
        self,
        user_id: Any,
        token: Any,
        device_info: Any = None,
    ) -> RegistrationResult:
        """Register *token* for *user_id* (upsert).

        Re-registering a known pair refreshes ``last_updated``, merges
        ``device_info`` and reactivates the token if it had been pruned.
        """
        try:
            user_id = _require_text(user_id, ErrMissingUserId)
            token = _require_text(token, ErrMissingToken)
            if device_info is None:
                device_info = {}
            elif not isinstance(device_info, dict):
                raise ErrInvalidDeviceInfo

            records = await self._store.get_all_by_user(user_id)
            existing = next((r for r in records if r.token == token), None)
            # save() upserts, so a pair pruned since the lookup is written back.
            await self._store.save(user_id, token, device_info)
        except PushRelayError as exc:
            logger.warning("Token registration rejected: %s", exc.message)
            return RegistrationResult(success=False, error=exc)

        created = existing is None
        logger.info(
            "Token %s for user %s", "registered" if created else "refreshed", user_id
        )
        return RegistrationResult(
            success=True,
            user_id=user_id,
            token=token,
            created=created,
            updated=not created,
        )

    async def remove(self, user_id: Any, token: Any) -> RemovalResult:
        """Hard-delete the (user, token) pair. Idempotent."""
        try:
            user_id = _require_text(user_id, ErrMissingUserId)
            token = _require_text(token, ErrMissingToken)
            removed = await self._store.remove(user_id, token)
        except PushRelayError as exc:
            logger.warning("Token removal rejected: %s", exc.message)
            return RemovalResult(success=False, error=exc)
        return RemovalResult(success=True, user_id=user_id, token=token, removed=removed)

    async def list_tokens(self, user_id: Any) -> list[str]:
        """Active tokens for *user_id*."""
        user_id = _require_text(user_id, ErrMissingUserId)
        return await self._store.get_active_tokens_by_user(user_id)

    async def list_records(self, user_id: Any) -> list[TokenRecord]:
        """Every record (active or not) for *user_id*."""
        user_id = _require_text(user_id, ErrMissingUserId)
        return await self._store.get_all_by_user(user_id)

    async def purge_stale(self, days: int = 90) -> int:
        """Delete tokens not refreshed in *days* days."""
        if isinstance(days, bool) or not isinstance(days, int) or days <= 0:
            raise ErrInvalidPurgeDays
        purged = await self._store.purge_older_than(days)
        logger.info("Purged %d token(s) older than %d days", purged, days)
        return purged
