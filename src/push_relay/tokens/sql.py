"""SQLAlchemy-backed token store."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from push_relay.engine.models.device_token import DeviceToken
from push_relay.errors.push_errors import StoreError
from push_relay.tokens.store import TokenRecord

if TYPE_CHECKING:
    from push_relay.datastore.client import Datastore

logger = logging.getLogger(__name__)


def _aware(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; every stored value is UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _to_record(row: DeviceToken) -> TokenRecord:
    return TokenRecord(
        user_id=row.user_id,
        token=row.token,
        device_info=dict(row.device_info or {}),
        created_at=_aware(row.created_at),
        last_updated=_aware(row.last_updated),
        is_active=row.is_active,
    )


class SQLTokenStore:
    """:class:`TokenStore` persisting to the ``device_tokens`` table.

    Per-key atomicity comes from the unique (user_id, token) constraint;
    concurrent upserts of the same pair fall back to an update.
    """

    def __init__(self, datastore: Datastore) -> None:
        self._datastore = datastore

    async def save(self, user_id: str, token: str, device_info: dict[str, Any]) -> bool:
        """Insert the pair, or refresh and reactivate an existing one."""
        try:
            if await self._refresh(user_id, token, device_info, reactivate=True):
                return True
            async with self._datastore.session() as session:
                session.add(
                    DeviceToken(
                        user_id=user_id,
                        token=token,
                        device_info=dict(device_info),
                        is_active=True,
                    )
                )
                await session.commit()
            return True
        except IntegrityError:
            # Lost an insert race for the same pair; the row exists now.
            logger.debug("Concurrent insert for user %s, retrying as update", user_id)
            try:
                return await self._refresh(user_id, token, device_info, reactivate=True)
            except SQLAlchemyError as exc:
                raise StoreError(f"failed to save token: {exc}") from exc
        except SQLAlchemyError as exc:
            raise StoreError(f"failed to save token: {exc}") from exc

    async def update(self, user_id: str, token: str, device_info: dict[str, Any]) -> bool:
        """Merge *device_info* and refresh ``last_updated``; False if absent."""
        try:
            return await self._refresh(user_id, token, device_info, reactivate=False)
        except SQLAlchemyError as exc:
            raise StoreError(f"failed to update token: {exc}") from exc

    async def remove(self, user_id: str, token: str) -> bool:
        try:
            async with self._datastore.session() as session:
                result = await session.execute(
                    delete(DeviceToken).where(
                        DeviceToken.user_id == user_id,
                        DeviceToken.token == token,
                    )
                )
                await session.commit()
                return (result.rowcount or 0) > 0
        except SQLAlchemyError as exc:
            raise StoreError(f"failed to remove token: {exc}") from exc

    async def mark_inactive(self, token: str) -> bool:
        try:
            async with self._datastore.session() as session:
                result = await session.execute(
                    update(DeviceToken)
                    .where(DeviceToken.token == token, DeviceToken.is_active.is_(True))
                    .values(is_active=False, last_updated=datetime.now(UTC))
                )
                await session.commit()
                return (result.rowcount or 0) > 0
        except SQLAlchemyError as exc:
            raise StoreError(f"failed to mark token inactive: {exc}") from exc

    async def is_active(self, token: str) -> bool:
        try:
            async with self._datastore.session() as session:
                result = await session.execute(
                    select(DeviceToken.id)
                    .where(DeviceToken.token == token, DeviceToken.is_active.is_(True))
                    .limit(1)
                )
                return result.scalar_one_or_none() is not None
        except SQLAlchemyError as exc:
            raise StoreError(f"failed to check token: {exc}") from exc

    async def get_active_tokens_by_user(self, user_id: str) -> list[str]:
        try:
            async with self._datastore.session() as session:
                result = await session.execute(
                    select(DeviceToken.token)
                    .where(DeviceToken.user_id == user_id, DeviceToken.is_active.is_(True))
                    .order_by(DeviceToken.created_at, DeviceToken.id)
                )
                return list(result.scalars().all())
        except SQLAlchemyError as exc:
            raise StoreError(f"failed to load tokens: {exc}") from exc

    async def get_all_by_user(self, user_id: str) -> list[TokenRecord]:
        try:
            async with self._datastore.session() as session:
                result = await session.execute(
                    select(DeviceToken)
                    .where(DeviceToken.user_id == user_id)
                    .order_by(DeviceToken.created_at, DeviceToken.id)
                )
                return [_to_record(row) for row in result.scalars().all()]
        except SQLAlchemyError as exc:
            raise StoreError(f"failed to load tokens: {exc}") from exc

    async def purge_older_than(self, days: int) -> int:
        """Delete rows not updated within the last *days* days."""
        cutoff = datetime.now(UTC) - timedelta(days=days)
        try:
            async with self._datastore.session() as session:
                result = await session.execute(
                    delete(DeviceToken).where(DeviceToken.last_updated < cutoff)
                )
                await session.commit()
                return result.rowcount or 0
        except SQLAlchemyError as exc:
            raise StoreError(f"failed to purge tokens: {exc}") from exc

    async def _refresh(
        self,
        user_id: str,
        token: str,
        device_info: dict[str, Any],
        *,
        reactivate: bool,
    ) -> bool:
        async with self._datastore.session() as session:
            result = await session.execute(
                select(DeviceToken).where(
                    DeviceToken.user_id == user_id,
                    DeviceToken.token == token,
                )
            )
            row = result.scalar_one_or_none()
            if row is None:
                return False
            row.device_info = {**(row.device_info or {}), **device_info}
            row.last_updated = datetime.now(UTC)
            if reactivate:
                row.is_active = True
            await session.commit()
            return True
