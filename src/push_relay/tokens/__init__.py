"""Tokens — device token registry.

Provides:
- ``TokenStore`` — protocol the dispatch pipeline depends on
- ``MemoryTokenStore`` — dict-backed store for development/testing
- ``SQLTokenStore`` — SQLAlchemy async store
- ``TokenRegistrationService`` — validated register/remove/list use case
"""

from __future__ import annotations

from push_relay.tokens.memory import MemoryTokenStore
from push_relay.tokens.service import (
    RegistrationResult,
    RemovalResult,
    TokenRegistrationService,
)
from push_relay.tokens.sql import SQLTokenStore
from push_relay.tokens.store import TokenRecord, TokenStore

__all__ = [
    "MemoryTokenStore",
    "RegistrationResult",
    "RemovalResult",
    "SQLTokenStore",
    "TokenRecord",
    "TokenRegistrationService",
    "TokenStore",
]
