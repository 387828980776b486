"""Datastore — async SQLAlchemy engine and session management."""

from push_relay.datastore.client import Datastore

__all__ = ["Datastore"]
