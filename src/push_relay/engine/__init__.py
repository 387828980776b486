"""Engine — composition root wiring stores, senders and use cases."""

from push_relay.engine.client import PushRelayEngine

__all__ = ["PushRelayEngine"]
