"""py-push-relay — webhook events to push notifications."""

__version__ = "0.1.0"
