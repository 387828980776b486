"""Notification builder — processed event + recipient → notification."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from push_relay.notifications.models import Notification, Priority

if TYPE_CHECKING:
    from collections.abc import Mapping

    from push_relay.events.models import ProcessedEvent

DEFAULT_TITLE = "Nueva notificación"
DEFAULT_BODY = "Tienes una nueva notificación."

_TITLES = {
    "payment": "Nuevo pago recibido",
    "order": "Actualización de pedido",
    "message": "Nuevo mensaje",
    "alert": "Alerta importante",
    "reminder": "Recordatorio",
}


def _field(data: Mapping[str, Any], key: str, default: str) -> str:
    value = data.get(key)
    if value is None or value == "":
        return default
    return str(value)


def default_title(event_type: str) -> str:
    """Title used when neither the payload nor the type template gives one."""
    return _TITLES.get(event_type, DEFAULT_TITLE)


def default_body(event_type: str, data: Mapping[str, Any]) -> str:
    """Body used when neither the payload nor the type template gives one."""
    match event_type:
        case "payment":
            return f"Se ha recibido un pago de {_field(data, 'amount', 'cantidad no especificada')}."
        case "order":
            order_id = _field(data, "orderId", "N/A")
            status = _field(data, "status", "actualizado")
            return f"Tu pedido #{order_id} ha sido {status}."
        case "message":
            return f"Has recibido un nuevo mensaje de {_field(data, 'sender', 'un usuario')}."
        case "alert":
            return _field(data, "message", "Hay una alerta que requiere tu atención.")
        case "reminder":
            return f"Recordatorio: {_field(data, 'message', 'Tienes un evento pendiente.')}"
        case _:
            return DEFAULT_BODY


class NotificationBuilder:
    """Maps a :class:`ProcessedEvent` onto a per-recipient :class:`Notification`.

    Pure: no I/O, no mutation of the processed event. Data values keep their
    types here; the push sender stringifies them right before transport.
    """

    def __init__(
        self,
        *,
        default_priority: Priority = Priority.NORMAL,
        default_time_to_live: int = 86400,
    ) -> None:
        self._default_priority = default_priority
        self._default_ttl = default_time_to_live

    def build(self, processed: ProcessedEvent, user_id: str) -> Notification:
        """Build the notification for one recipient."""
        event_type = processed.type
        data: dict[str, Any] = {
            "eventId": processed.id,
            "eventType": event_type,
            **processed.data,
        }
        return Notification(
            user_id=user_id,
            title=processed.title or default_title(event_type),
            body=processed.body or default_body(event_type, processed.event.data),
            data=data,
            priority=processed.priority or self._default_priority,
            time_to_live=(
                processed.time_to_live if processed.time_to_live is not None else self._default_ttl
            ),
        )
