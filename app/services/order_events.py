from __future__ import annotations

from app.schemas.store import Order, OrderStatus
from app.services.event_bus import event_bus

ORDER_CREATED = "order.created"
ORDER_STATUS_CHANGED = "order.status.changed"


def build_order_payload(order: Order, previous_status: OrderStatus | None = None) -> dict:
    return {
        "order_id": order.id,
        "restaurant_slug": order.restaurant_slug,
        "status": order.status.value,
        "previous_status": previous_status.value if previous_status else None,
        "customer_name": order.customer_name,
        "customer_whatsapp": order.customer_whatsapp,
        "total": str(order.total),
        "channel": order.channel.value,
    }


def emit_order_created(order: Order) -> None:
    event_bus.emit(ORDER_CREATED, build_order_payload(order))


def emit_order_status_changed(order: Order, previous_status: OrderStatus) -> None:
    if previous_status == order.status:
        return
    event_bus.emit(ORDER_STATUS_CHANGED, build_order_payload(order, previous_status=previous_status))
