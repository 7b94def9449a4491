from __future__ import annotations

import logging

from app.services.event_bus import event_bus
from app.services.order_events import ORDER_CREATED, ORDER_STATUS_CHANGED

logger = logging.getLogger(__name__)


def log_order_created(payload: dict) -> None:
    logger.info(
        "order.created total=%s canal=%s",
        payload.get("total"),
        payload.get("channel"),
        extra={"order_id": payload.get("order_id"), "tenant": payload.get("restaurant_slug")},
    )


def log_order_status_changed(payload: dict) -> None:
    logger.info(
        "order.status.changed de=%s para=%s",
        payload.get("previous_status"),
        payload.get("status"),
        extra={"order_id": payload.get("order_id"), "tenant": payload.get("restaurant_slug")},
    )


def register_handlers() -> None:
    event_bus.subscribe(ORDER_CREATED, log_order_created)
    event_bus.subscribe(ORDER_STATUS_CHANGED, log_order_status_changed)


register_handlers()
