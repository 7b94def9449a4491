from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from app.core.request_context import set_request_context
from app.deps import get_document_store
from app.schemas.requests import ManualOrderCreate, OrderCreate, StatusUpdate
from app.schemas.store import Order
from app.services.document_store import DocumentStore
from app.services.order_events import emit_order_created, emit_order_status_changed
from app.services.orders import (
    CreatedOrder,
    advance_order,
    create_manual_order,
    create_order_from_payload,
    list_orders,
)

router = APIRouter(prefix="/orders", tags=["orders"])


def _order_to_dict(order: Order) -> dict:
    return order.model_dump(mode="json", by_alias=True)


def _created_response(created: CreatedOrder) -> dict:
    # Eventos só depois da escrita concluída
    emit_order_created(created.order)
    return {"success": True, "order": _order_to_dict(created.order), "whatsappUrl": created.whatsapp_url}


@router.post("")
def create_order(payload: OrderCreate, store: DocumentStore = Depends(get_document_store)):
    set_request_context(tenant_slug=payload.restaurant_slug)
    return _created_response(create_order_from_payload(store, payload))


@router.post("/manual")
def create_staff_order(payload: ManualOrderCreate, store: DocumentStore = Depends(get_document_store)):
    set_request_context(tenant_slug=payload.restaurant_slug)
    return _created_response(create_manual_order(store, payload))


@router.get("")
def get_orders(slug: Optional[str] = None, store: DocumentStore = Depends(get_document_store)):
    if slug:
        set_request_context(tenant_slug=slug)
    return {"success": True, "orders": [_order_to_dict(order) for order in list_orders(store, slug)]}


@router.patch("/{order_id}/status")
def update_status(order_id: str, body: StatusUpdate, store: DocumentStore = Depends(get_document_store)):
    if body.restaurant_slug:
        set_request_context(tenant_slug=body.restaurant_slug)
    transition = advance_order(store, order_id, body.status, restaurant_slug=body.restaurant_slug)
    emit_order_status_changed(transition.order, transition.previous_status)
    return {"success": True, "order": _order_to_dict(transition.order)}
