from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from app.core.request_context import set_request_context
from app.deps import get_billing_gateway, get_document_store
from app.schemas.requests import ConfirmRequest, SubscribeRequest
from app.services.billing_gateway import BillingGateway
from app.services.document_store import DocumentStore
from app.services.subscriptions import confirm_checkout, plans_overview, start_checkout

router = APIRouter(prefix="/plans", tags=["plans"])


@router.get("/{slug}")
def get_plans(slug: str, store: DocumentStore = Depends(get_document_store)):
    set_request_context(tenant_slug=slug)
    overview = plans_overview(store, slug)
    return {"success": True, "plans": overview.plans, "subscription": overview.subscription}


@router.post("/{slug}")
def subscribe_plan(
    slug: str,
    body: SubscribeRequest,
    store: DocumentStore = Depends(get_document_store),
    gateway: BillingGateway = Depends(get_billing_gateway),
):
    set_request_context(tenant_slug=slug)
    result = start_checkout(store, gateway, slug, body.plan_id)
    return {
        "success": True,
        "checkoutUrl": result.checkout_url,
        "sessionId": result.session_id,
        "externalId": result.external_id,
        "provider": result.provider,
        "message": result.message,
    }


@router.patch("/{slug}")
def confirm_plan_checkout(
    slug: str,
    body: Optional[ConfirmRequest] = None,
    store: DocumentStore = Depends(get_document_store),
):
    set_request_context(tenant_slug=slug)
    external_id = body.external_id if body else None
    result = confirm_checkout(store, slug, external_id)
    return {"success": True, "message": result.message}
