from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool

from app.core.config import STRIPE_WEBHOOK_SECRET, STRIPE_WEBHOOK_VERIFY
from app.core.errors import InvalidWebhookSignature, ValidationError
from app.deps import get_document_store
from app.services.billing_gateway import verify_webhook_event
from app.services.document_store import DocumentStore
from app.services.subscriptions import handle_gateway_event

router = APIRouter(prefix="/webhooks", tags=["webhooks"])
logger = logging.getLogger(__name__)


@router.post("/stripe")
async def stripe_webhook(request: Request, store: DocumentStore = Depends(get_document_store)):
    raw_body = await request.body()
    try:
        event = json.loads(raw_body)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValidationError("Payload JSON inválido.") from exc
    if not isinstance(event, dict):
        raise ValidationError("Payload JSON inválido.")

    if STRIPE_WEBHOOK_VERIFY:
        try:
            verify_webhook_event(raw_body, request.headers.get("Stripe-Signature"), STRIPE_WEBHOOK_SECRET)
        except InvalidWebhookSignature:
            logger.warning("Webhook do Stripe com assinatura inválida")
            raise

    result = await run_in_threadpool(handle_gateway_event, store, event)
    return {"success": True, "action": result.action}
