from __future__ import annotations

from fastapi import APIRouter, Depends, Header

from app.core.config import IS_PROD, ONBOARDING_API_TOKEN
from app.core.errors import OnboardingNotConfigured, Unauthorized
from app.core.request_context import set_request_context
from app.deps import get_document_store
from app.schemas.requests import OnboardingRequest
from app.services.document_store import DocumentStore
from app.services.tenants import onboard_restaurant

router = APIRouter(prefix="/onboarding", tags=["onboarding"])


def _ensure_onboarding_security(x_onboarding_token: str | None) -> None:
    if not IS_PROD:
        return
    configured = (ONBOARDING_API_TOKEN or "").strip()
    incoming = (x_onboarding_token or "").strip()
    if not configured:
        raise OnboardingNotConfigured()
    if incoming != configured:
        raise Unauthorized("Token inválido")


@router.post("/restaurants", status_code=201)
def create_restaurant(
    payload: OnboardingRequest,
    x_onboarding_token: str | None = Header(default=None),
    store: DocumentStore = Depends(get_document_store),
):
    _ensure_onboarding_security(x_onboarding_token)
    restaurant = onboard_restaurant(store, payload)
    set_request_context(tenant_slug=restaurant.slug)
    return {"success": True, "restaurant": restaurant.model_dump(mode="json", by_alias=True)}
