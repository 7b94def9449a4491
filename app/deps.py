# app/deps.py
from __future__ import annotations

from functools import lru_cache

from fastapi import Header

from app.core.config import ADMIN_API_TOKEN, IS_PROD
from app.core.database import SessionLocal
from app.core.errors import AdminNotConfigured, Unauthorized
from app.services.billing_gateway import BillingGateway, StripeCheckoutGateway
from app.services.document_store import DocumentStore, SqlDocumentStore


@lru_cache(maxsize=1)
def _default_store() -> SqlDocumentStore:
    return SqlDocumentStore(SessionLocal)


def get_document_store() -> DocumentStore:
    """Store compartilhado pela aplicação; testes substituem via ``dependency_overrides``."""
    return _default_store()


def get_billing_gateway() -> BillingGateway:
    return StripeCheckoutGateway()


def require_admin_token(x_admin_token: str | None = Header(default=None)) -> None:
    """Em produção, as rotas de administração exigem ``X-Admin-Token``."""
    if not IS_PROD:
        return
    configured = (ADMIN_API_TOKEN or "").strip()
    if not configured:
        raise AdminNotConfigured()
    if (x_admin_token or "").strip() != configured:
        raise Unauthorized("Token inválido")
