"""Administração do catálogo de planos.

Planos nunca são apagados: faturas guardam o nome do plano e restaurantes
apontam para o id. Depois de uma fatura paga, só ``active`` pode mudar.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from app.core.clock import utcnow
from app.core.errors import PlanLocked, PlanNotFound
from app.core.ids import make_id
from app.schemas.requests import PlanCreateRequest, PlanUpdateRequest
from app.schemas.store import InvoiceStatus, Plan, StoreData
from app.services.document_store import DocumentStore

logger = logging.getLogger(__name__)


def _plan_payload(document: StoreData, plan: Plan) -> dict[str, Any]:
    payload = plan.model_dump(mode="json", by_alias=True)
    payload["subscribers"] = document.count_subscribers(plan.id)
    return payload


def has_paid_invoice(document: StoreData, plan: Plan) -> bool:
    return any(
        invoice.status == InvoiceStatus.PAID and invoice.plan == plan.name
        for invoice in document.invoices
    )


def list_plans(store: DocumentStore) -> list[dict[str, Any]]:
    document = store.read()
    return [_plan_payload(document, plan) for plan in document.plans]


def create_plan(store: DocumentStore, payload: PlanCreateRequest, *, now: datetime | None = None) -> dict[str, Any]:
    now = now or utcnow()

    def apply(document: StoreData) -> dict[str, Any]:
        plan = Plan(
            id=make_id("plan"),
            name=payload.name.strip(),
            price=payload.price,
            color=payload.color,
            description=payload.description.strip(),
            features=payload.features,
            active=payload.active,
            created_at=now,
            updated_at=now,
        )
        document.plans.append(plan)
        return _plan_payload(document, plan)

    created = store.mutate(apply)
    logger.info("Plano criado plan_id=%s", created["id"])
    return created


def update_plan(
    store: DocumentStore,
    plan_id: str,
    payload: PlanUpdateRequest,
    *,
    now: datetime | None = None,
) -> dict[str, Any]:
    now = now or utcnow()
    updates = payload.model_dump(exclude_unset=True, exclude_none=True)

    def apply(document: StoreData) -> dict[str, Any]:
        plan = document.find_plan(plan_id)
        if plan is None:
            raise PlanNotFound("Plano não encontrado.")

        changes = {field: value for field, value in updates.items() if getattr(plan, field) != value}
        if not changes:
            return _plan_payload(document, plan)

        locked_fields = sorted(field for field in changes if field != "active")
        if locked_fields and has_paid_invoice(document, plan):
            raise PlanLocked(details={"fields": locked_fields})

        for field, value in changes.items():
            setattr(plan, field, value)
        plan.updated_at = now
        return _plan_payload(document, plan)

    updated = store.mutate(apply)
    logger.info("Plano atualizado plan_id=%s", plan_id)
    return updated


def set_plan_active(store: DocumentStore, plan_id: str, active: bool, *, now: datetime | None = None) -> dict[str, Any]:
    return update_plan(store, plan_id, PlanUpdateRequest(active=active), now=now)
