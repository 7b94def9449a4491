"""Ciclo de vida da assinatura dos restaurantes.

Status efetivo, início de checkout no gateway, confirmação (manual ou via
webhook) e a fatura correspondente a cada tentativa de checkout, sempre
correlacionada pelo ``externalId``.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any
from urllib.parse import quote

from app.core.clock import add_months, ensure_utc, utcnow
from app.core.config import APP_PUBLIC_URL
from app.core.errors import BillingNotConfigured, CheckoutMismatch, PlanNotFound, TenantNotFound
from app.core.ids import make_id
from app.schemas.store import (
    Invoice,
    InvoiceMethod,
    InvoiceStatus,
    Plan,
    Restaurant,
    StoreData,
    SubscriptionStatus,
)
from app.services.billing_gateway import BillingGateway, CheckoutRequest
from app.services.document_store import DocumentStore

logger = logging.getLogger(__name__)

BLOCKED_STATUSES = {SubscriptionStatus.EXPIRED, SubscriptionStatus.CANCELED}
PAID_CHECKOUT_STATUSES = {"paid", "no_payment_required"}
EXTERNAL_ID_PATTERN = re.compile(r"^plan_(.+?)_\d+$")

NOTHING_TO_CONFIRM = "Sem checkout pendente para confirmar."
CHECKOUT_CONFIRMED = "Assinatura confirmada."
CHECKOUT_CREATED = "Checkout gerado com sucesso."


@dataclass(frozen=True)
class SubscriptionView:
    status: SubscriptionStatus
    trial_days_left: int


@dataclass
class PlansOverview:
    plans: list[dict[str, Any]]
    subscription: dict[str, Any]


@dataclass
class CheckoutResult:
    checkout_url: str
    session_id: str | None
    external_id: str
    provider: str
    message: str = CHECKOUT_CREATED


@dataclass
class ConfirmResult:
    confirmed: bool
    message: str
    external_id: str | None = None


@dataclass
class GatewayEventResult:
    event_type: str
    action: str
    restaurant_slug: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


def derive_status(restaurant: Restaurant, now: datetime | None = None) -> SubscriptionView:
    """Status exibido ao cliente. Não grava nada: um trial vencido continua ``trial`` no documento."""
    now = ensure_utc(now) if now is not None else utcnow()
    status = restaurant.subscription_status
    trial_ends_at = restaurant.trial_ends_at
    if status == SubscriptionStatus.TRIAL and trial_ends_at is not None and trial_ends_at < now:
        status = SubscriptionStatus.EXPIRED

    days_left = 0
    if status == SubscriptionStatus.TRIAL and trial_ends_at is not None:
        remaining = (trial_ends_at - now) / timedelta(days=1)
        days_left = max(0, math.ceil(remaining))
    return SubscriptionView(status=status, trial_days_left=days_left)


def is_subscription_blocked(restaurant: Restaurant, now: datetime | None = None) -> bool:
    return derive_status(restaurant, now).status in BLOCKED_STATUSES


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def plans_overview(store: DocumentStore, slug: str, now: datetime | None = None) -> PlansOverview:
    document = store.read()
    restaurant = document.find_restaurant(slug)
    if restaurant is None:
        raise TenantNotFound()

    view = derive_status(restaurant, now)
    plans = []
    for plan in document.plans:
        if not plan.active:
            continue
        payload = plan.model_dump(mode="json", by_alias=True)
        payload["subscribers"] = document.count_subscribers(plan.id)
        plans.append(payload)

    return PlansOverview(
        plans=plans,
        subscription={
            "status": view.status.value,
            "subscribedPlanId": restaurant.subscribed_plan_id,
            "trialEndsAt": _isoformat(restaurant.trial_ends_at),
            "trialDaysLeft": view.trial_days_left,
            "nextBillingAt": _isoformat(restaurant.next_billing_at),
            "lastCheckoutUrl": restaurant.last_checkout_url,
        },
    )


def new_external_id(document: StoreData, slug: str, now: datetime) -> str:
    """``plan_<slug>_<epoch ms>``, avançando o timestamp até não colidir com nada gravado."""
    used = {invoice.external_id for invoice in document.invoices if invoice.external_id}
    used.update(
        restaurant.pending_checkout_external_id
        for restaurant in document.restaurants
        if restaurant.pending_checkout_external_id
    )
    millis = int(now.timestamp() * 1000)
    candidate = f"plan_{slug}_{millis}"
    while candidate in used:
        millis += 1
        candidate = f"plan_{slug}_{millis}"
    return candidate


def upsert_plan_invoice(
    document: StoreData,
    *,
    restaurant: Restaurant,
    plan_name: str,
    amount: Decimal,
    external_id: str,
    now: datetime,
    paid: bool = False,
    method: InvoiceMethod = InvoiceMethod.CARD,
) -> Invoice:
    """Cria ou atualiza a fatura da tentativa de checkout identificada por ``external_id``.

    Uma fatura já paga nunca volta para pendente; a reexecução devolve a
    fatura como está, preservando ``paidAt``.
    """
    invoice = document.find_invoice_by_external_id(external_id)
    if invoice is None:
        invoice = Invoice(
            id=make_id("INV").upper(),
            restaurant_slug=restaurant.slug,
            restaurant_name=restaurant.name,
            plan=plan_name,
            value=amount,
            due_date=now.date(),
            status=InvoiceStatus.PAID if paid else InvoiceStatus.PENDING,
            method=method,
            created_at=now,
            paid_at=now if paid else None,
            external_id=external_id,
        )
        document.invoices.insert(0, invoice)
        return invoice

    if invoice.status == InvoiceStatus.PAID:
        return invoice

    invoice.restaurant_slug = restaurant.slug
    invoice.restaurant_name = restaurant.name
    invoice.plan = plan_name
    invoice.value = amount
    invoice.due_date = now.date()
    invoice.method = method
    if paid:
        invoice.status = InvoiceStatus.PAID
        invoice.paid_at = now
    return invoice


def _checkout_urls(external_id: str) -> tuple[str, str]:
    encoded = quote(external_id, safe="")
    success = f"{APP_PUBLIC_URL}/master?checkout=success&externalId={encoded}"
    cancel = f"{APP_PUBLIC_URL}/master?checkout=cancel&externalId={encoded}"
    return success, cancel


def start_checkout(
    store: DocumentStore,
    gateway: BillingGateway,
    slug: str,
    plan_id: str,
    *,
    now: datetime | None = None,
) -> CheckoutResult:
    now = now or utcnow()
    document = store.read()
    restaurant = document.find_restaurant(slug)
    if restaurant is None:
        raise TenantNotFound()
    plan = document.find_plan(plan_id)
    if plan is None or not plan.active:
        raise PlanNotFound()
    if not gateway.is_configured:
        raise BillingNotConfigured()

    external_id = new_external_id(document, restaurant.slug, now)
    success_url, cancel_url = _checkout_urls(external_id)
    # Gateway antes de qualquer escrita: falha aqui não deixa rastro no documento.
    session = gateway.create_checkout_session(
        CheckoutRequest(
            external_id=external_id,
            restaurant_slug=restaurant.slug,
            restaurant_name=restaurant.name,
            plan_id=plan.id,
            plan_name=plan.name,
            plan_description=plan.description,
            amount=plan.price,
            success_url=success_url,
            cancel_url=cancel_url,
            customer_email=restaurant.owner_email or None,
        )
    )

    def apply(current: StoreData) -> None:
        target = current.find_restaurant(slug)
        if target is None:
            raise TenantNotFound()
        target.set_pending_checkout(plan.id, external_id)
        target.last_checkout_url = session.url
        target.next_billing_at = add_months(now)
        target.subscription_status = SubscriptionStatus.PENDING_PAYMENT
        upsert_plan_invoice(
            current,
            restaurant=target,
            plan_name=plan.name,
            amount=plan.price,
            external_id=external_id,
            now=now,
        )

    store.mutate(apply)
    logger.info(
        "Checkout iniciado plano=%s valor=%s",
        plan.id,
        plan.price,
        extra={"external_id": external_id, "tenant": slug},
    )
    return CheckoutResult(
        checkout_url=session.url,
        session_id=session.session_id,
        external_id=external_id,
        provider=gateway.provider,
    )


def _activate(
    document: StoreData,
    restaurant: Restaurant,
    now: datetime,
    *,
    checkout_url: str | None = None,
) -> str | None:
    external_id = restaurant.pending_checkout_external_id
    target_plan_id = restaurant.pending_plan_id or restaurant.subscribed_plan_id
    plan: Plan | None = document.find_plan(target_plan_id)
    plan_name = plan.name if plan else restaurant.plan
    amount = plan.price if plan else Decimal("0")
    next_billing = add_months(now)

    restaurant.plan = plan_name
    restaurant.subscribed_plan_id = target_plan_id
    restaurant.subscription_status = SubscriptionStatus.ACTIVE
    if restaurant.subscription_started_at is None:
        restaurant.subscription_started_at = now
    restaurant.trial_ends_at = None
    restaurant.clear_pending_checkout()
    restaurant.next_billing_at = next_billing
    restaurant.subscription_ends_at = next_billing
    if checkout_url:
        restaurant.last_checkout_url = checkout_url

    if external_id:
        upsert_plan_invoice(
            document,
            restaurant=restaurant,
            plan_name=plan_name,
            amount=amount,
            external_id=external_id,
            now=now,
            paid=True,
        )
    return external_id


def confirm_checkout(
    store: DocumentStore,
    slug: str,
    external_id: str | None = None,
    *,
    now: datetime | None = None,
) -> ConfirmResult:
    """Confirma o checkout pendente. Sem pendência, é um no-op bem-sucedido."""
    now = now or utcnow()

    def apply(document: StoreData) -> ConfirmResult:
        restaurant = document.find_restaurant(slug)
        if restaurant is None:
            raise TenantNotFound()
        if not restaurant.has_pending_checkout:
            return ConfirmResult(confirmed=False, message=NOTHING_TO_CONFIRM)
        if external_id is not None and external_id != restaurant.pending_checkout_external_id:
            raise CheckoutMismatch()
        confirmed_id = _activate(document, restaurant, now)
        return ConfirmResult(confirmed=True, message=CHECKOUT_CONFIRMED, external_id=confirmed_id)

    result = store.mutate(apply)
    if result.confirmed:
        logger.info("Assinatura confirmada", extra={"external_id": result.external_id, "tenant": slug})
    return result


def _event_metadata(data: dict[str, Any]) -> dict[str, Any]:
    candidates = [
        data.get("metadata"),
        (data.get("subscription_details") or {}).get("metadata"),
        ((data.get("parent") or {}).get("subscription_details") or {}).get("metadata"),
    ]
    for candidate in candidates:
        if isinstance(candidate, dict) and candidate:
            return candidate
    return {}


def _find_event_restaurant(document: StoreData, external_id: str, slug: str | None) -> Restaurant | None:
    if external_id:
        for restaurant in document.restaurants:
            if restaurant.pending_checkout_external_id == external_id:
                return restaurant
    if slug:
        restaurant = document.find_restaurant(slug)
        if restaurant is not None:
            return restaurant
    match = EXTERNAL_ID_PATTERN.match(external_id or "")
    if match:
        return document.find_restaurant(match.group(1))
    return None


def handle_gateway_event(store: DocumentStore, event: dict[str, Any], *, now: datetime | None = None) -> GatewayEventResult:
    """Reconcilia um evento do webhook com o documento.

    Eventos desconhecidos ou sem restaurante correspondente são apenas
    reconhecidos, para o provedor não reenviar.
    """
    now = now or utcnow()
    event_type = str(event.get("type") or "").strip().lower()
    data = (event.get("data") or {}).get("object") or {}
    if not isinstance(data, dict):
        data = {}
    metadata = _event_metadata(data)
    external_id = str(metadata.get("externalId") or data.get("client_reference_id") or data.get("id") or "")
    metadata_slug = metadata.get("restaurantSlug")

    def apply(document: StoreData) -> GatewayEventResult:
        result = GatewayEventResult(event_type=event_type, action="ignored")
        if not event_type:
            return result
        restaurant = _find_event_restaurant(document, external_id, metadata_slug)
        if restaurant is None:
            return result
        result.restaurant_slug = restaurant.slug

        if event_type == "checkout.session.completed":
            payment_status = str(data.get("payment_status") or "")
            if payment_status not in PAID_CHECKOUT_STATUSES:
                result.action = "awaiting_payment"
                return result
            if not restaurant.has_pending_checkout:
                result.action = "already_confirmed"
                return result
            if external_id != restaurant.pending_checkout_external_id:
                result.action = "checkout_mismatch"
                result.details = {"pendingExternalId": restaurant.pending_checkout_external_id}
                return result
            _activate(document, restaurant, now, checkout_url=data.get("url"))
            result.action = "activated"
            return result

        if event_type == "invoice.payment_failed":
            restaurant.subscription_status = SubscriptionStatus.PENDING_PAYMENT
            result.action = "payment_failed"
            return result

        if event_type == "customer.subscription.deleted":
            restaurant.subscription_status = SubscriptionStatus.CANCELED
            restaurant.canceled_at = now
            result.action = "canceled"
            return result

        return result

    result = store.mutate(apply)
    log = logger.warning if result.action == "checkout_mismatch" else logger.info
    log(
        "Evento do gateway processado tipo=%s acao=%s",
        result.event_type or "-",
        result.action,
        extra={"external_id": external_id or None, "tenant": result.restaurant_slug},
    )
    return result
