from __future__ import annotations

import logging
import re
import unicodedata
from datetime import datetime, timedelta
from decimal import Decimal

from app.core.clock import utcnow
from app.core.config import TRIAL_DAYS
from app.core.errors import SlugTaken, ValidationError
from app.core.ids import make_id
from app.schemas.requests import OnboardingRequest
from app.schemas.store import Category, Plan, Product, Restaurant, StoreData, SubscriptionStatus
from app.services.document_store import DocumentStore

logger = logging.getLogger(__name__)

SLUG_PATTERN = re.compile(r"^[a-z0-9-]{3,}$")
DEFAULT_DELIVERY_FEE = Decimal("5")
DEFAULT_MIN_ORDER_VALUE = Decimal("15")


def normalize_slug(value: str) -> str:
    normalized = unicodedata.normalize("NFKD", value or "")
    ascii_text = normalized.encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-z0-9]+", "-", ascii_text.lower()).strip("-")
    return re.sub(r"-{2,}", "-", slug)


def _pick_plan(document: StoreData, plan_id: str | None) -> Plan | None:
    if plan_id:
        plan = document.find_plan(plan_id)
        if plan is not None and plan.active:
            return plan
    return next((plan for plan in document.plans if plan.active), None)


def _seed_catalog() -> tuple[list[Category], list[Product]]:
    category = Category(id=make_id("cat"), name="Mais pedidos", active=True)
    product = Product(
        id=make_id("prod"),
        category_id=category.id,
        name="Produto exemplo",
        description="Edite no painel do restaurante.",
        price=Decimal("10"),
        active=True,
    )
    return [category], [product]


def onboard_restaurant(store: DocumentStore, payload: OnboardingRequest, *, now: datetime | None = None) -> Restaurant:
    """Cadastra o restaurante em período de teste de ``TRIAL_DAYS`` dias."""
    now = now or utcnow()
    slug = normalize_slug(payload.slug or payload.name)
    if not SLUG_PATTERN.match(slug):
        raise ValidationError("Slug inválido.")

    def apply(document: StoreData) -> Restaurant:
        if document.find_restaurant(slug) is not None:
            raise SlugTaken()
        plan = _pick_plan(document, payload.plan_id)
        categories, products = _seed_catalog()
        restaurant = Restaurant(
            id=make_id("r"),
            name=payload.name.strip(),
            slug=slug,
            whatsapp=payload.whatsapp.strip(),
            owner_email=str(payload.owner_email) if payload.owner_email else f"{slug}@pedezap.app",
            plan=plan.name if plan else "Sem plano",
            subscribed_plan_id=plan.id if plan else None,
            subscription_status=SubscriptionStatus.TRIAL,
            trial_started_at=now,
            trial_ends_at=now + timedelta(days=TRIAL_DAYS),
            delivery_fee=payload.delivery_fee if payload.delivery_fee is not None else DEFAULT_DELIVERY_FEE,
            min_order_value=(
                payload.min_order_value if payload.min_order_value is not None else DEFAULT_MIN_ORDER_VALUE
            ),
            created_at=now,
            categories=categories,
            products=products,
        )
        document.restaurants.append(restaurant)
        return restaurant

    restaurant = store.mutate(apply)
    logger.info("Restaurante cadastrado em trial", extra={"tenant": restaurant.slug})
    return restaurant
