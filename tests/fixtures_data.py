"""Conjunto de dados reutilizável para cenários de teste backend."""

from __future__ import annotations

import copy
from datetime import datetime, timezone

from app.core.errors import DomainError
from app.schemas.store import StoreData
from app.services.billing_gateway import BillingGateway, CheckoutRequest, CheckoutSession
from app.services.document_store import InMemoryDocumentStore

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
CHECKOUT_URL = "https://checkout.stripe.com/c/pay/cs_test_123"

PLAIN_PRODUCT = {
    "id": "prod_burger",
    "categoryId": "cat_lanches",
    "name": "Burger Classic",
    "description": "Pão brioche e hambúrguer 160g.",
    "price": 25.0,
    "active": True,
    "kind": "padrao",
    "complements": [
        {"id": "cmp_bacon", "name": "Bacon", "price": 3.0},
        {"id": "cmp_cheddar", "name": "Cheddar", "price": 2.5},
    ],
}

DRINK_PRODUCT = {
    "id": "prod_coke",
    "categoryId": "cat_bebidas",
    "name": "Coca-Cola 350ml",
    "price": 6.0,
    "active": True,
    "kind": "bebida",
}

INACTIVE_PRODUCT = {
    "id": "prod_old",
    "name": "Produto fora do cardápio",
    "price": 12.0,
    "active": False,
}

PIZZA_PRODUCT = {
    "id": "prod_pizza",
    "categoryId": "cat_pizzas",
    "name": "Pizza Grande",
    "price": 0,
    "active": True,
    "kind": "pizza",
    "pizzaFlavors": [
        {"id": "fl_calabresa", "name": "Calabresa", "ingredients": "Calabresa e cebola", "price": 40.0},
        {"id": "fl_margherita", "name": "Margherita", "ingredients": "Tomate e manjericão", "price": 50.0},
        {"id": "fl_portuguesa", "name": "Portuguesa", "ingredients": "Presunto e ovo", "price": 45.0},
    ],
    "crusts": [{"id": "crust_catupiry", "name": "Catupiry", "price": 8.0}],
}

ACAI_PRODUCT = {
    "id": "prod_acai",
    "categoryId": "cat_acai",
    "name": "Açaí 500ml",
    "price": 15.0,
    "active": True,
    "kind": "acai",
    "acaiComplementGroups": [
        {
            "id": "grp_frutas",
            "name": "Frutas",
            "minSelect": 1,
            "maxSelect": 2,
            "items": [
                {"id": "it_banana", "name": "Banana", "price": 2.0, "maxQty": 2},
                {"id": "it_morango", "name": "Morango", "price": 3.0, "maxQty": 1},
            ],
        },
        {
            "id": "grp_caldas",
            "name": "Caldas",
            "minSelect": 0,
            "maxSelect": 1,
            "items": [{"id": "it_leite", "name": "Leite condensado", "price": 2.5, "maxQty": 1}],
        },
    ],
}

PLAN_BASIC = {
    "id": "plan_basic",
    "name": "Plano Básico",
    "price": 149.90,
    "color": "#6366f1",
    "description": "Cardápio digital e pedidos via WhatsApp.",
    "features": ["Cardapio Digital"],
    "active": True,
    "createdAt": "2026-02-01T00:00:00.000Z",
    "updatedAt": "2026-02-01T00:00:00.000Z",
}

PLAN_PRO = {
    "id": "plan_pro",
    "name": "Plano Pro",
    "price": 299.90,
    "active": True,
    "createdAt": "2026-02-01T00:00:00.000Z",
    "updatedAt": "2026-02-01T00:00:00.000Z",
}

PLAN_RETIRED = {
    "id": "plan_retired",
    "name": "Plano Antigo",
    "price": 99.0,
    "active": False,
    "createdAt": "2025-01-01T00:00:00.000Z",
    "updatedAt": "2025-01-01T00:00:00.000Z",
}

ACME_RESTAURANT = {
    "id": "r_acme",
    "name": "Acme Burger",
    "slug": "acme",
    "whatsapp": "+55 (11) 99999-0000",
    "plan": "Plano Básico",
    "active": True,
    "openForOrders": True,
    "createdAt": "2026-01-01T00:00:00.000Z",
    "ownerEmail": "dono@acme.com",
    "ownerPassword": "hash-legado",
    "minOrderValue": 20.0,
    "deliveryFee": 5.0,
    "subscribedPlanId": "plan_basic",
    "subscriptionStatus": "active",
    "nextBillingAt": "2026-04-01T00:00:00.000Z",
    "categories": [{"id": "cat_lanches", "name": "Lanches", "active": True}],
    "products": [PLAIN_PRODUCT, DRINK_PRODUCT, INACTIVE_PRODUCT, PIZZA_PRODUCT, ACAI_PRODUCT],
}

HAPPY_PATH_CUSTOMER = {
    "name": "João",
    "whatsapp": "11999990000",
    "address": "Rua Principal, 100",
}

HAPPY_PATH_ORDER_PAYLOAD = {
    "restaurantSlug": "acme",
    "customer": HAPPY_PATH_CUSTOMER,
    "items": [{"productId": "prod_burger", "quantity": 2}],
    "paymentMethod": "pix",
    "generalNotes": "Sem cebola",
}


def restaurant_payload(**overrides) -> dict:
    payload = copy.deepcopy(ACME_RESTAURANT)
    payload.update(overrides)
    return payload


def order_payload(order_id: str = "order_1", status: str = "Recebido", slug: str = "acme") -> dict:
    return {
        "id": order_id,
        "restaurantSlug": slug,
        "customerName": "Maria",
        "customerWhatsapp": "11988887777",
        "customerAddress": "Rua B, 20",
        "paymentMethod": "money",
        "items": [{"productId": "prod_burger", "name": "Burger Classic", "price": 25.0, "quantity": 1}],
        "subtotal": 25.0,
        "deliveryFee": 5.0,
        "total": 30.0,
        "status": status,
        "createdAt": "2026-03-10T11:00:00.000Z",
    }


def build_document(*, restaurants: list[dict] | None = None, orders: list[dict] | None = None, **extra) -> StoreData:
    payload = {
        "restaurants": restaurants if restaurants is not None else [restaurant_payload()],
        "plans": [copy.deepcopy(PLAN_BASIC), copy.deepcopy(PLAN_PRO), copy.deepcopy(PLAN_RETIRED)],
        "invoices": [],
        "orders": orders or [],
        "customers": [],
    }
    payload.update(extra)
    return StoreData.model_validate(payload)


def build_store(**kwargs) -> InMemoryDocumentStore:
    return InMemoryDocumentStore(build_document(**kwargs))


class FakeGateway(BillingGateway):
    provider = "fake"

    def __init__(self, *, configured: bool = True, url: str = CHECKOUT_URL, error: DomainError | None = None) -> None:
        self.configured = configured
        self.url = url
        self.error = error
        self.requests: list[CheckoutRequest] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    def create_checkout_session(self, request: CheckoutRequest) -> CheckoutSession:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return CheckoutSession(session_id="cs_test_123", url=self.url, raw={"id": "cs_test_123", "url": self.url})
