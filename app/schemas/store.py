"""Entidades do documento persistido (restaurantes, planos, faturas, pedidos).

Os atributos Python seguem snake_case; o documento salvo e os payloads HTTP
usam as chaves camelCase do formato legado do ``store.json``.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional

from pydantic import (
    AfterValidator,
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from app.core.clock import ensure_utc, utcnow

logger = logging.getLogger(__name__)

Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]
UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]


class SubscriptionStatus(str, Enum):
    TRIAL = "trial"
    PENDING_PAYMENT = "pending_payment"
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELED = "canceled"


class OrderStatus(str, Enum):
    RECEIVED = "Recebido"
    IN_PREPARATION = "Em preparo"
    COMPLETED = "Concluido"


class InvoiceStatus(str, Enum):
    PENDING = "Pendente"
    PAID = "Pago"
    OVERDUE = "Vencido"
    REFUNDED = "Estornado"


class InvoiceMethod(str, Enum):
    CARD = "Cartao de Credito"
    BOLETO = "Boleto"
    PIX = "Pix"


class PaymentMethod(str, Enum):
    MONEY = "money"
    CARD = "card"
    PIX = "pix"


class ProductKind(str, Enum):
    PLAIN = "plain"
    PIZZA = "pizza"
    DRINK = "drink"
    ACAI = "acai"


class OrderChannel(str, Enum):
    ONLINE = "online"
    MANUAL = "manual"


class MinOrderBasis(str, Enum):
    SUBTOTAL = "subtotal"
    TOTAL = "total"


# Valores legados do cardápio antigo
PRODUCT_KIND_ALIASES = {
    "padrao": ProductKind.PLAIN,
    "padrão": ProductKind.PLAIN,
    "bebida": ProductKind.DRINK,
    "açaí": ProductKind.ACAI,
    "acaí": ProductKind.ACAI,
}


class DocumentModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class PizzaFlavor(DocumentModel):
    id: Optional[str] = None
    name: str
    ingredients: str = ""
    price: Money = Field(ge=0)


class PizzaCrust(DocumentModel):
    id: Optional[str] = None
    name: str
    ingredients: Optional[str] = None
    price: Money = Field(default=Decimal("0"), ge=0)


class ProductComplement(DocumentModel):
    id: Optional[str] = None
    name: str
    price: Money = Field(default=Decimal("0"), ge=0)


class AcaiItem(DocumentModel):
    id: str
    name: str
    price: Money = Field(default=Decimal("0"), ge=0)
    max_qty: int = Field(default=1, ge=0)


class AcaiComplementGroup(DocumentModel):
    id: str
    name: str
    min_select: int = Field(default=0, ge=0)
    max_select: int = Field(default=1, ge=0)
    items: list[AcaiItem] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_bounds(self) -> "AcaiComplementGroup":
        if self.min_select > self.max_select:
            raise ValueError(f"Grupo {self.id}: minSelect maior que maxSelect")
        return self


class Category(DocumentModel):
    id: str
    name: str
    active: bool = True


class Product(DocumentModel):
    id: str
    category_id: Optional[str] = None
    name: str
    description: str = ""
    price: Money = Field(default=Decimal("0"), ge=0)
    active: bool = True
    image_url: Optional[str] = None
    kind: ProductKind = ProductKind.PLAIN
    flavors: list[PizzaFlavor] = Field(
        default_factory=list,
        validation_alias=AliasChoices("flavors", "pizzaFlavors"),
        serialization_alias="flavors",
    )
    crusts: list[PizzaCrust] = Field(
        default_factory=list,
        validation_alias=AliasChoices("crusts", "pizzaCrusts"),
        serialization_alias="crusts",
    )
    complements: list[ProductComplement] = Field(default_factory=list)
    complement_groups: list[AcaiComplementGroup] = Field(
        default_factory=list,
        validation_alias=AliasChoices("complementGroups", "acaiComplementGroups", "complement_groups"),
        serialization_alias="complementGroups",
    )

    @field_validator("kind", mode="before")
    @classmethod
    def _normalize_kind(cls, value):
        if value is None:
            return ProductKind.PLAIN
        if isinstance(value, str):
            lowered = value.strip().lower()
            return PRODUCT_KIND_ALIASES.get(lowered, lowered)
        return value


class Restaurant(DocumentModel):
    id: str
    name: str
    slug: str
    whatsapp: str = ""
    owner_email: str = ""
    plan: str = ""
    active: bool = True
    open_for_orders: bool = True
    created_at: UtcDatetime = Field(default_factory=utcnow)
    canceled_at: Optional[UtcDatetime] = None
    min_order_value: Money = Field(default=Decimal("0"), ge=0)
    min_order_applies_to: MinOrderBasis = MinOrderBasis.SUBTOTAL
    delivery_fee: Money = Field(default=Decimal("0"), ge=0)
    subscribed_plan_id: Optional[str] = None
    subscription_status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    trial_started_at: Optional[UtcDatetime] = None
    trial_ends_at: Optional[UtcDatetime] = None
    next_billing_at: Optional[UtcDatetime] = None
    subscription_started_at: Optional[UtcDatetime] = None
    subscription_ends_at: Optional[UtcDatetime] = None
    pending_plan_id: Optional[str] = None
    pending_checkout_external_id: Optional[str] = None
    last_checkout_url: Optional[str] = None
    categories: list[Category] = Field(default_factory=list)
    products: list[Product] = Field(default_factory=list)

    @field_validator("subscription_status", mode="before")
    @classmethod
    def _default_status(cls, value):
        return SubscriptionStatus.ACTIVE if value is None else value

    @model_validator(mode="after")
    def _pending_checkout_pair(self) -> "Restaurant":
        # Par incompleto vale como "sem checkout pendente"
        if bool(self.pending_plan_id) != bool(self.pending_checkout_external_id):
            logger.warning(
                "Checkout pendente incompleto descartado plan=%s external_id=%s",
                self.pending_plan_id,
                self.pending_checkout_external_id,
                extra={"tenant": self.slug},
            )
            self.pending_plan_id = None
            self.pending_checkout_external_id = None
        return self

    @property
    def has_pending_checkout(self) -> bool:
        return bool(self.pending_plan_id and self.pending_checkout_external_id)

    def set_pending_checkout(self, plan_id: str, external_id: str) -> None:
        self.pending_plan_id = plan_id
        self.pending_checkout_external_id = external_id

    def clear_pending_checkout(self) -> None:
        self.pending_plan_id = None
        self.pending_checkout_external_id = None

    def find_product(self, product_id: str) -> Product | None:
        for product in self.products:
            if product.id == product_id:
                return product
        return None


class Plan(DocumentModel):
    id: str
    name: str
    price: Money = Field(ge=0)
    color: str = "#6366f1"
    description: str = ""
    features: list[str] = Field(default_factory=list)
    active: bool = True
    created_at: UtcDatetime = Field(default_factory=utcnow)
    updated_at: UtcDatetime = Field(default_factory=utcnow)


class Invoice(DocumentModel):
    id: str
    restaurant_slug: str
    restaurant_name: str
    plan: str
    value: Money
    due_date: date
    status: InvoiceStatus = InvoiceStatus.PENDING
    method: InvoiceMethod = InvoiceMethod.CARD
    created_at: UtcDatetime = Field(default_factory=utcnow)
    paid_at: Optional[UtcDatetime] = None
    external_id: Optional[str] = None

    @field_validator("due_date", mode="before")
    @classmethod
    def _date_part(cls, value):
        # Documentos antigos gravam vencimento como ISO completo
        if isinstance(value, str) and len(value) > 10:
            return value[:10]
        if isinstance(value, datetime):
            return value.date()
        return value


class OrderItem(DocumentModel):
    product_id: str
    name: str
    price: Money
    quantity: int = Field(ge=1)
    notes: Optional[str] = None


class Order(DocumentModel):
    id: str
    restaurant_slug: str
    customer_name: str
    customer_whatsapp: str
    customer_address: str = ""
    payment_method: PaymentMethod
    items: list[OrderItem] = Field(default_factory=list)
    subtotal: Money
    delivery_fee: Money
    total: Money
    general_notes: Optional[str] = None
    channel: OrderChannel = OrderChannel.ONLINE
    status: OrderStatus = OrderStatus.RECEIVED
    created_at: UtcDatetime = Field(default_factory=utcnow)
    updated_at: Optional[UtcDatetime] = None


class Customer(DocumentModel):
    id: str
    restaurant_slug: str
    name: str
    whatsapp: str
    total_orders: int = 0
    total_spent: Money = Decimal("0")
    last_order_at: Optional[UtcDatetime] = None
    created_at: UtcDatetime = Field(default_factory=utcnow)


class StoreData(DocumentModel):
    """Documento completo. ``revision`` controla a escrita otimista."""

    revision: int = Field(default=0, exclude=True)
    restaurants: list[Restaurant] = Field(default_factory=list)
    plans: list[Plan] = Field(default_factory=list)
    invoices: list[Invoice] = Field(default_factory=list)
    orders: list[Order] = Field(default_factory=list)
    customers: list[Customer] = Field(default_factory=list)

    def find_restaurant(self, slug: str) -> Restaurant | None:
        for restaurant in self.restaurants:
            if restaurant.slug == slug:
                return restaurant
        return None

    def find_plan(self, plan_id: str | None) -> Plan | None:
        if not plan_id:
            return None
        for plan in self.plans:
            if plan.id == plan_id:
                return plan
        return None

    def count_subscribers(self, plan_id: str) -> int:
        return sum(1 for restaurant in self.restaurants if restaurant.subscribed_plan_id == plan_id)

    def find_invoice_by_external_id(self, external_id: str | None) -> Invoice | None:
        if not external_id:
            return None
        for invoice in self.invoices:
            if invoice.external_id and invoice.external_id == external_id:
                return invoice
        return None

    def find_order(self, order_id: str) -> Order | None:
        for order in self.orders:
            if order.id == order_id:
                return order
        return None

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
