from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from urllib.parse import quote

from pydantic import ValidationError as PydanticValidationError

from app.core.clock import utcnow
from app.core.errors import (
    BelowMinimumOrder,
    InvalidSelection,
    InvalidTransition,
    OrderNotFound,
    ProductNotFound,
    SubscriptionInactive,
    TenantNotAcceptingOrders,
    TenantNotFound,
    ValidationError,
)
from app.core.ids import make_id
from app.schemas.requests import CustomerInfo, LineSelection, ManualOrderCreate, OrderCreate
from app.schemas.store import (
    Customer,
    MinOrderBasis,
    Order,
    OrderChannel,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    Restaurant,
    StoreData,
)
from app.services.document_store import DocumentStore
from app.services.pricing import PricedLine, is_unpriced_pizza, price_line
from app.services.subscriptions import is_subscription_blocked

logger = logging.getLogger(__name__)

# Único caminho permitido: sempre para frente, um passo por vez.
ORDER_TRANSITIONS: dict[OrderStatus, OrderStatus] = {
    OrderStatus.RECEIVED: OrderStatus.IN_PREPARATION,
    OrderStatus.IN_PREPARATION: OrderStatus.COMPLETED,
}

PAYMENT_LABELS = {
    PaymentMethod.MONEY: "Dinheiro",
    PaymentMethod.CARD: "Cartao",
    PaymentMethod.PIX: "Pix",
}

MANUAL_CUSTOMER_NAME = "Cliente balcão"
MANUAL_CUSTOMER_WHATSAPP = "00000000000"
MANUAL_CUSTOMER_ADDRESS = "Retirada no balcão"


@dataclass
class CreatedOrder:
    order: Order
    whatsapp_url: str


@dataclass
class OrderTransition:
    order: Order
    previous_status: OrderStatus


def _digits(value: str | None) -> str:
    return re.sub(r"\D", "", value or "")


def _ensure_accepting_orders(restaurant: Restaurant, now: datetime) -> None:
    if not restaurant.active or not restaurant.open_for_orders:
        raise TenantNotAcceptingOrders()
    if is_subscription_blocked(restaurant, now):
        raise SubscriptionInactive()


def _price_item(restaurant: Restaurant, selection: LineSelection) -> PricedLine:
    product = restaurant.find_product(selection.product_id)
    if product is None or not product.active:
        raise ProductNotFound(f"Produto {selection.product_id} não encontrado no cardápio.")
    if is_unpriced_pizza(product, selection):
        raise InvalidSelection(f"Selecione ao menos 1 sabor para {product.name}.")
    return price_line(product, selection)


def _check_minimum(restaurant: Restaurant, subtotal: Decimal, total: Decimal) -> None:
    minimum = restaurant.min_order_value
    if minimum <= 0:
        return
    reference = total if restaurant.min_order_applies_to == MinOrderBasis.TOTAL else subtotal
    if reference < minimum:
        raise BelowMinimumOrder(f"Pedido mínimo de R$ {minimum:.2f} para esta loja.")


def _upsert_customer(document: StoreData, order: Order, now: datetime) -> Customer:
    whatsapp = _digits(order.customer_whatsapp)
    for customer in document.customers:
        if customer.restaurant_slug == order.restaurant_slug and _digits(customer.whatsapp) == whatsapp:
            customer.name = order.customer_name
            customer.whatsapp = order.customer_whatsapp
            customer.total_orders += 1
            customer.total_spent += order.total
            customer.last_order_at = now
            return customer

    customer = Customer(
        id=make_id("customer"),
        restaurant_slug=order.restaurant_slug,
        name=order.customer_name,
        whatsapp=order.customer_whatsapp,
        total_orders=1,
        total_spent=order.total,
        last_order_at=now,
        created_at=now,
    )
    document.customers.insert(0, customer)
    return customer


def build_whatsapp_message(restaurant: Restaurant, order: Order) -> str:
    lines = [f"*NOVO PEDIDO - {restaurant.name}*", "-" * 30]
    for item in order.items:
        lines.append(f"{item.quantity}x {item.name} (R$ {item.price:.2f})")
        if item.notes:
            lines.append(f"Obs: {item.notes}")
    lines.append("-" * 30)
    lines.append(f"Subtotal: R$ {order.subtotal:.2f}")
    lines.append(f"Taxa entrega: R$ {order.delivery_fee:.2f}")
    lines.append(f"*TOTAL: R$ {order.total:.2f}*")
    lines.append("")
    lines.append("*DADOS DO CLIENTE*")
    lines.append(f"Nome: {order.customer_name}")
    lines.append(f"WhatsApp: {order.customer_whatsapp}")
    lines.append(f"Endereco: {order.customer_address}")
    lines.append(f"Pagamento: {PAYMENT_LABELS[order.payment_method]}")
    message = "\n".join(lines) + "\n"
    if order.general_notes:
        message += f"\nObs geral: {order.general_notes}"
    return message


def build_whatsapp_url(restaurant: Restaurant, order: Order) -> str:
    return f"https://wa.me/{_digits(restaurant.whatsapp)}?text={quote(build_whatsapp_message(restaurant, order), safe='')}"


def create_order(
    store: DocumentStore,
    slug: str,
    customer: CustomerInfo,
    items: list[LineSelection],
    payment_method: PaymentMethod,
    *,
    general_notes: str | None = None,
    channel: OrderChannel = OrderChannel.ONLINE,
    now: datetime | None = None,
) -> CreatedOrder:
    """Precifica, valida e grava o pedido com status ``Recebido``.

    Toda validação acontece antes da escrita; qualquer erro deixa o
    documento intacto.
    """
    now = now or utcnow()
    if not items:
        raise ValidationError("Pedido sem itens.")

    def apply(document: StoreData) -> tuple[Order, Restaurant]:
        restaurant = document.find_restaurant(slug)
        if restaurant is None:
            raise TenantNotFound()
        _ensure_accepting_orders(restaurant, now)

        lines = [_price_item(restaurant, item) for item in items]
        subtotal = sum((line.line_total for line in lines), Decimal("0"))
        delivery_fee = restaurant.delivery_fee
        total = subtotal + delivery_fee
        _check_minimum(restaurant, subtotal, total)

        order = Order(
            id=make_id("order"),
            restaurant_slug=restaurant.slug,
            customer_name=customer.name,
            customer_whatsapp=customer.whatsapp,
            customer_address=customer.address,
            payment_method=payment_method,
            items=[
                OrderItem(
                    product_id=line.product_id,
                    name=line.name,
                    price=line.unit_price,
                    quantity=line.quantity,
                    notes=line.description,
                )
                for line in lines
            ],
            subtotal=subtotal,
            delivery_fee=delivery_fee,
            total=total,
            general_notes=general_notes,
            channel=channel,
            status=OrderStatus.RECEIVED,
            created_at=now,
            updated_at=now,
        )
        document.orders.insert(0, order)
        _upsert_customer(document, order, now)
        return order, restaurant

    order, restaurant = store.mutate(apply)
    logger.info(
        "Pedido criado slug=%s total=%s itens=%s canal=%s",
        order.restaurant_slug,
        order.total,
        len(order.items),
        order.channel.value,
        extra={"order_id": order.id, "tenant": order.restaurant_slug},
    )
    return CreatedOrder(order=order, whatsapp_url=build_whatsapp_url(restaurant, order))


def create_order_from_payload(store: DocumentStore, payload: OrderCreate, *, now: datetime | None = None) -> CreatedOrder:
    return create_order(
        store,
        payload.restaurant_slug,
        payload.customer,
        payload.items,
        payload.payment_method,
        general_notes=payload.general_notes,
        now=now,
    )


def _manual_customer(payload: ManualOrderCreate) -> CustomerInfo:
    name = (payload.customer_name or "").strip()
    if not name:
        name = f"Mesa {payload.table}" if payload.table else MANUAL_CUSTOMER_NAME
    address = f"Mesa {payload.table}" if payload.table else MANUAL_CUSTOMER_ADDRESS
    try:
        return CustomerInfo(
            name=name,
            whatsapp=(payload.customer_whatsapp or "").strip() or MANUAL_CUSTOMER_WHATSAPP,
            address=address,
        )
    except PydanticValidationError as exc:
        raise ValidationError("Dados do cliente inválidos para pedido manual.") from exc


def create_manual_order(store: DocumentStore, payload: ManualOrderCreate, *, now: datetime | None = None) -> CreatedOrder:
    """Pedido lançado pela equipe: mesmo fluxo do pedido online, com cliente sintético."""
    return create_order(
        store,
        payload.restaurant_slug,
        _manual_customer(payload),
        payload.items,
        payload.payment_method,
        general_notes=payload.general_notes,
        channel=OrderChannel.MANUAL,
        now=now,
    )


def advance_order(
    store: DocumentStore,
    order_id: str,
    target: OrderStatus,
    *,
    restaurant_slug: str | None = None,
    now: datetime | None = None,
) -> OrderTransition:
    now = now or utcnow()

    def apply(document: StoreData) -> OrderTransition:
        order = document.find_order(order_id)
        if order is None or (restaurant_slug and order.restaurant_slug != restaurant_slug):
            raise OrderNotFound()
        restaurant = document.find_restaurant(order.restaurant_slug)
        if restaurant is None:
            raise TenantNotFound()
        if is_subscription_blocked(restaurant, now):
            raise SubscriptionInactive("Assinatura expirada. Renove o plano para operar pedidos.")

        current = order.status
        if ORDER_TRANSITIONS.get(current) != target:
            raise InvalidTransition(f"Não é possível mudar o pedido de {current.value} para {target.value}.")
        order.status = target
        order.updated_at = now
        return OrderTransition(order=order, previous_status=current)

    transition = store.mutate(apply)
    logger.info(
        "Status do pedido alterado de=%s para=%s",
        transition.previous_status.value,
        transition.order.status.value,
        extra={"order_id": transition.order.id, "tenant": transition.order.restaurant_slug},
    )
    return transition


def list_orders(store: DocumentStore, slug: str | None = None) -> list[Order]:
    document = store.read()
    if not slug:
        return list(document.orders)
    return [order for order in document.orders if order.restaurant_slug == slug]
