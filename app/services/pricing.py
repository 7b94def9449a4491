"""Cálculo de preço por linha do carrinho.

Funções puras: recebem o produto do cardápio e a seleção do cliente e
devolvem um ``PricedLine``. Nenhuma delas acessa o armazenamento.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, TypeVar

from app.core.errors import InvalidSelection
from app.schemas.requests import AcaiSelection, LineSelection
from app.schemas.store import AcaiComplementGroup, Product, ProductKind

MAX_PIZZA_FLAVORS = 2
ZERO = Decimal("0")
CENTS = Decimal("0.01")

_Named = TypeVar("_Named")


@dataclass(frozen=True)
class PricedLine:
    product_id: str
    name: str
    unit_price: Decimal
    quantity: int
    line_total: Decimal
    description: str | None = None


def _match(options: Iterable[_Named], reference: str) -> _Named | None:
    wanted = (reference or "").strip().lower()
    if not wanted:
        return None
    for option in options:
        option_id = (getattr(option, "id", None) or "").strip().lower()
        option_name = (getattr(option, "name", None) or "").strip().lower()
        if wanted in {option_id, option_name}:
            return option
    return None


def _complements_total(product: Product, selection: LineSelection) -> tuple[Decimal, list[str]]:
    total = ZERO
    names: list[str] = []
    seen: set[str] = set()
    for reference in selection.complements:
        complement = _match(product.complements, reference)
        if complement is None:
            raise InvalidSelection(f"Complemento '{reference}' não existe em {product.name}.")
        key = complement.id or complement.name
        if key in seen:
            raise InvalidSelection(f"Complemento '{complement.name}' selecionado mais de uma vez.")
        seen.add(key)
        total += complement.price
        names.append(complement.name)
    return total, names


def _pizza_unit_price(product: Product, selection: LineSelection) -> tuple[Decimal, list[str]]:
    if len(selection.flavors) > MAX_PIZZA_FLAVORS:
        raise InvalidSelection(f"Escolha no máximo {MAX_PIZZA_FLAVORS} sabores.")

    flavors = []
    for reference in selection.flavors:
        flavor = _match(product.flavors, reference)
        if flavor is None:
            raise InvalidSelection(f"Sabor '{reference}' não existe em {product.name}.")
        if any(chosen is flavor for chosen in flavors):
            raise InvalidSelection(f"Sabor '{flavor.name}' selecionado mais de uma vez.")
        flavors.append(flavor)

    parts: list[str] = []
    if flavors:
        parts.append("Sabores: " + " / ".join(flavor.name for flavor in flavors))

    crust_price = ZERO
    if selection.crust:
        crust = _match(product.crusts, selection.crust)
        if crust is None:
            raise InvalidSelection(f"Borda '{selection.crust}' não existe em {product.name}.")
        crust_price = crust.price
        parts.append(f"Borda: {crust.name}")

    if not flavors:
        # Sem sabor não há preço; a criação do pedido rejeita essa linha.
        return ZERO, parts

    mean = (sum((flavor.price for flavor in flavors), ZERO) / len(flavors)).quantize(CENTS, rounding=ROUND_HALF_UP)
    return mean + crust_price, parts


def _group_selections(
    product: Product, selections: list[AcaiSelection]
) -> dict[str, dict[str, int]]:
    grouped: dict[str, dict[str, int]] = {}
    for chosen in selections:
        group = _match(product.complement_groups, chosen.group_id)
        if group is None:
            raise InvalidSelection(f"Grupo '{chosen.group_id}' não existe em {product.name}.", group=chosen.group_id)
        item = _match(group.items, chosen.item_id)
        if item is None:
            raise InvalidSelection(f"Item '{chosen.item_id}' não existe no grupo {group.name}.", group=group.id)
        items = grouped.setdefault(group.id, {})
        items[item.id] = items.get(item.id, 0) + chosen.quantity
    return grouped


def validate_acai_group(group: AcaiComplementGroup, quantities: dict[str, int]) -> Decimal:
    """Confere limites do grupo e devolve o valor somado dos itens escolhidos."""
    selected = sum(quantities.values())
    if selected < group.min_select or selected > group.max_select:
        raise InvalidSelection(
            f"{group.name}: escolha de {group.min_select} até {group.max_select} itens (selecionados: {selected}).",
            group=group.id,
        )
    total = ZERO
    for item in group.items:
        quantity = quantities.get(item.id, 0)
        if quantity > item.max_qty:
            raise InvalidSelection(
                f"{group.name}: {item.name} permite no máximo {item.max_qty}x.",
                group=group.id,
            )
        total += item.price * quantity
    return total


def _acai_unit_price(product: Product, selection: LineSelection) -> tuple[Decimal, list[str]]:
    grouped = _group_selections(product, selection.acai_selections)
    extras = ZERO
    parts: list[str] = []
    for group in product.complement_groups:
        quantities = grouped.get(group.id, {})
        extras += validate_acai_group(group, quantities)
        chosen = [f"{quantities[item.id]}x {item.name}" for item in group.items if quantities.get(item.id)]
        if chosen:
            parts.append(f"{group.name}: " + ", ".join(chosen))
    return product.price + extras, parts


def _reject_foreign_selections(product: Product, selection: LineSelection) -> None:
    is_pizza = product.kind == ProductKind.PIZZA and bool(product.flavors)
    if not is_pizza and (selection.flavors or selection.crust):
        raise InvalidSelection(f"{product.name} não aceita sabores ou borda.")
    if product.kind != ProductKind.ACAI and selection.acai_selections:
        raise InvalidSelection(f"{product.name} não possui grupos de complementos.")


def describe_line(parts: list[str], notes: str | None) -> str | None:
    cleaned = [part for part in parts if part]
    if notes and notes.strip():
        cleaned.append(notes.strip())
    return " | ".join(cleaned) or None


def price_line(product: Product, selection: LineSelection) -> PricedLine:
    _reject_foreign_selections(product, selection)

    parts: list[str] = []
    if product.kind == ProductKind.PIZZA and product.flavors:
        unit_price, parts = _pizza_unit_price(product, selection)
    elif product.kind == ProductKind.ACAI:
        unit_price, parts = _acai_unit_price(product, selection)
    else:
        unit_price = product.price

    complements_total, complement_names = _complements_total(product, selection)
    if complement_names:
        parts.append("Complementos: " + ", ".join(complement_names))
    if not is_unpriced_pizza(product, selection):
        unit_price += complements_total

    quantity = selection.quantity
    return PricedLine(
        product_id=product.id,
        name=product.name,
        unit_price=unit_price,
        quantity=quantity,
        line_total=unit_price * quantity,
        description=describe_line(parts, selection.notes),
    )


def is_unpriced_pizza(product: Product, selection: LineSelection) -> bool:
    return product.kind == ProductKind.PIZZA and bool(product.flavors) and not selection.flavors
