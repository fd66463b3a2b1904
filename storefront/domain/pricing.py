from __future__ import annotations

from collections import Counter
from typing import Iterable, Optional

from storefront.core.errors import InvalidQuantity, InvalidSelection
from storefront.domain.catalog import (
    KIND_MULTI_CHOICE,
    Money,
    OptionGroup,
    Product,
    RestaurantSettings,
    SelectedOption,
    is_choice_group,
)

DELIVERY_MODE_DELIVERY = "delivery"
DELIVERY_MODE_PICKUP = "pickup"
DELIVERY_MODES = (DELIVERY_MODE_DELIVERY, DELIVERY_MODE_PICKUP)


def is_positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def select_option(product: Product, group_id: str, value: Optional[str] = None) -> SelectedOption:
    """Arma la selección capturando el delta vigente del producto."""
    group = product.find_group(group_id)
    if group is None:
        raise InvalidSelection(
            f"La opción {group_id!r} no pertenece a {product.name!r}",
            field="selectedOptions",
        )

    if is_choice_group(group):
        if not value:
            raise InvalidSelection(f"Elegí un valor para {group.name!r}", field="selectedOptions")
        option_value = group.find_value(value)
        if option_value is None:
            raise InvalidSelection(
                f"{value!r} no es un valor válido para {group.name!r}",
                field="selectedOptions",
            )
        return SelectedOption(
            group_id=group.id,
            value=option_value.label,
            price_delta=option_value.price_delta,
            display_name=f"{group.name}: {option_value.label}",
        )

    if value:
        raise InvalidSelection(f"{group.name!r} no admite valores", field="selectedOptions")
    return SelectedOption(group_id=group.id, price_delta=group.price_delta, display_name=group.name)


def _validate_selection(product: Product, selected_options: Iterable[SelectedOption]) -> None:
    per_group: Counter[str] = Counter()
    seen: set[tuple[str, str]] = set()

    for selected in selected_options:
        group: OptionGroup | None = product.find_group(selected.group_id)
        if group is None:
            raise InvalidSelection(
                f"La opción {selected.group_id!r} no pertenece a {product.name!r}",
                field="selectedOptions",
            )
        if is_choice_group(group):
            if not selected.value or group.find_value(selected.value) is None:
                raise InvalidSelection(
                    f"{selected.value!r} no es un valor válido para {group.name!r}",
                    field="selectedOptions",
                )
        elif selected.value:
            raise InvalidSelection(f"{group.name!r} no admite valores", field="selectedOptions")

        signature = selected.sort_key()
        if signature in seen:
            raise InvalidSelection(f"Opción repetida en {group.name!r}", field="selectedOptions")
        seen.add(signature)
        per_group[group.id] += 1
        if per_group[group.id] > 1 and group.kind != KIND_MULTI_CHOICE:
            raise InvalidSelection(f"{group.name!r} admite una sola elección", field="selectedOptions")

    for group in product.option_groups:
        if group.required and not per_group[group.id]:
            raise InvalidSelection(f"Falta elegir {group.name!r}", field="selectedOptions")


def unit_price(product: Product, selected_options: Iterable[SelectedOption]) -> Money:
    selected = list(selected_options)
    _validate_selection(product, selected)
    price = product.price + sum(option.price_delta for option in selected)
    if price < 0:
        raise InvalidSelection(f"Precio negativo para {product.name!r}", field="selectedOptions")
    return price


def line_subtotal(price: Money, quantity: int) -> Money:
    if not is_positive_int(quantity):
        raise InvalidQuantity(f"Cantidad inválida: {quantity!r}", field="quantity")
    return price * quantity


def delivery_cost(settings: RestaurantSettings, delivery_mode: str) -> Money:
    if delivery_mode != DELIVERY_MODE_DELIVERY or settings.is_delivery_free:
        return 0
    return int(settings.delivery_cost or 0)
