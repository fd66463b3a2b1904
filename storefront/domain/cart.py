from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator, Optional

from storefront.core.config import CART_STORE_DIR
from storefront.core.errors import InvalidQuantity, StorefrontError
from storefront.domain.catalog import Money, Product, SelectedOption
from storefront.domain.pricing import is_positive_int, line_subtotal, select_option, unit_price

logger = logging.getLogger(__name__)
CART_STORE_PREFIX = "[CART_STORE]"

ProductResolver = Callable[[str], Optional[Product]]


def canonical_options(selected_options: Iterable[SelectedOption]) -> tuple[SelectedOption, ...]:
    return tuple(sorted(selected_options, key=SelectedOption.sort_key))


def canonical_key(product_id: str, selected_options: Iterable[SelectedOption]) -> str:
    # JSON para que etiquetas con "|", ";" o "=" no choquen con otra selección
    parts = [[option.group_id, option.value or ""] for option in canonical_options(selected_options)]
    return json.dumps([product_id, parts], ensure_ascii=False, separators=(",", ":"))


@dataclass(frozen=True)
class LineItem:
    entry_id: str
    key: str
    product: Product
    selected_options: tuple[SelectedOption, ...]
    quantity: int
    unit_price: Money

    @property
    def subtotal(self) -> Money:
        return line_subtotal(self.unit_price, self.quantity)

    @property
    def product_id(self) -> str:
        return self.product.id


class Cart:
    """Carrito del cliente: entradas únicas por clave canónica.

    Los totales se recalculan siempre desde las entradas.
    """

    def __init__(self) -> None:
        self._entries: dict[str, LineItem] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LineItem]:
        return iter(list(self._entries.values()))

    def items(self) -> list[LineItem]:
        return list(self._entries.values())

    def get(self, entry_id: str) -> Optional[LineItem]:
        return self._find_by_entry(entry_id)

    def add_item(
        self,
        product: Product,
        selected_options: Iterable[SelectedOption] = (),
        quantity: int = 1,
    ) -> LineItem:
        if not is_positive_int(quantity):
            raise InvalidQuantity(f"Cantidad inválida: {quantity!r}", field="quantity")

        options = canonical_options(selected_options)
        price = unit_price(product, options)
        key = canonical_key(product.id, options)

        existing = self._entries.get(key)
        if existing is not None:
            item = replace(
                existing,
                product=product,
                selected_options=options,
                quantity=existing.quantity + quantity,
                unit_price=price,
            )
        else:
            item = LineItem(
                entry_id=uuid.uuid4().hex,
                key=key,
                product=product,
                selected_options=options,
                quantity=quantity,
                unit_price=price,
            )
        self._entries[key] = item
        return item

    def remove_item(self, entry_id: str) -> None:
        item = self._find_by_entry(entry_id)
        if item is not None:
            del self._entries[item.key]

    def update_quantity(self, entry_id: str, quantity: int) -> None:
        if not isinstance(quantity, int) or isinstance(quantity, bool):
            raise InvalidQuantity(f"Cantidad inválida: {quantity!r}", field="quantity")
        if quantity <= 0:
            self.remove_item(entry_id)
            return
        item = self._find_by_entry(entry_id)
        if item is None:
            return
        self._entries[item.key] = replace(item, quantity=quantity)

    def clear(self) -> None:
        self._entries.clear()

    def total_items(self) -> int:
        return sum(item.quantity for item in self._entries.values())

    def subtotal(self) -> Money:
        return sum(item.subtotal for item in self._entries.values())

    def _find_by_entry(self, entry_id: str) -> Optional[LineItem]:
        for item in self._entries.values():
            if item.entry_id == entry_id:
                return item
        return None

    # Persistencia

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": [
                {
                    "entry_id": item.entry_id,
                    "product_id": item.product.id,
                    "quantity": item.quantity,
                    "selected_options": [
                        {"group_id": option.group_id, "value": option.value}
                        for option in item.selected_options
                    ],
                }
                for item in self._entries.values()
            ]
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any], resolve_product: ProductResolver) -> "Cart":
        """Reconstruye el carrito contra el catálogo actual.

        Entradas con producto borrado, no disponible o con opciones que ya no
        existen se descartan sin cortar la carga.
        """
        cart = cls()
        raw_items = data.get("items") if isinstance(data, dict) else None
        for raw in raw_items or []:
            if not isinstance(raw, dict):
                continue
            product = resolve_product(str(raw.get("product_id") or ""))
            if product is None or not product.is_available:
                logger.info("%s dropped entry product_id=%s", CART_STORE_PREFIX, raw.get("product_id"))
                continue
            try:
                options = [
                    select_option(product, str(option.get("group_id") or ""), option.get("value"))
                    for option in raw.get("selected_options") or []
                ]
                quantity = raw.get("quantity")
                item = cart.add_item(product, options, quantity)
            except (StorefrontError, AttributeError, TypeError):
                logger.info("%s dropped stale entry product_id=%s", CART_STORE_PREFIX, product.id)
                continue
            entry_id = raw.get("entry_id")
            if entry_id and item.quantity == quantity and cart._find_by_entry(str(entry_id)) is None:
                cart._entries[item.key] = replace(item, entry_id=str(entry_id))
        return cart


class CartStore:
    """Guarda un carrito por clave de sesión en un archivo JSON."""

    def __init__(self, directory: str | Path = CART_STORE_DIR) -> None:
        self.directory = Path(directory)

    def _path(self, session_key: str) -> Path:
        safe_key = "".join(ch for ch in session_key if ch.isalnum() or ch in "-_") or "default"
        return self.directory / f"{safe_key}.json"

    def save(self, session_key: str, cart: Cart) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(session_key)
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_text(cart.to_json(), encoding="utf-8")
        tmp_path.replace(path)

    def load(self, session_key: str, resolve_product: ProductResolver) -> Cart:
        path = self._path(session_key)
        if not path.exists():
            return Cart()
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning("%s unreadable cart file=%s", CART_STORE_PREFIX, path)
            return Cart()
        return Cart.from_dict(data, resolve_product)

    def delete(self, session_key: str) -> None:
        self._path(session_key).unlink(missing_ok=True)
