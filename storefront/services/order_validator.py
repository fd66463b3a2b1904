"""Validación de pedidos en el servidor.

Todo lo que manda el navegador se trata como no confiable: se revisa la
estructura, se resuelven los productos contra el catálogo, se recalculan
precios y totales, y recién entonces se persiste el pedido.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Optional, Protocol

from storefront.core.errors import (
    CatalogUnavailable,
    EmptyCart,
    InvalidField,
    InvalidQuantity,
    MissingAddress,
    ProductUnavailable,
    RateLimited,
    UnknownProduct,
)
from storefront.core.rate_limiter import RateLimiterService
from storefront.domain.assembler import PAYMENT_METHODS
from storefront.domain.cart import canonical_key, canonical_options
from storefront.domain.catalog import Money, Product, RestaurantSettings, SelectedOption
from storefront.domain.notification import normalize_phone
from storefront.domain.pricing import (
    DELIVERY_MODE_DELIVERY,
    DELIVERY_MODES,
    delivery_cost,
    line_subtotal,
    select_option,
    unit_price,
)
from storefront.domain.sanitize import sanitize_text, truncate
from storefront.schemas.order import CartItemIn, OrderSubmissionIn
from storefront.services.order_repository import OrderLine, OrderRecord

logger = logging.getLogger(__name__)
PUBLIC_ORDER_PREFIX = "[PUBLIC_ORDER]"
RATE_LIMIT_PREFIX = "[RATE_LIMIT]"

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100
PHONE_MIN_LENGTH = 8
PHONE_MAX_LENGTH = 20
ADDRESS_MIN_LENGTH = 5
ADDRESS_MAX_LENGTH = 200
NOTE_MAX_LENGTH = 500
MAX_CART_ITEMS = 50
MAX_QUANTITY = 99
# diferencia admitida entre lo que calculó el cliente y el servidor
PRICE_TOLERANCE = 1


class ProductLookup(Protocol):
    def get_product_by_id(self, product_id: str) -> Optional[Product]: ...


class SettingsLookup(Protocol):
    def get_restaurant_settings(self) -> RestaurantSettings: ...


class OrderRepository(Protocol):
    def create_order(self, record: OrderRecord) -> str: ...


@dataclass
class _MergedLine:
    product: Product
    selected_options: tuple[SelectedOption, ...]
    quantity: int
    client_unit_price: Optional[float] = None


class OrderValidator:
    def __init__(
        self,
        product_lookup: ProductLookup,
        settings_lookup: SettingsLookup,
        repository: OrderRepository,
        rate_limiter: RateLimiterService,
    ) -> None:
        self.product_lookup = product_lookup
        self.settings_lookup = settings_lookup
        self.repository = repository
        self.rate_limiter = rate_limiter

    def submit(self, payload: OrderSubmissionIn, client_address: str | None) -> OrderRecord:
        """Valida, recalcula y persiste el pedido; devuelve el registro con id."""
        customer_name = self._validate_name(payload.customer_info.name)
        customer_phone = self._validate_phone(payload.customer_info.phone)
        delivery_mode = self._validate_choice(payload.delivery_mode, DELIVERY_MODES, "deliveryMode")
        payment_method = self._validate_choice(payload.payment_method, PAYMENT_METHODS, "paymentMethod")
        delivery_address = self._validate_address(delivery_mode, payload.delivery_address)
        note = truncate(sanitize_text(payload.note), NOTE_MAX_LENGTH) or None
        self._validate_items_structure(payload.cart_items)
        # solo cuentan los envíos bien formados; siempre antes de consultar el catálogo
        self._check_rate_limit(client_address or "unknown")

        products, settings = self._load_catalog(payload.cart_items)
        merged, item_keys = self._merge_lines(payload.cart_items, products)

        lines = []
        prices: dict[str, Money] = {}
        for key, line in merged.items():
            price = unit_price(line.product, line.selected_options)
            prices[key] = price
            subtotal = line_subtotal(price, line.quantity)
            if _differs(line.client_unit_price, price):
                logger.warning(
                    "%s client price mismatch product_id=%s client=%s server=%s",
                    PUBLIC_ORDER_PREFIX,
                    line.product.id,
                    line.client_unit_price,
                    price,
                )
            lines.append(
                OrderLine(
                    product_id=line.product.id,
                    name=line.product.name,
                    quantity=line.quantity,
                    unit_price=price,
                    subtotal=subtotal,
                    selected_options=tuple(
                        {
                            "group_id": option.group_id,
                            "value": option.value,
                            "price_delta": option.price_delta,
                            "display_name": option.display_name,
                        }
                        for option in line.selected_options
                    ),
                )
            )

        for item, key in zip(payload.cart_items, item_keys):
            server_subtotal = prices[key] * item.quantity
            if _differs(item.client_subtotal, server_subtotal):
                logger.warning(
                    "%s client subtotal mismatch product_id=%s client=%s server=%s",
                    PUBLIC_ORDER_PREFIX,
                    item.product_id,
                    item.client_subtotal,
                    server_subtotal,
                )

        subtotal = sum(line.subtotal for line in lines)
        shipping = delivery_cost(settings, delivery_mode)
        total = subtotal + shipping
        for label, client_value, server_value in (
            ("subtotal", payload.client_subtotal, subtotal),
            ("delivery_cost", payload.client_delivery_cost, shipping),
            ("total", payload.client_total, total),
        ):
            if _differs(client_value, server_value):
                logger.warning(
                    "%s client %s mismatch client=%s server=%s",
                    PUBLIC_ORDER_PREFIX,
                    label,
                    client_value,
                    server_value,
                )

        record = OrderRecord(
            customer_name=customer_name,
            customer_phone=customer_phone,
            delivery_mode=delivery_mode,
            delivery_address=delivery_address,
            payment_method=payment_method,
            lines=tuple(lines),
            subtotal=subtotal,
            delivery_cost=shipping,
            total=total,
            status="pending",
            notes=note,
            client_ip=client_address,
        )
        order_id = self.repository.create_order(record)
        logger.info(
            "%s order created id=%s items=%s total=%s",
            PUBLIC_ORDER_PREFIX,
            order_id,
            record.item_count,
            total,
        )
        return replace(record, id=order_id)

    def _check_rate_limit(self, key: str) -> None:
        decision = self.rate_limiter.check(key=key)
        if not decision.allowed:
            logger.warning(
                "%s blocked key=%s retry_after=%s",
                RATE_LIMIT_PREFIX,
                key,
                decision.retry_after_seconds,
            )
            raise RateLimited(
                "Demasiados pedidos. Intentá de nuevo en unos minutos.",
                retry_after_seconds=decision.retry_after_seconds,
            )

    def _validate_name(self, raw: str) -> str:
        name = sanitize_text(raw)
        if not NAME_MIN_LENGTH <= len(name) <= NAME_MAX_LENGTH:
            raise InvalidField(
                f"El nombre debe tener entre {NAME_MIN_LENGTH} y {NAME_MAX_LENGTH} caracteres",
                field="customerInfo.name",
            )
        return name

    def _validate_phone(self, raw: str) -> str:
        phone = (raw or "").strip()
        if not PHONE_MIN_LENGTH <= len(phone) <= PHONE_MAX_LENGTH:
            raise InvalidField(
                f"El teléfono debe tener entre {PHONE_MIN_LENGTH} y {PHONE_MAX_LENGTH} caracteres",
                field="customerInfo.phone",
            )
        normalized = normalize_phone(phone)
        if normalized is None:
            raise InvalidField("Teléfono inválido", field="customerInfo.phone")
        return normalized

    def _validate_choice(self, raw: str, allowed: tuple[str, ...], field: str) -> str:
        value = (raw or "").strip()
        if value not in allowed:
            raise InvalidField(f"Valor inválido para {field}: {raw!r}", field=field)
        return value

    def _validate_address(self, delivery_mode: str, raw: Optional[str]) -> Optional[str]:
        if delivery_mode != DELIVERY_MODE_DELIVERY:
            return None
        address = sanitize_text(raw)
        if not address:
            raise MissingAddress("Falta la dirección de entrega", field="deliveryAddress")
        if not ADDRESS_MIN_LENGTH <= len(address) <= ADDRESS_MAX_LENGTH:
            raise InvalidField(
                f"La dirección debe tener entre {ADDRESS_MIN_LENGTH} y {ADDRESS_MAX_LENGTH} caracteres",
                field="deliveryAddress",
            )
        return address

    def _validate_items_structure(self, items: list[CartItemIn]) -> None:
        if not items:
            raise EmptyCart("El pedido no tiene productos", field="cartItems")
        if len(items) > MAX_CART_ITEMS:
            raise InvalidField(
                f"El pedido admite hasta {MAX_CART_ITEMS} productos",
                field="cartItems",
            )
        for index, item in enumerate(items):
            _check_quantity(item.quantity, index)

    def _load_catalog(self, items: list[CartItemIn]) -> tuple[dict[str, Optional[Product]], RestaurantSettings]:
        products: dict[str, Optional[Product]] = {}
        try:
            for item in items:
                if item.product_id not in products:
                    products[item.product_id] = self.product_lookup.get_product_by_id(item.product_id)
            settings = self.settings_lookup.get_restaurant_settings()
        except Exception as exc:
            logger.exception("%s catalog lookup failed", PUBLIC_ORDER_PREFIX)
            raise CatalogUnavailable("El catálogo no está disponible. Intentá más tarde.") from exc
        return products, settings

    def _merge_lines(
        self,
        items: list[CartItemIn],
        products: dict[str, Optional[Product]],
    ) -> tuple[dict[str, _MergedLine], list[str]]:
        merged: dict[str, _MergedLine] = {}
        item_keys: list[str] = []
        for index, item in enumerate(items):
            product = products.get(item.product_id)
            if product is None:
                raise UnknownProduct(
                    f"Producto inexistente: {item.product_id}",
                    field=f"cartItems[{index}].productId",
                )
            if not product.is_available:
                raise ProductUnavailable(
                    f"{product.name} no está disponible",
                    field=f"cartItems[{index}].productId",
                )

            options = canonical_options(
                select_option(product, option.group_id, option.value) for option in item.selected_options
            )
            key = canonical_key(product.id, options)
            item_keys.append(key)
            existing = merged.get(key)
            if existing is None:
                merged[key] = _MergedLine(
                    product=product,
                    selected_options=options,
                    quantity=item.quantity,
                    client_unit_price=item.client_unit_price,
                )
            else:
                existing.quantity += item.quantity
                _check_quantity(existing.quantity, index)

        per_product: dict[str, int] = {}
        for line in merged.values():
            per_product[line.product.id] = per_product.get(line.product.id, 0) + line.quantity
        for line in merged.values():
            stock = line.product.stock
            if stock is not None and per_product[line.product.id] > stock:
                raise ProductUnavailable(
                    f"No hay stock suficiente de {line.product.name}",
                    field="cartItems",
                )
        return merged, item_keys


def _check_quantity(quantity: int, index: int) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or not 1 <= quantity <= MAX_QUANTITY:
        raise InvalidQuantity(
            f"La cantidad debe estar entre 1 y {MAX_QUANTITY}",
            field=f"cartItems[{index}].quantity",
        )


def _differs(client_value: Optional[float], server_value: Money) -> bool:
    if client_value is None:
        return False
    return abs(client_value - server_value) > PRICE_TOLERANCE
