from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from storefront.core.errors import EmptyCart, InvalidField, MissingAddress
from storefront.domain.cart import Cart
from storefront.domain.catalog import Money, RestaurantSettings, SelectedOption
from storefront.domain.pricing import DELIVERY_MODE_DELIVERY, DELIVERY_MODES, delivery_cost

PAYMENT_METHODS = ("cash", "transfer")


@dataclass(frozen=True)
class CustomerInfo:
    name: str
    phone: str


@dataclass(frozen=True)
class SubmissionLine:
    product_id: str
    name: str
    quantity: int
    selected_options: tuple[SelectedOption, ...]
    unit_price: Money
    subtotal: Money

    @property
    def options(self) -> tuple[str, ...]:
        return tuple(option.display_name for option in self.selected_options)


@dataclass(frozen=True)
class OrderSubmission:
    customer: CustomerInfo
    delivery_mode: str
    payment_method: str
    lines: tuple[SubmissionLine, ...]
    subtotal: Money
    delivery_cost: Money
    total: Money
    delivery_address: Optional[str] = None
    note: Optional[str] = None

    @property
    def customer_name(self) -> str:
        return self.customer.name

    @property
    def summary_lines(self) -> tuple[SubmissionLine, ...]:
        return self.lines

    def to_payload(self) -> dict[str, Any]:
        """Cuerpo JSON que espera POST /api/orders."""
        payload: dict[str, Any] = {
            "customerInfo": {"name": self.customer.name, "phone": self.customer.phone},
            "deliveryMode": self.delivery_mode,
            "paymentMethod": self.payment_method,
            "cartItems": [
                {
                    "productId": line.product_id,
                    "quantity": line.quantity,
                    "selectedOptions": [
                        {"groupId": option.group_id, "value": option.value}
                        if option.value
                        else {"groupId": option.group_id}
                        for option in line.selected_options
                    ],
                    "clientUnitPrice": line.unit_price,
                    "clientSubtotal": line.subtotal,
                }
                for line in self.lines
            ],
            "clientSubtotal": self.subtotal,
            "clientDeliveryCost": self.delivery_cost,
            "clientTotal": self.total,
        }
        if self.delivery_address:
            payload["deliveryAddress"] = self.delivery_address
        if self.note:
            payload["note"] = self.note
        return payload


def build_submission(
    cart: Cart,
    customer: CustomerInfo,
    delivery_mode: str,
    payment_method: str,
    settings: RestaurantSettings,
    note: Optional[str] = None,
    delivery_address: Optional[str] = None,
) -> OrderSubmission:
    if cart.total_items() <= 0:
        raise EmptyCart("El carrito está vacío")
    if delivery_mode not in DELIVERY_MODES:
        raise InvalidField(f"Modo de entrega inválido: {delivery_mode!r}", field="deliveryMode")
    if payment_method not in PAYMENT_METHODS:
        raise InvalidField(f"Método de pago inválido: {payment_method!r}", field="paymentMethod")

    address = (delivery_address or "").strip() or None
    if delivery_mode == DELIVERY_MODE_DELIVERY:
        if address is None:
            raise MissingAddress("Falta la dirección de entrega", field="deliveryAddress")
    else:
        address = None

    lines = tuple(
        SubmissionLine(
            product_id=item.product.id,
            name=item.product.name,
            quantity=item.quantity,
            selected_options=item.selected_options,
            unit_price=item.unit_price,
            subtotal=item.subtotal,
        )
        for item in cart
    )
    subtotal = sum(line.subtotal for line in lines)
    cost = delivery_cost(settings, delivery_mode)

    return OrderSubmission(
        customer=customer,
        delivery_mode=delivery_mode,
        payment_method=payment_method,
        lines=lines,
        subtotal=subtotal,
        delivery_cost=cost,
        total=subtotal + cost,
        delivery_address=address,
        note=(note or "").strip() or None,
    )
