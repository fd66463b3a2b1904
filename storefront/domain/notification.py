"""Resumen del pedido y link de WhatsApp para el local."""

from __future__ import annotations

import re
from typing import Iterable, Optional, Protocol, Sequence
from urllib.parse import quote

from storefront.core.config import PHONE_COUNTRY_CODE
from storefront.core.errors import InvalidAddress
from storefront.domain.pricing import DELIVERY_MODE_DELIVERY

WHATSAPP_BASE_URL = "https://wa.me"

_PHONE_SEPARATORS = re.compile(r"[\s\-().]")
_DIALABLE = re.compile(r"^\+?\d+$")
MIN_PHONE_DIGITS = 10
MAX_PHONE_DIGITS = 15


class SummaryLine(Protocol):
    name: str
    quantity: int
    options: Sequence[str]


class SummaryOrder(Protocol):
    customer_name: str
    delivery_mode: str
    delivery_address: Optional[str]
    total: int

    @property
    def summary_lines(self) -> Iterable[SummaryLine]: ...


def format_price(amount: int) -> str:
    formatted = f"{int(amount or 0):,}".replace(",", ".")
    return f"$ {formatted}"


def normalize_phone(raw: str | None, *, country_code: str = PHONE_COUNTRY_CODE) -> Optional[str]:
    """Devuelve el número en forma +<código><número> o None si no es marcable."""
    if not raw:
        return None
    normalized = _PHONE_SEPARATORS.sub("", str(raw))
    if not _DIALABLE.match(normalized):
        return None

    if normalized.startswith(f"+{country_code}"):
        candidate = normalized
    elif normalized.startswith("+"):
        candidate = normalized
    elif normalized.startswith(country_code):
        candidate = f"+{normalized}"
    elif normalized.startswith("9"):
        candidate = f"+{country_code}{normalized}"
    elif len(normalized) >= 8:
        candidate = f"+{country_code}9{normalized}"
    else:
        return None

    digits = candidate.lstrip("+")
    if not MIN_PHONE_DIGITS <= len(digits) <= MAX_PHONE_DIGITS:
        return None
    return candidate


def render_summary(order: SummaryOrder, order_url: Optional[str] = None) -> str:
    items_text = "\n".join(
        f"• {line.quantity}x {line.name}" + (f" ({', '.join(line.options)})" if line.options else "")
        for line in order.summary_lines
    )

    if order.delivery_mode == DELIVERY_MODE_DELIVERY:
        delivery_text = f"📍 *Dirección:* {order.delivery_address or ''}"
    else:
        delivery_text = "🏪 *Retiro en local*"

    order_url_text = f"\n🔗 *Ver pedido completo:* {order_url}" if order_url else ""

    return (
        "🍣 *NUEVO PEDIDO*\n"
        "\n"
        f"👤 *Cliente:* {order.customer_name}\n"
        f"{delivery_text}\n"
        "\n"
        "📋 *Productos:*\n"
        f"{items_text}\n"
        "\n"
        f"💰 *Total: {format_price(order.total)}*"
        f"{order_url_text}"
    )


def build_deep_link(channel_address: str, summary_text: str) -> str:
    normalized = normalize_phone(channel_address)
    if normalized is None:
        raise InvalidAddress(
            f"Número de WhatsApp inválido: {channel_address!r}",
            field="whatsapp_number",
        )
    # mismos caracteres reservados que encodeURIComponent
    encoded = quote(summary_text, safe="-_.!~*'()")
    return f"{WHATSAPP_BASE_URL}/{normalized.lstrip('+')}?text={encoded}"
