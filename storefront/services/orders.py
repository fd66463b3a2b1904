from __future__ import annotations

import logging
from typing import Optional

from storefront.core.config import PUBLIC_BASE_URL
from storefront.core.errors import InvalidAddress, InvalidField, InvalidStatusTransition, OrderNotFound
from storefront.domain.catalog import RestaurantSettings
from storefront.domain.notification import build_deep_link, render_summary
from storefront.domain.schedule import estimated_preparation_minutes
from storefront.services.order_repository import OrderRecord, SqlOrderRepository
from storefront.services.order_validator import OrderValidator
from storefront.schemas.order import OrderSubmissionIn

logger = logging.getLogger(__name__)
PUBLIC_ORDER_PREFIX = "[PUBLIC_ORDER]"
ORDER_STATUS_PREFIX = "[ORDER_STATUS]"

STATUS_PENDING = "pending"
STATUS_CONFIRMED = "confirmed"
STATUS_PREPARING = "preparing"
STATUS_DELIVERED = "delivered"
STATUS_CANCELLED = "cancelled"

ORDER_STATUSES = (STATUS_PENDING, STATUS_CONFIRMED, STATUS_PREPARING, STATUS_DELIVERED, STATUS_CANCELLED)
# flujo de cocina: solo hacia adelante
_STATUS_FLOW = (STATUS_PENDING, STATUS_CONFIRMED, STATUS_PREPARING, STATUS_DELIVERED)


def order_view_url(order_id: str) -> str:
    return f"{PUBLIC_BASE_URL}/order-view/{order_id}"


def notification_link(order: OrderRecord, settings: RestaurantSettings) -> Optional[str]:
    """Link de WhatsApp al local; None si el número configurado no sirve."""
    summary = render_summary(order, order_view_url(order.id))
    try:
        return build_deep_link(settings.contact_number, summary)
    except InvalidAddress:
        logger.error(
            "%s invalid restaurant whatsapp number order_id=%s",
            PUBLIC_ORDER_PREFIX,
            order.id,
        )
        return None


def place_order(
    validator: OrderValidator,
    payload: OrderSubmissionIn,
    client_address: Optional[str],
) -> dict:
    order = validator.submit(payload, client_address)
    # el pedido ya está guardado: sin link no se corta la respuesta
    deep_link = None
    try:
        settings = validator.settings_lookup.get_restaurant_settings()
    except Exception:
        logger.exception("%s settings lookup failed order_id=%s", PUBLIC_ORDER_PREFIX, order.id)
    else:
        deep_link = notification_link(order, settings)
    return {
        "orderId": order.id,
        "status": order.status,
        "total": order.total,
        "notificationDeepLink": deep_link,
        "orderViewUrl": order_view_url(order.id),
        "estimatedMinutes": estimated_preparation_minutes(order.item_count),
    }


def can_transition(current: str, target: str) -> bool:
    if current == target:
        return False
    if current in (STATUS_DELIVERED, STATUS_CANCELLED):
        return False
    if target == STATUS_CANCELLED:
        return True
    if current not in _STATUS_FLOW or target not in _STATUS_FLOW:
        return False
    return _STATUS_FLOW.index(target) > _STATUS_FLOW.index(current)


def change_order_status(repository: SqlOrderRepository, order_id: str, status: str) -> OrderRecord:
    target = (status or "").strip().lower()
    if target not in ORDER_STATUSES:
        raise InvalidField(f"Estado inválido: {status!r}", field="status")

    order = repository.get_order(order_id)
    if order is None:
        raise OrderNotFound(f"Pedido no encontrado: {order_id}", field="id")
    if not can_transition(order.status, target):
        raise InvalidStatusTransition(
            f"No se puede pasar de {order.status} a {target}",
            field="status",
        )

    updated = repository.update_order_status(order_id, target)
    logger.info(
        "%s order_id=%s from=%s to=%s",
        ORDER_STATUS_PREFIX,
        order_id,
        order.status,
        target,
    )
    return updated
