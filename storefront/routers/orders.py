from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status

from storefront.core.errors import InvalidField, OrderNotFound
from storefront.deps import get_order_repository, get_order_validator, require_admin_token
from storefront.middleware.observability import resolve_client_address
from storefront.schemas.order import OrderCreatedOut, OrderStatusUpdateIn, OrderSubmissionIn
from storefront.services.order_repository import SqlOrderRepository
from storefront.services.order_validator import OrderValidator
from storefront.services.orders import ORDER_STATUSES, change_order_status, order_view_url, place_order

router = APIRouter(prefix="/api", tags=["orders"])


@router.post("/orders", response_model=OrderCreatedOut, status_code=status.HTTP_201_CREATED)
def create_order(
    body: OrderSubmissionIn,
    request: Request,
    validator: OrderValidator = Depends(get_order_validator),
):
    return place_order(validator, body, resolve_client_address(request))


@router.get("/orders", dependencies=[Depends(require_admin_token)])
def list_orders(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    status_filter: Optional[str] = Query(None, alias="status"),
    repository: SqlOrderRepository = Depends(get_order_repository),
):
    if status_filter and status_filter not in ORDER_STATUSES:
        raise InvalidField(f"Estado inválido: {status_filter!r}", field="status")
    orders = repository.list_orders(limit=limit, offset=offset, status=status_filter)
    return {
        "orders": [order.to_dict() for order in orders],
        "limit": limit,
        "offset": offset,
    }


@router.get("/orders/{order_id}")
def get_order(order_id: str, repository: SqlOrderRepository = Depends(get_order_repository)):
    order = repository.get_order(order_id)
    if order is None:
        raise OrderNotFound(f"Pedido no encontrado: {order_id}", field="id")
    payload = order.to_dict()
    # la vista pública no expone el teléfono completo
    payload["customer_phone"] = _mask_phone(order.customer_phone)
    payload["order_view_url"] = order_view_url(order_id)
    return payload


@router.patch("/orders/{order_id}/status", dependencies=[Depends(require_admin_token)])
def update_order_status(
    order_id: str,
    body: OrderStatusUpdateIn,
    repository: SqlOrderRepository = Depends(get_order_repository),
):
    return change_order_status(repository, order_id, body.status).to_dict()


def _mask_phone(phone: str) -> str:
    if len(phone) <= 4:
        return phone
    return "*" * (len(phone) - 4) + phone[-4:]
