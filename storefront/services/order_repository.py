from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

from storefront.core.errors import OrderNotFound
from storefront.models.order import Order

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderLine:
    product_id: str
    name: str
    quantity: int
    unit_price: int
    subtotal: int
    selected_options: tuple[dict, ...] = ()

    @property
    def options(self) -> tuple[str, ...]:
        return tuple(option.get("display_name", "") for option in self.selected_options)

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "subtotal": self.subtotal,
            "selected_options": [dict(option) for option in self.selected_options],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OrderLine":
        return cls(
            product_id=str(data.get("product_id") or ""),
            name=str(data.get("name") or ""),
            quantity=int(data.get("quantity") or 0),
            unit_price=int(data.get("unit_price") or 0),
            subtotal=int(data.get("subtotal") or 0),
            selected_options=tuple(data.get("selected_options") or ()),
        )


@dataclass(frozen=True)
class OrderRecord:
    customer_name: str
    customer_phone: str
    delivery_mode: str
    payment_method: str
    lines: tuple[OrderLine, ...]
    subtotal: int
    delivery_cost: int
    total: int
    status: str = "pending"
    delivery_address: Optional[str] = None
    notes: Optional[str] = None
    client_ip: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def summary_lines(self) -> tuple[OrderLine, ...]:
        return self.lines

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "delivery_mode": self.delivery_mode,
            "delivery_address": self.delivery_address,
            "payment_method": self.payment_method,
            "items": [line.to_dict() for line in self.lines],
            "subtotal": self.subtotal,
            "delivery_cost": self.delivery_cost,
            "total": self.total,
            "status": self.status,
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


def _safe_json_list(value: Optional[str]) -> list:
    if not value:
        return []
    try:
        loaded = json.loads(value)
    except ValueError:
        logger.warning("invalid items_json payload")
        return []
    return loaded if isinstance(loaded, list) else []


def order_to_record(order: Order) -> OrderRecord:
    return OrderRecord(
        id=order.id,
        customer_name=order.customer_name,
        customer_phone=order.customer_phone,
        delivery_mode=order.delivery_mode,
        delivery_address=order.delivery_address,
        payment_method=order.payment_method,
        lines=tuple(OrderLine.from_dict(entry) for entry in _safe_json_list(order.items_json) if isinstance(entry, dict)),
        subtotal=int(order.subtotal or 0),
        delivery_cost=int(order.delivery_cost or 0),
        total=int(order.total or 0),
        status=order.status,
        notes=order.notes,
        client_ip=order.client_ip,
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


class SqlOrderRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def create_order(self, record: OrderRecord) -> str:
        order = Order(
            customer_name=record.customer_name,
            customer_phone=record.customer_phone,
            delivery_mode=record.delivery_mode,
            delivery_address=record.delivery_address,
            payment_method=record.payment_method,
            items_json=json.dumps([line.to_dict() for line in record.lines], ensure_ascii=False),
            subtotal=record.subtotal,
            delivery_cost=record.delivery_cost,
            total=record.total,
            status=record.status,
            notes=record.notes,
            client_ip=record.client_ip,
        )
        self.db.add(order)
        try:
            self.db.flush()
            order_id = order.id
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return order_id

    def get_order(self, order_id: str) -> Optional[OrderRecord]:
        order = self.db.query(Order).filter(Order.id == order_id).first()
        if order is None:
            return None
        return order_to_record(order)

    def update_order_status(self, order_id: str, status: str) -> OrderRecord:
        order = self.db.query(Order).filter(Order.id == order_id).first()
        if order is None:
            raise OrderNotFound(f"Pedido no encontrado: {order_id}", field="id")
        order.status = status
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(order)
        return order_to_record(order)

    def list_orders(self, limit: int = 50, offset: int = 0, status: Optional[str] = None) -> list[OrderRecord]:
        query = self.db.query(Order)
        if status:
            query = query.filter(Order.status == status)
        rows = query.order_by(desc(Order.created_at), desc(Order.id)).offset(offset).limit(limit).all()
        return [order_to_record(row) for row in rows]
