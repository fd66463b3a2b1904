import uuid

from sqlalchemy import Column, DateTime, Index, Integer, String, Text, func

from storefront.core.database import Base


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (Index("ix_orders_status_created", "status", "created_at"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Cliente
    customer_name = Column(String(100), nullable=False)
    customer_phone = Column(String(20), index=True, nullable=False)

    # Entrega / pago
    delivery_mode = Column(String(20), nullable=False)  # delivery / pickup
    delivery_address = Column(String(200), nullable=True)
    payment_method = Column(String(20), nullable=False)  # cash / transfer

    # Snapshot de los ítems validados
    items_json = Column(Text, default="[]", nullable=False)

    # Totales recalculados en el servidor
    subtotal = Column(Integer, default=0, nullable=False)
    delivery_cost = Column(Integer, default=0, nullable=False)
    total = Column(Integer, default=0, nullable=False)

    status = Column(String(20), default="pending", nullable=False)  # pending / confirmed / preparing / delivered / cancelled
    notes = Column(Text, nullable=True)
    client_ip = Column(String(64), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
