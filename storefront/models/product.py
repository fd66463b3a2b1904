import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import relationship

from storefront.core.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (Index("ix_products_category_available", "category_id", "is_available"),)

    id = Column(String(36), primary_key=True, default=_uuid)
    category_id = Column(String(36), ForeignKey("categories.id"), nullable=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, default="", nullable=False)
    price = Column(Integer, nullable=False)  # unidades enteras de moneda
    image_url = Column(Text, nullable=True)
    is_available = Column(Boolean, default=True, nullable=False)
    stock = Column(Integer, nullable=True)  # NULL = sin límite
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    option_groups = relationship(
        "OptionGroup",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="OptionGroup.position",
    )


class OptionGroup(Base):
    __tablename__ = "option_groups"

    id = Column(String(36), primary_key=True, default=_uuid)
    product_id = Column(String(36), ForeignKey("products.id"), index=True, nullable=False)
    name = Column(String(120), nullable=False)
    kind = Column(String(20), nullable=False)  # single-choice / multi-choice / add-on / removal
    required = Column(Boolean, default=False, nullable=False)
    price_delta = Column(Integer, default=0, nullable=False)
    position = Column(Integer, default=0, nullable=False)

    product = relationship("Product", back_populates="option_groups")
    values = relationship(
        "OptionValue",
        back_populates="group",
        cascade="all, delete-orphan",
        order_by="OptionValue.position",
    )


class OptionValue(Base):
    __tablename__ = "option_values"

    id = Column(Integer, primary_key=True)
    group_id = Column(String(36), ForeignKey("option_groups.id"), index=True, nullable=False)
    label = Column(String(120), nullable=False)
    price_delta = Column(Integer, default=0, nullable=False)
    position = Column(Integer, default=0, nullable=False)

    group = relationship("OptionGroup", back_populates="values")
