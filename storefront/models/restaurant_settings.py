from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, Text, func

from storefront.core.database import Base


class RestaurantSettings(Base):
    __tablename__ = "restaurant_settings"

    # una sola fila por proceso/local
    id = Column(Integer, primary_key=True)
    name = Column(String(200), default="", nullable=False)
    phone = Column(String(30), default="", nullable=False)
    whatsapp_number = Column(String(30), default="", nullable=False)
    address = Column(Text, default="", nullable=False)
    delivery_cost = Column(Integer, default=0, nullable=False)
    is_delivery_free = Column(Boolean, default=False, nullable=False)
    is_open = Column(Boolean, default=True, nullable=False)
    opening_hours = Column(JSON, nullable=False, default=dict)
    social_media = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
