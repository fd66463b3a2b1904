from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CustomerInfoIn(_CamelModel):
    name: str = ""
    phone: str = ""


class SelectedOptionIn(_CamelModel):
    group_id: str = Field(..., alias="groupId")
    value: Optional[str] = None


class CartItemIn(_CamelModel):
    product_id: str = Field(..., alias="productId")
    quantity: int
    selected_options: list[SelectedOptionIn] = Field(default_factory=list, alias="selectedOptions")
    # valores calculados en el navegador: solo informativos
    client_unit_price: Optional[float] = Field(default=None, alias="clientUnitPrice")
    client_subtotal: Optional[float] = Field(default=None, alias="clientSubtotal")


class OrderSubmissionIn(_CamelModel):
    customer_info: CustomerInfoIn = Field(default_factory=CustomerInfoIn, alias="customerInfo")
    delivery_mode: str = Field(default="", alias="deliveryMode")
    delivery_address: Optional[str] = Field(default=None, alias="deliveryAddress")
    payment_method: str = Field(default="", alias="paymentMethod")
    note: Optional[str] = None
    cart_items: list[CartItemIn] = Field(default_factory=list, alias="cartItems")
    client_subtotal: Optional[float] = Field(default=None, alias="clientSubtotal")
    client_delivery_cost: Optional[float] = Field(default=None, alias="clientDeliveryCost")
    client_total: Optional[float] = Field(default=None, alias="clientTotal")


class OrderCreatedOut(_CamelModel):
    order_id: str = Field(..., alias="orderId")
    status: str
    total: int
    notification_deep_link: Optional[str] = Field(default=None, alias="notificationDeepLink")
    order_view_url: str = Field(..., alias="orderViewUrl")
    estimated_minutes: int = Field(..., alias="estimatedMinutes")


class OrderStatusUpdateIn(BaseModel):
    status: str = Field(..., min_length=1, max_length=20)
