from __future__ import annotations


class StorefrontError(Exception):
    """Error de dominio con código legible por máquina y status HTTP equivalente."""

    code = "STOREFRONT_ERROR"
    status_code = 400

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict:
        payload = {"detail": self.message, "code": self.code}
        if self.field:
            payload["field"] = self.field
        return payload


# Precios
class InvalidSelection(StorefrontError):
    code = "INVALID_SELECTION"


class InvalidQuantity(StorefrontError):
    code = "INVALID_QUANTITY"


# Armado del pedido (cliente)
class EmptyCart(StorefrontError):
    code = "EMPTY_CART"


class MissingAddress(StorefrontError):
    code = "MISSING_ADDRESS"


# Validación en el servidor
class InvalidField(StorefrontError):
    code = "INVALID_FIELD"


class UnknownProduct(StorefrontError):
    code = "UNKNOWN_PRODUCT"


class ProductUnavailable(StorefrontError):
    code = "PRODUCT_UNAVAILABLE"


class RateLimited(StorefrontError):
    code = "RATE_LIMITED"
    status_code = 429

    def __init__(self, message: str, *, retry_after_seconds: int) -> None:
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds


class CatalogUnavailable(StorefrontError):
    code = "CATALOG_UNAVAILABLE"
    status_code = 503


# Notificación
class InvalidAddress(StorefrontError):
    code = "INVALID_ADDRESS"


# Panel admin
class OrderNotFound(StorefrontError):
    code = "ORDER_NOT_FOUND"
    status_code = 404


class InvalidStatusTransition(StorefrontError):
    code = "INVALID_STATUS_TRANSITION"
    status_code = 409
