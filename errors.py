"""Custom exceptions for the shop backend.

Every exception here knows its HTTP status and the JSON body the client sees.
"""


class ShopError(Exception):
    """Base exception for all shop errors."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_payload(self) -> dict:
        return {"error": self.message}


class OrderValidationError(ShopError):
    """Raised when a cart submission is malformed. Nothing was read or written."""

    status_code = 400


class ProductNotFoundError(ShopError):
    """Raised when a cart item references a missing or deleted product."""

    status_code = 400

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__("product not found")

    def to_payload(self) -> dict:
        return {"error": self.message, "productId": self.product_id}


class InsufficientStockError(ShopError):
    """Raised when a product cannot cover the requested quantity."""

    status_code = 400

    def __init__(self, product_id: str, available: int, requested: int):
        self.product_id = product_id
        self.available = available
        self.requested = requested
        super().__init__("insufficient stock")

    def to_payload(self) -> dict:
        return {
            "error": self.message,
            "productId": self.product_id,
            "available": self.available,
            "requested": self.requested,
        }


class AuthenticationError(ShopError):
    """Raised when a bearer token was supplied but cannot be trusted."""

    status_code = 401

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__("unauthorized")


class StorageUnavailableError(ShopError):
    """Raised when the document store is unreachable or timed out.

    Safe to retry: units of work never leave partial writes behind.
    """

    status_code = 503

    def __init__(self, message: str = "storage unavailable"):
        super().__init__(message)
