"""Sale price resolution shared by the catalog and order placement."""

from typing import Optional


def is_on_sale(price: float, sale_enabled: bool, sale_price: Optional[float]) -> bool:
    # a sale price at or above list price is a data-entry mistake, never a sale
    if not sale_enabled or sale_price is None:
        return False
    return 0 < sale_price < price


def effective_price(price: float, sale_enabled: bool, sale_price: Optional[float]) -> float:
    if is_on_sale(price, sale_enabled, sale_price):
        return sale_price
    return price


def validate_sale_fields(price: float, sale_enabled: bool, sale_price: Optional[float]) -> None:
    """Reject sale settings that would never discount.

    Raises ValueError with a message suitable for a validation response.
    """
    if not sale_enabled:
        return
    if sale_price is None:
        raise ValueError("salePrice is required when saleEnabled is true")
    if sale_price <= 0:
        raise ValueError("salePrice must be greater than 0")
    if sale_price >= price:
        raise ValueError("salePrice must be less than price")
