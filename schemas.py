"""
Database Schemas

MongoDB collection schemas and request bodies, defined as Pydantic models.
Model name is converted to lowercase for the collection name:
- Product -> "product" collection
- Order -> "order" collection

Documents are stored with camelCase keys (the aliases below), the same keys
the storefront sends and receives.
"""

from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from pricing import validate_sale_fields

PAYMENT_METHODS = ("cash", "card")

PaymentMethod = Literal["cash", "card"]


class Product(BaseModel):
    """
    Products collection schema
    Collection name: "product" (lowercase of class name)
    """
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, description="Product name")
    description: Optional[str] = Field(None, description="Product description")
    price: float = Field(..., gt=0, description="List price")
    category: List[str] = Field(default_factory=list, description="Category names")
    image: Optional[str] = Field(None, description="Image URL")
    stock: int = Field(0, ge=0, description="Units available for ordering")
    sale_enabled: bool = Field(False, alias="saleEnabled")
    sale_price: Optional[float] = Field(None, alias="salePrice")
    is_active: bool = Field(True, alias="isActive")
    is_campaign: bool = Field(False, alias="isCampaign")
    is_deleted: bool = Field(False, alias="isDeleted")

    @field_validator("category", mode="before")
    @classmethod
    def _category_as_list(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return [value] if value else []
        return value

    @model_validator(mode="after")
    def _check_sale(self):
        validate_sale_fields(self.price, self.sale_enabled, self.sale_price)
        return self


class Category(BaseModel):
    """
    Categories collection schema
    Collection name: "category"
    """
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, description="Category name")
    is_active: bool = Field(True, alias="isActive")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), alias="createdAt"
    )


class OrderItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(..., alias="productId")
    name: str = ""
    price: float = Field(0.0, ge=0, description="Unit price at time of purchase")
    quantity: int = Field(..., ge=1)


class OrderCustomer(BaseModel):
    title: str
    detail: str
    note: Optional[str] = None


class Order(BaseModel):
    """
    Orders collection schema
    Collection name: "order"
    """
    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[str] = Field(None, alias="userId", description="None for guest orders")
    items: List[OrderItem]
    total_price: float = Field(0.0, alias="totalPrice")
    customer: OrderCustomer
    payment_method: PaymentMethod = Field(..., alias="paymentMethod")
    status: str = Field("pending", description="pending | ...")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), alias="createdAt"
    )

    def to_document(self) -> dict:
        doc = self.model_dump(by_alias=True)
        if self.customer.note is None:
            doc["customer"].pop("note")
        return doc


# Request bodies. These only check JSON shape; business rules live in orders.py.


class OrderItemRequest(BaseModel):
    product_id: str = Field(..., alias="productId")
    name: str = ""
    price: Optional[float] = Field(None, description="Ignored, display only")
    quantity: int = Field(..., strict=True)


class OrderCustomerRequest(BaseModel):
    title: str = ""
    detail: str = ""
    note: Optional[str] = None


class PaymentMethodRequest(BaseModel):
    id: str = ""
    label: Optional[str] = None


class CreateOrderRequest(BaseModel):
    items: List[OrderItemRequest] = Field(default_factory=list)
    total_price: Optional[float] = Field(None, alias="totalPrice", description="Ignored")
    customer: OrderCustomerRequest
    payment_method: PaymentMethodRequest = Field(..., alias="paymentMethod")
