"""
Order building and placement.

`build_order_draft` turns a cart submission into an unpriced draft without
touching storage. `place_order` prices the draft from current product data and
reserves stock inside a unit of work: either every line's stock is taken and
the order is written, or nothing is.
"""

import logging
from typing import Optional, Tuple

from bson import ObjectId
from pymongo.errors import ConnectionFailure, PyMongoError

from errors import (
    InsufficientStockError,
    OrderValidationError,
    ProductNotFoundError,
    StorageUnavailableError,
)
from inventory import InventoryStore
from pricing import effective_price
from schemas import PAYMENT_METHODS, CreateOrderRequest, Order, OrderCustomer, OrderItem

logger = logging.getLogger(__name__)


def build_order_draft(req: CreateOrderRequest) -> Order:
    """Validate a cart submission and normalize it into a draft order.

    Client prices are dropped: every line starts at 0 and the total at 0 until
    `place_order` prices them.

    Raises:
        OrderValidationError: on the first rule the request breaks.
    """
    if not req.items:
        raise OrderValidationError("at least one item is required")

    items = []
    for item in req.items:
        if not ObjectId.is_valid(item.product_id):
            raise OrderValidationError("invalid productId")
        if item.quantity <= 0:
            raise OrderValidationError("quantity must be greater than zero")
        items.append(OrderItem(
            product_id=str(ObjectId(item.product_id)),
            name=item.name.strip(),
            price=0.0,
            quantity=item.quantity,
        ))

    if req.payment_method.id not in PAYMENT_METHODS:
        raise OrderValidationError("invalid payment method")

    title = req.customer.title.strip()
    detail = req.customer.detail.strip()
    if not title:
        raise OrderValidationError("customer title is required")
    if not detail:
        raise OrderValidationError("customer detail is required")
    note = (req.customer.note or "").strip() or None

    return Order(
        items=items,
        total_price=0.0,
        customer=OrderCustomer(title=title, detail=detail, note=note),
        payment_method=req.payment_method.id,
        status="pending",
    )


def reserve_and_record(store: InventoryStore, draft: Order, user_id: Optional[str]) -> Tuple[Order, str]:
    """Price every line, take its stock and insert the order.

    Runs inside a unit of work and may be retried by it, so it keeps no state
    between calls. Lines are handled in cart order and the first failing line
    aborts the whole attempt.
    """
    priced = []
    total = 0.0

    for item in draft.items:
        product = store.find_product(item.product_id)
        if product is None:
            raise ProductNotFoundError(item.product_id)

        available = int(product.get("stock") or 0)
        if available < item.quantity:
            raise InsufficientStockError(item.product_id, available, item.quantity)

        unit_price = effective_price(
            float(product.get("price") or 0.0),
            bool(product.get("saleEnabled", False)),
            product.get("salePrice"),
        )

        if not store.decrement_stock(item.product_id, item.quantity):
            # another order took the stock between our read and this write
            raise InsufficientStockError(item.product_id, available, item.quantity)

        priced.append(item.model_copy(update={
            "name": product.get("name") or item.name,
            "price": unit_price,
        }))
        total += unit_price * item.quantity

    order = draft.model_copy(update={
        "user_id": user_id,
        "items": priced,
        "total_price": round(total, 2),
    })
    order_id = store.insert_order(order)
    return order, order_id


def is_infrastructure_failure(exc: PyMongoError) -> bool:
    return (
        isinstance(exc, ConnectionFailure)
        or exc.timeout
        or exc.has_error_label("TransientTransactionError")
    )


def place_order(unit_of_work, draft: Order, user_id: Optional[str]):
    """Place `draft` for `user_id` (None for guests).

    Returns (order, order_id). Business-rule failures propagate as
    ProductNotFoundError / InsufficientStockError; storage outages and
    timeouts as StorageUnavailableError. Neither leaves partial writes.
    """
    try:
        order, order_id = unit_of_work.run(lambda store: reserve_and_record(store, draft, user_id))
    except (ProductNotFoundError, InsufficientStockError) as exc:
        logger.warning("Order rejected: %s %s", exc.message, exc.to_payload())
        raise
    except PyMongoError as exc:
        if is_infrastructure_failure(exc):
            logger.error("Order placement aborted by storage failure", exc_info=exc)
            raise StorageUnavailableError() from exc
        raise

    if user_id is not None:
        logger.info("Order %s created for user %s, total %.2f", order_id, user_id, order.total_price)
    else:
        logger.info("Guest order %s created, total %.2f", order_id, order.total_price)
    return order, order_id
