"""
Product inventory access and the units of work order placement runs in.

Stock is only ever changed by a conditional $inc: the filter re-checks
`stock >= quantity` on the server, so two shoppers racing for the last units
cannot both match.
"""

import logging
from typing import Callable, List, Optional, Tuple, TypeVar

import pymongo
from bson import ObjectId
from pymongo.errors import PyMongoError

from schemas import Order

logger = logging.getLogger(__name__)

T = TypeVar("T")

PRODUCT_COLLECTION = "product"
ORDER_COLLECTION = "order"


class InventoryStore:
    """Product lookups and stock writes, optionally bound to a client session."""

    def __init__(self, db, session=None):
        self.db = db
        self.session = session
        # only pass session= when there is one
        self._opts = {"session": session} if session is not None else {}

    @property
    def products(self):
        return self.db[PRODUCT_COLLECTION]

    def find_product(self, product_id: str) -> Optional[dict]:
        return self.products.find_one(
            {"_id": ObjectId(product_id), "isDeleted": {"$ne": True}}, **self._opts
        )

    def decrement_stock(self, product_id: str, quantity: int) -> bool:
        """Take `quantity` units if they are still there. Returns whether it matched."""
        result = self.products.update_one(
            {
                "_id": ObjectId(product_id),
                "isDeleted": {"$ne": True},
                "stock": {"$gte": quantity},
            },
            {"$inc": {"stock": -quantity}},
            **self._opts,
        )
        return result.matched_count == 1

    def increment_stock(self, product_id: str, quantity: int) -> None:
        self.products.update_one(
            {"_id": ObjectId(product_id)}, {"$inc": {"stock": quantity}}, **self._opts
        )

    def insert_order(self, order: Order) -> str:
        result = self.db[ORDER_COLLECTION].insert_one(order.to_document(), **self._opts)
        return str(result.inserted_id)


class CompensatingInventoryStore(InventoryStore):
    """Records every applied decrement so it can be handed back on abort."""

    def __init__(self, db):
        super().__init__(db)
        self.applied: List[Tuple[str, int]] = []

    def decrement_stock(self, product_id: str, quantity: int) -> bool:
        matched = super().decrement_stock(product_id, quantity)
        if matched:
            self.applied.append((product_id, quantity))
        return matched

    def rollback(self) -> Tuple[int, int]:
        """Re-increment applied decrements in reverse. Returns (run, failed)."""
        run = 0
        failed = 0
        for product_id, quantity in reversed(self.applied):
            try:
                self.increment_stock(product_id, quantity)
                run += 1
            except PyMongoError:
                logger.exception("Could not restore %d units of product %s", quantity, product_id)
                failed += 1
        self.applied.clear()
        return run, failed


class TransactionalUnitOfWork:
    """Runs work inside a MongoDB multi-document transaction.

    Requires a replica set or sharded cluster. Reads and writes made through the
    store passed to `work` commit together or not at all. `work` may be called
    more than once when the server reports a transient transaction error.
    """

    def __init__(self, client, db, timeout: float):
        self.client = client
        self.db = db
        self.timeout = timeout

    def run(self, work: Callable[[InventoryStore], T]) -> T:
        with pymongo.timeout(self.timeout):
            with self.client.start_session() as session:
                return session.with_transaction(
                    lambda s: work(InventoryStore(self.db, session=s))
                )


class CompensatingUnitOfWork:
    """Saga-style fallback for servers without transactions.

    Decrements are applied as they happen and undone on any failure before the
    error propagates. The order insert is the last write, so a failed insert
    also restores stock.

    One window is not covered: if the insert is applied on the server but its
    acknowledgement is lost (network timeout), stock is still restored and the
    order exists without its decrements. Only transactions close that gap.
    """

    def __init__(self, db, timeout: float):
        self.db = db
        self.timeout = timeout

    def run(self, work: Callable[[InventoryStore], T]) -> T:
        store = CompensatingInventoryStore(self.db)
        try:
            with pymongo.timeout(self.timeout):
                return work(store)
        except Exception:
            if store.applied:
                run, failed = store.rollback()
                logger.warning("Compensated %d stock decrements (%d failed)", run, failed)
            raise
