"""Tests for the inventory store and the units of work."""

from unittest.mock import MagicMock

import pytest
from bson import ObjectId
from pymongo.errors import AutoReconnect

from errors import InsufficientStockError
from inventory import (
    CompensatingInventoryStore,
    CompensatingUnitOfWork,
    InventoryStore,
    TransactionalUnitOfWork,
)


@pytest.fixture
def session_client():
    """A client whose sessions run transaction callbacks immediately."""
    client = MagicMock()
    session = client.start_session.return_value.__enter__.return_value
    session.with_transaction.side_effect = lambda callback: callback(session)
    return client, session


class TestInventoryStore:
    def test_conditional_decrement(self, mongo_db, add_product, stock_of):
        pid = add_product(stock=5)
        store = InventoryStore(mongo_db)

        assert store.decrement_stock(pid, 5) is True
        assert stock_of(pid) == 0
        assert store.decrement_stock(pid, 1) is False
        assert stock_of(pid) == 0

    def test_decrement_skips_deleted(self, mongo_db, add_product, stock_of):
        pid = add_product(stock=5, isDeleted=True)
        assert InventoryStore(mongo_db).decrement_stock(pid, 1) is False
        assert stock_of(pid) == 5

    def test_find_product_hides_deleted(self, mongo_db, add_product):
        live = add_product()
        gone = add_product(isDeleted=True)
        store = InventoryStore(mongo_db)

        assert store.find_product(live)["name"] == "Widget"
        assert store.find_product(gone) is None

    def test_session_passed_to_every_call(self, session_client):
        _, session = session_client
        db = MagicMock()
        db["product"].update_one.return_value.matched_count = 1
        store = InventoryStore(db, session=session)
        pid = str(ObjectId())

        store.find_product(pid)
        store.decrement_stock(pid, 2)

        find_kwargs = db["product"].find_one.call_args.kwargs
        update_kwargs = db["product"].update_one.call_args.kwargs
        assert find_kwargs == {"session": session}
        assert update_kwargs == {"session": session}


class TestCompensation:
    def test_rollback_restores_in_reverse(self, mongo_db, add_product, stock_of):
        a = add_product(stock=5)
        b = add_product(stock=5)
        store = CompensatingInventoryStore(mongo_db)
        store.decrement_stock(a, 2)
        store.decrement_stock(b, 3)
        store.decrement_stock(b, 10)  # no match, nothing recorded

        assert store.applied == [(a, 2), (b, 3)]
        assert store.rollback() == (2, 0)
        assert stock_of(a) == 5
        assert stock_of(b) == 5
        assert store.applied == []

    def test_rollback_counts_failures(self, mongo_db, add_product, monkeypatch):
        pid = add_product(stock=5)
        store = CompensatingInventoryStore(mongo_db)
        store.decrement_stock(pid, 1)

        def unreachable(product_id, quantity):
            raise AutoReconnect("down")

        monkeypatch.setattr(store, "increment_stock", unreachable)
        assert store.rollback() == (0, 1)

    def test_unit_of_work_reraises_after_rollback(self, mongo_db, add_product, stock_of):
        pid = add_product(stock=5)
        uow = CompensatingUnitOfWork(mongo_db, timeout=5)

        def work(store):
            store.decrement_stock(pid, 4)
            raise InsufficientStockError(pid, 0, 1)

        with pytest.raises(InsufficientStockError):
            uow.run(work)
        assert stock_of(pid) == 5


class TestTransactionalUnitOfWork:
    def test_work_runs_with_session_bound_store(self, session_client):
        client, session = session_client
        db = MagicMock()
        uow = TransactionalUnitOfWork(client, db, timeout=5)
        seen = []

        result = uow.run(lambda store: seen.append(store) or "done")

        assert result == "done"
        assert seen[0].session is session
        assert seen[0].db is db
        session.with_transaction.assert_called_once()

    def test_business_errors_propagate(self, session_client):
        client, _ = session_client
        uow = TransactionalUnitOfWork(client, MagicMock(), timeout=5)
        pid = str(ObjectId())

        def work(store):
            raise InsufficientStockError(pid, 1, 2)

        with pytest.raises(InsufficientStockError) as exc_info:
            uow.run(work)
        assert exc_info.value.requested == 2
