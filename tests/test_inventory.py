from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from database import Base
from models import InventoryType, User
from schemas import InventoryItemIn
from services import InventoryService, RecordNotFound


def make_session():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    return SessionLocal()


def make_user(session, email: str = "owner@example.com") -> User:
    user = User(email=email, name="Owner", password_hash="x")
    session.add(user)
    session.commit()
    return user


class StepClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        self.now += timedelta(minutes=1)
        return self.now


def _item(name: str, quantity: float, min_stock_level: float = 0) -> InventoryItemIn:
    return InventoryItemIn(
        name=name,
        type=InventoryType.supply,
        quantity=quantity,
        unit="kg",
        min_stock_level=min_stock_level,
        current_value=100,
    )


def test_low_stock_includes_boundary_and_excludes_others() -> None:
    session = make_session()
    user = make_user(session)
    items = InventoryService(session, user.id)
    below = items.create(_item("Cyanide", 2, min_stock_level=5))
    equal = items.create(_item("Lime", 5, min_stock_level=5))
    stocked = items.create(_item("Diesel", 6, min_stock_level=5))
    empty = items.create(_item("Flux", 0, min_stock_level=0))

    low = items.low_stock()

    assert [item.id for item in low] == [empty.id, below.id, equal.id]
    assert all(item.is_low_stock for item in low)
    assert not stocked.is_low_stock


def test_list_is_alphabetical() -> None:
    session = make_session()
    user = make_user(session)
    items = InventoryService(session, user.id)
    for name in ("Zinc", "Borax", "Mercury"):
        items.create(_item(name, 10))

    assert [item.name for item in items.list_all()] == ["Borax", "Mercury", "Zinc"]


def test_update_quantity_refreshes_last_updated_only() -> None:
    session = make_session()
    user = make_user(session)
    items = InventoryService(session, user.id, clock=StepClock(datetime(2025, 1, 1)))
    item = items.create(_item("Cyanide", 10, min_stock_level=3))
    created_stamp = item.last_updated

    item = items.update_quantity(item.id, 2)

    assert item.quantity == 2
    assert item.last_updated > created_stamp
    assert item.min_stock_level == 3
    assert item.current_value == 100
    assert item.name == "Cyanide"
    assert item.is_low_stock


def test_update_replaces_fields_and_stamps() -> None:
    session = make_session()
    user = make_user(session)
    items = InventoryService(session, user.id, clock=StepClock(datetime(2025, 1, 1)))
    item = items.create(_item("Gold dore", 1))
    first_stamp = item.last_updated

    updated = items.update(item.id, _item("Gold dore (refined)", 3, min_stock_level=1))

    assert updated.name == "Gold dore (refined)"
    assert updated.quantity == 3
    assert updated.last_updated > first_stamp


def test_inventory_is_scoped_to_owner() -> None:
    session = make_session()
    owner = make_user(session, "owner@example.com")
    other = make_user(session, "other@example.com")
    item = InventoryService(session, owner.id).create(_item("Cyanide", 1, 5))
    foreign = InventoryService(session, other.id)

    with pytest.raises(RecordNotFound):
        foreign.update_quantity(item.id, 50)
    with pytest.raises(RecordNotFound):
        foreign.soft_delete(item.id)
    assert foreign.low_stock() == []
    assert InventoryService(session, owner.id).get(item.id).quantity == 1


def test_soft_deleted_item_is_hidden() -> None:
    session = make_session()
    user = make_user(session)
    items = InventoryService(session, user.id)
    item = items.create(_item("Cyanide", 1, 5))

    items.soft_delete(item.id)

    assert items.list_all() == []
    assert items.low_stock() == []
    with pytest.raises(RecordNotFound):
        items.update_quantity(item.id, 3)
