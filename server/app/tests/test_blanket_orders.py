from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.blanket_orders.service import (
    create_order,
    get_order_statistics,
    list_available_lines,
    update_order_status,
)
from app.catalog.service import create_item
from app.db import Base
from app.errors import DuplicateOrderNumber, InvalidStatusTransition, NotFound, ValidationError
from app.models import Inventory


def create_session():
    engine = create_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)()


def order_header(number="BO-1", start=date(2026, 1, 1), end=date(2026, 12, 31)):
    return {
        "order_number": number,
        "customer_name": "Acme Manufacturing",
        "order_date": start,
        "start_date": start,
        "end_date": end,
    }


def test_create_item_provisions_zero_inventory_row():
    db = create_session()
    item = create_item(db, {"item_code": "X-100", "name": "Bracket"})
    db.commit()

    inventory = db.query(Inventory).filter(Inventory.item_id == item.id).one()
    assert inventory.available_stock == Decimal("0")
    assert inventory.reserved_stock == Decimal("0")
    assert inventory.in_transit_stock == Decimal("0")


def test_create_item_rejects_duplicate_code_and_inverted_thresholds():
    db = create_session()
    create_item(db, {"item_code": "X-100", "name": "Bracket"})

    with pytest.raises(ValidationError):
        create_item(db, {"item_code": "X-100", "name": "Other"})
    with pytest.raises(ValidationError):
        create_item(db, {"item_code": "X-200", "name": "Other", "min_stock": 50, "max_stock": 10})


def test_create_order_initialises_line_quantities():
    db = create_session()
    item = create_item(db, {"item_code": "X-100", "name": "Bracket"})

    order = create_order(
        db,
        order_header(),
        [{"item_id": item.id, "total_quantity": Decimal("500")}, {"item_id": item.id, "total_quantity": 25}],
    )
    db.commit()
    db.refresh(order)

    assert order.status == "ACTIVE"
    assert [line.line_number for line in order.lines] == [1, 2]
    first = order.lines[0]
    assert first.total_quantity == Decimal("500")
    assert first.released_quantity == Decimal("0")
    assert first.delivered_quantity == Decimal("0")
    assert first.remaining_quantity == Decimal("500")


def test_create_order_rejects_duplicate_order_number():
    db = create_session()
    item = create_item(db, {"item_code": "X-100", "name": "Bracket"})
    create_order(db, order_header(), [{"item_id": item.id, "total_quantity": 10}])
    db.commit()

    with pytest.raises(DuplicateOrderNumber):
        create_order(db, order_header(), [{"item_id": item.id, "total_quantity": 10}])


def test_create_order_validates_dates_and_lines():
    db = create_session()
    item = create_item(db, {"item_code": "X-100", "name": "Bracket"})

    with pytest.raises(ValidationError):
        create_order(
            db,
            order_header(start=date(2026, 6, 1), end=date(2026, 5, 1)),
            [{"item_id": item.id, "total_quantity": 10}],
        )
    with pytest.raises(ValidationError):
        create_order(db, order_header(), [{"item_id": item.id, "total_quantity": 0}])
    with pytest.raises(ValidationError):
        create_order(db, order_header(), [])
    with pytest.raises(ValidationError):
        create_order(db, order_header(), [{"item_id": 999, "total_quantity": 10}])


def test_available_lines_exclude_inactive_orders_and_exhausted_lines():
    db = create_session()
    item = create_item(db, {"item_code": "X-100", "name": "Bracket"})
    open_order = create_order(db, order_header("BO-1"), [{"item_id": item.id, "total_quantity": 10}])
    exhausted = create_order(db, order_header("BO-2"), [{"item_id": item.id, "total_quantity": 10}])
    cancelled = create_order(db, order_header("BO-3"), [{"item_id": item.id, "total_quantity": 10}])
    exhausted.lines[0].released_quantity = Decimal("10")
    update_order_status(db, cancelled.id, "CANCELLED")
    db.commit()

    lines = list_available_lines(db)

    assert [line.blanket_order_id for line in lines] == [open_order.id]
    assert lines[0].order_number == "BO-1"
    assert lines[0].item_code == "X-100"


def test_order_status_transitions_are_guarded():
    db = create_session()
    item = create_item(db, {"item_code": "X-100", "name": "Bracket"})
    order = create_order(db, order_header(), [{"item_id": item.id, "total_quantity": 10}])

    update_order_status(db, order.id, "ACTIVE")
    assert order.status == "ACTIVE"

    update_order_status(db, order.id, "CANCELLED")
    with pytest.raises(InvalidStatusTransition):
        update_order_status(db, order.id, "ACTIVE")
    with pytest.raises(NotFound):
        update_order_status(db, 999, "CANCELLED")


def test_order_statistics_report_completion():
    db = create_session()
    item = create_item(db, {"item_code": "X-100", "name": "Bracket"})
    order = create_order(
        db,
        order_header(),
        [{"item_id": item.id, "total_quantity": 300}, {"item_id": item.id, "total_quantity": 100}],
    )
    order.lines[0].released_quantity = Decimal("150")
    order.lines[0].delivered_quantity = Decimal("100")
    db.commit()

    stats = get_order_statistics(db, order.id)

    assert stats["total_quantity"] == Decimal("400")
    assert stats["released_quantity"] == Decimal("150")
    assert stats["delivered_quantity"] == Decimal("100")
    assert stats["pending_quantity"] == Decimal("300")
    assert stats["completion_percentage"] == Decimal("25.00")


def test_create_order_rejects_sub_cent_line_quantity():
    db = create_session()
    item = create_item(db, {"item_code": "X-100", "name": "Bracket"})

    with pytest.raises(ValidationError):
        create_order(db, order_header(), [{"item_id": item.id, "total_quantity": Decimal("0.001")}])
