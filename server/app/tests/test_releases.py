from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from app.blanket_orders.service import create_order, get_line, update_order_status
from app.catalog.service import create_item
from app.db import Base
from app.errors import (
    AlreadyDelivered,
    InsufficientRemainingQuantity,
    InvalidStatusTransition,
    NotFound,
    RetryableConflict,
    ValidationError,
)
from app.inventory.service import adjust, get_balance
from app.models import AuditEvent, BlanketRelease
from app.releases.service import (
    create_release,
    get_allowed_release_transitions,
    list_overdue_releases,
    list_pending_releases,
    list_releases,
    update_release_status,
)


def create_session():
    engine = create_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)()


def seed_line(db, total=Decimal("100"), stock=Decimal("1000")):
    item = create_item(db, {"item_code": "X-100", "name": "Bracket"})
    if stock:
        adjust(db, item_id=item.id, direction="IN", qty=stock, reason="Opening balance")
    order = create_order(
        db,
        {
            "order_number": "BO-1",
            "customer_name": "Acme Manufacturing",
            "start_date": date(2026, 1, 1),
            "end_date": date(2026, 12, 31),
        },
        [{"item_id": item.id, "total_quantity": total}],
    )
    db.commit()
    return order.lines[0]


def test_create_release_reserves_line_quantity():
    db = create_session()
    line = seed_line(db)

    release = create_release(db, order_line_id=line.id, quantity=40, scheduled_date=date(2026, 3, 1))
    db.commit()
    db.refresh(line)

    assert release.status == "PENDING"
    assert release.release_number.startswith("REL-")
    assert line.released_quantity == Decimal("40")
    assert line.remaining_quantity == Decimal("60")
    assert get_balance(db, line.item_id).reserved_stock == Decimal("40")


def test_create_release_over_remaining_quantity_leaves_state_unchanged():
    db = create_session()
    line = seed_line(db)
    create_release(db, order_line_id=line.id, quantity=40, scheduled_date=date(2026, 3, 1))
    db.commit()

    with pytest.raises(InsufficientRemainingQuantity) as exc_info:
        create_release(db, order_line_id=line.id, quantity=70, scheduled_date=date(2026, 3, 2))
    db.rollback()

    assert exc_info.value.remaining == Decimal("60")
    line = get_line(db, line.id)
    assert line.released_quantity == Decimal("40")
    assert line.remaining_quantity == Decimal("60")
    assert db.query(BlanketRelease).count() == 1


def test_create_release_validates_input():
    db = create_session()
    line = seed_line(db)

    with pytest.raises(ValidationError):
        create_release(db, order_line_id=line.id, quantity=0, scheduled_date=date(2026, 3, 1))
    with pytest.raises(ValidationError):
        create_release(db, order_line_id=line.id, quantity=10, scheduled_date=None)
    with pytest.raises(ValidationError):
        create_release(db, order_line_id=line.id, quantity=10, scheduled_date=date(2027, 1, 15))
    with pytest.raises(NotFound):
        create_release(db, order_line_id=999, quantity=10, scheduled_date=date(2026, 3, 1))


def test_create_release_requires_active_order():
    db = create_session()
    line = seed_line(db)
    update_order_status(db, line.blanket_order_id, "CANCELLED")
    db.commit()

    with pytest.raises(ValidationError):
        create_release(db, order_line_id=line.id, quantity=10, scheduled_date=date(2026, 3, 1))


def test_release_numbers_increment():
    db = create_session()
    line = seed_line(db)

    first = create_release(db, order_line_id=line.id, quantity=10, scheduled_date=date(2026, 3, 1))
    second = create_release(db, order_line_id=line.id, quantity=10, scheduled_date=date(2026, 3, 2))

    assert int(second.release_number.split("-")[-1]) == int(first.release_number.split("-")[-1]) + 1


def test_ship_moves_reserved_stock_in_transit_and_audits():
    db = create_session()
    line = seed_line(db)
    release = create_release(db, order_line_id=line.id, quantity=25, scheduled_date=date(2026, 3, 1))
    db.commit()

    update_release_status(db, release.id, "SHIPPED", user_id=None)
    db.commit()

    assert release.status == "SHIPPED"
    assert release.shipped_at is not None
    assert get_allowed_release_transitions(release) == ["DELIVERED"]
    assert get_balance(db, line.item_id).in_transit_stock == Decimal("25")
    event = db.query(AuditEvent).filter(AuditEvent.entity_id == release.id).one()
    assert event.event_metadata == "PENDING->SHIPPED"


def test_repeating_current_status_is_a_no_op():
    db = create_session()
    line = seed_line(db)
    release = create_release(db, order_line_id=line.id, quantity=25, scheduled_date=date(2026, 3, 1))
    update_release_status(db, release.id, "SHIPPED")
    db.commit()

    update_release_status(db, release.id, "SHIPPED")
    db.commit()

    assert release.status == "SHIPPED"
    assert get_balance(db, line.item_id).in_transit_stock == Decimal("25")
    assert db.query(AuditEvent).count() == 1


def test_skipping_shipment_is_an_invalid_transition():
    db = create_session()
    line = seed_line(db)
    release = create_release(db, order_line_id=line.id, quantity=25, scheduled_date=date(2026, 3, 1))
    db.commit()

    with pytest.raises(InvalidStatusTransition):
        update_release_status(db, release.id, "DELIVERED")
    with pytest.raises(ValidationError):
        update_release_status(db, release.id, "LOST")
    with pytest.raises(NotFound):
        update_release_status(db, 999, "SHIPPED")


def test_delivered_release_rejects_every_further_request():
    db = create_session()
    line = seed_line(db)
    release = create_release(db, order_line_id=line.id, quantity=25, scheduled_date=date(2026, 3, 1))
    update_release_status(db, release.id, "SHIPPED")
    update_release_status(db, release.id, "DELIVERED")
    db.commit()

    for status in ("PENDING", "SHIPPED", "DELIVERED"):
        with pytest.raises(AlreadyDelivered):
            update_release_status(db, release.id, status)
    assert get_allowed_release_transitions(release) == []


def test_pending_and_overdue_lists():
    db = create_session()
    line = seed_line(db)
    early = create_release(db, order_line_id=line.id, quantity=10, scheduled_date=date(2026, 2, 1))
    late = create_release(db, order_line_id=line.id, quantity=10, scheduled_date=date(2026, 6, 1))
    done = create_release(db, order_line_id=line.id, quantity=10, scheduled_date=date(2026, 1, 15))
    update_release_status(db, done.id, "SHIPPED")
    update_release_status(db, done.id, "DELIVERED")
    db.commit()

    assert [release.id for release in list_pending_releases(db)] == [early.id, late.id]
    assert [release.id for release in list_overdue_releases(db, as_of=date(2026, 3, 1))] == [early.id]
    assert [release.id for release in list_releases(db, status="DELIVERED")] == [done.id]
    assert len(list_releases(db, order_id=line.blanket_order_id)) == 3


def test_create_release_rejects_sub_cent_quantity_without_reserving():
    db = create_session()
    line = seed_line(db)

    with pytest.raises(ValidationError):
        create_release(db, order_line_id=line.id, quantity=Decimal("0.004"), scheduled_date=date(2026, 3, 1))
    db.rollback()

    line = get_line(db, line.id)
    assert line.released_quantity == Decimal("0")
    assert db.query(BlanketRelease).count() == 0

    release = create_release(db, order_line_id=line.id, quantity=Decimal("10.25"), scheduled_date=date(2026, 3, 1))
    db.commit()
    assert release.quantity == Decimal("10.25")


def test_release_number_collision_is_retryable(monkeypatch):
    db = create_session()
    line = seed_line(db)
    existing = create_release(db, order_line_id=line.id, quantity=10, scheduled_date=date(2026, 3, 1))
    db.commit()
    taken = existing.release_number

    monkeypatch.setattr("app.releases.service._next_release_number", lambda db: taken)
    with pytest.raises(RetryableConflict):
        create_release(db, order_line_id=line.id, quantity=10, scheduled_date=date(2026, 3, 2))


def test_other_integrity_errors_are_not_reported_as_retryable(monkeypatch):
    db = create_session()
    line = seed_line(db)

    monkeypatch.setattr("app.releases.service.require_quantity", lambda value, label="Quantity": Decimal("0"))
    with pytest.raises(IntegrityError):
        create_release(db, order_line_id=line.id, quantity=0, scheduled_date=date(2026, 3, 1))
