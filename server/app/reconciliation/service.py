"""Delivery reconciliation.

``deliver_release`` is the only path that turns a SHIPPED release into a
DELIVERED one. The stock deduction, the ledger entry and the line/release
updates happen in the caller's transaction; the stock check runs before
anything is mutated, so a rejected delivery leaves no trace.

The ``verify_*`` helpers recompute the cached projections from their
sources of truth (releases for order lines, the movement log for stock)
and report every disagreement.
"""

from datetime import datetime
from decimal import Decimal
import logging
from typing import Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from app.blanket_orders.service import complete_order_if_fulfilled, get_line
from app.errors import AlreadyDelivered, InvalidStatusTransition, NotFound
from app.inventory.service import (
    MOVEMENT_IN,
    REFERENCE_RELEASE,
    deduct,
    list_movements,
    shift_projections,
    to_quantity,
)
from app.models import BlanketOrderLine, BlanketRelease, Inventory


logger = logging.getLogger(__name__)

RELEASE_PENDING = "PENDING"
RELEASE_SHIPPED = "SHIPPED"
RELEASE_DELIVERED = "DELIVERED"


def _lock_release(db: Session, release_id: int) -> BlanketRelease:
    release = (
        db.query(BlanketRelease)
        .filter(BlanketRelease.id == release_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not release:
        raise NotFound(f"Release not found: {release_id}")
    return release


def deliver_release(db: Session, release_id: int, *, user_id: Optional[int] = None) -> BlanketRelease:
    release = _lock_release(db, release_id)
    if release.status == RELEASE_DELIVERED:
        logger.warning("Duplicate delivery rejected for release %s", release.release_number)
        raise AlreadyDelivered(release.id)
    if release.status != RELEASE_SHIPPED:
        raise InvalidStatusTransition(release.status, RELEASE_DELIVERED)

    line = get_line(db, release.blanket_order_line_id, for_update=True)
    qty = to_quantity(release.quantity)

    new_stock = deduct(
        db,
        item_id=line.item_id,
        qty=qty,
        reference_type=REFERENCE_RELEASE,
        reference_id=release.id,
        user_id=user_id,
        notes=f"Release {release.release_number} delivered",
    )

    release.status = RELEASE_DELIVERED
    release.actual_delivery_date = datetime.utcnow()
    line.delivered_quantity = to_quantity(line.delivered_quantity) + qty
    shift_projections(db, item_id=line.item_id, reserved_delta=-qty, in_transit_delta=-qty)
    complete_order_if_fulfilled(db, line.blanket_order)
    db.flush()

    logger.info(
        "Release %s delivered: item_id=%s qty=%s stock_after=%s",
        release.release_number,
        line.item_id,
        qty,
        new_stock,
    )
    return release


def verify_line_invariants(db: Session, line_id: Optional[int] = None) -> list[dict]:
    released_sum = func.coalesce(func.sum(BlanketRelease.quantity), 0)
    delivered_sum = func.coalesce(
        func.sum(case((BlanketRelease.status == RELEASE_DELIVERED, BlanketRelease.quantity), else_=0)),
        0,
    )
    sums_query = db.query(BlanketRelease.blanket_order_line_id, released_sum, delivered_sum).group_by(
        BlanketRelease.blanket_order_line_id
    )
    lines_query = db.query(BlanketOrderLine)
    if line_id is not None:
        sums_query = sums_query.filter(BlanketRelease.blanket_order_line_id == line_id)
        lines_query = lines_query.filter(BlanketOrderLine.id == line_id)

    sums_by_line = {
        row_line_id: (to_quantity(released), to_quantity(delivered))
        for row_line_id, released, delivered in sums_query.all()
    }

    violations: list[dict] = []
    for line in lines_query.order_by(BlanketOrderLine.id).all():
        expected_released, expected_delivered = sums_by_line.get(line.id, (Decimal("0"), Decimal("0")))
        total = to_quantity(line.total_quantity)
        released = to_quantity(line.released_quantity)
        delivered = to_quantity(line.delivered_quantity)
        problems = []
        if released != expected_released:
            problems.append(f"released_quantity {released} != sum of releases {expected_released}")
        if delivered != expected_delivered:
            problems.append(f"delivered_quantity {delivered} != sum of delivered releases {expected_delivered}")
        if not (Decimal("0") <= delivered <= released <= total):
            problems.append(f"quantity bounds violated (delivered={delivered}, released={released}, total={total})")
        for problem in problems:
            violations.append({"line_id": line.id, "problem": problem})

    if violations:
        logger.warning("Line invariant check found %s violation(s)", len(violations))
    return violations


def verify_ledger(db: Session, item_id: Optional[int] = None) -> list[dict]:
    query = db.query(Inventory)
    if item_id is not None:
        query = query.filter(Inventory.item_id == item_id)

    violations: list[dict] = []
    for inventory in query.order_by(Inventory.item_id).all():
        balance = Decimal("0")
        for movement in list_movements(db, inventory.item_id):
            qty = to_quantity(movement.quantity)
            balance = balance + qty if movement.movement_type == MOVEMENT_IN else balance - qty
            if balance != to_quantity(movement.balance_after):
                violations.append(
                    {
                        "item_id": inventory.item_id,
                        "problem": f"movement {movement.id} balance_after {movement.balance_after} != replayed {balance}",
                    }
                )
        available = to_quantity(inventory.available_stock)
        if balance != available:
            violations.append(
                {
                    "item_id": inventory.item_id,
                    "problem": f"available_stock {available} != replayed ledger balance {balance}",
                }
            )

    if violations:
        logger.warning("Ledger replay check found %s violation(s)", len(violations))
    return violations
