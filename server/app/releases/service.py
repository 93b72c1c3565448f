from datetime import date, datetime
import logging
from typing import Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.blanket_orders.service import ORDER_ACTIVE, get_line
from app.errors import (
    AlreadyDelivered,
    InsufficientRemainingQuantity,
    InvalidStatusTransition,
    NotFound,
    RetryableConflict,
    ValidationError,
)
from app.inventory.service import ensure_inventory, require_quantity, shift_projections, to_quantity
from app.models import AuditEvent, BlanketOrderLine, BlanketRelease
from app.reconciliation.service import (
    RELEASE_DELIVERED,
    RELEASE_PENDING,
    RELEASE_SHIPPED,
    deliver_release,
)


logger = logging.getLogger(__name__)

RELEASE_STATUS_FLOW = [RELEASE_PENDING, RELEASE_SHIPPED, RELEASE_DELIVERED]


def _next_release_number(db: Session) -> str:
    year = datetime.utcnow().year
    prefix = f"REL-{year}-"
    latest = (
        db.query(BlanketRelease.release_number)
        .filter(BlanketRelease.release_number.like(f"{prefix}%"))
        .order_by(BlanketRelease.id.desc())
        .first()
    )
    if latest and latest[0]:
        try:
            sequence = int(str(latest[0]).split("-")[-1]) + 1
        except (ValueError, TypeError):
            sequence = 1
    else:
        sequence = 1
    return f"{prefix}{sequence:05d}"


def get_allowed_release_transitions(release: BlanketRelease) -> list[str]:
    if release.status == RELEASE_DELIVERED:
        return []
    index = RELEASE_STATUS_FLOW.index(release.status)
    return [RELEASE_STATUS_FLOW[index + 1]]


def record_release_status_transition(
    db: Session,
    *,
    release: BlanketRelease,
    from_status: str,
    to_status: str,
    user_id: Optional[int] = None,
) -> None:
    db.add(
        AuditEvent(
            user_id=user_id,
            entity_type="blanket_release",
            entity_id=release.id,
            action="STATUS_TRANSITION",
            event_metadata=f"{from_status}->{to_status}",
        )
    )


def create_release(
    db: Session,
    *,
    order_line_id: int,
    quantity,
    scheduled_date: Optional[date],
    notes: Optional[str] = None,
    user_id: Optional[int] = None,
) -> BlanketRelease:
    quantity = require_quantity(quantity, "Requested quantity")
    if scheduled_date is None:
        raise ValidationError("Scheduled delivery date is required.")

    line = get_line(db, order_line_id, for_update=True)
    order = line.blanket_order
    if order.status != ORDER_ACTIVE:
        raise ValidationError("Cannot create release for inactive order.")
    if not (order.start_date <= scheduled_date <= order.end_date):
        raise ValidationError(
            f"Scheduled delivery date {scheduled_date} is outside the order window "
            f"{order.start_date} to {order.end_date}."
        )

    remaining = to_quantity(line.total_quantity) - to_quantity(line.released_quantity)
    if quantity > remaining:
        logger.warning(
            "Release rejected for line %s: requested=%s remaining=%s",
            line.id,
            quantity,
            remaining,
        )
        raise InsufficientRemainingQuantity(line_id=line.id, requested=quantity, remaining=remaining)

    line.released_quantity = to_quantity(line.released_quantity) + quantity
    release = BlanketRelease(
        release_number=_next_release_number(db),
        blanket_order_line_id=line.id,
        quantity=quantity,
        status=RELEASE_PENDING,
        scheduled_delivery_date=scheduled_date,
        notes=notes,
        created_by_user_id=user_id,
    )
    db.add(release)
    ensure_inventory(db, line.item_id)
    shift_projections(db, item_id=line.item_id, reserved_delta=quantity)
    try:
        db.flush()
    except IntegrityError as exc:
        if "release_number" not in str(exc.orig):
            raise
        raise RetryableConflict("Release number already taken by a concurrent request; retry.") from exc

    logger.info(
        "Release %s created: line_id=%s qty=%s remaining_after=%s",
        release.release_number,
        line.id,
        quantity,
        line.remaining_quantity,
    )
    return release


def get_release(db: Session, release_id: int) -> BlanketRelease:
    release = (
        db.query(BlanketRelease)
        .options(selectinload(BlanketRelease.line))
        .filter(BlanketRelease.id == release_id)
        .first()
    )
    if not release:
        raise NotFound(f"Release not found: {release_id}")
    return release


def update_release_status(
    db: Session,
    release_id: int,
    new_status: str,
    *,
    user_id: Optional[int] = None,
) -> BlanketRelease:
    if new_status not in RELEASE_STATUS_FLOW:
        raise ValidationError(f"Unknown release status: {new_status}")

    release = (
        db.query(BlanketRelease)
        .filter(BlanketRelease.id == release_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not release:
        raise NotFound(f"Release not found: {release_id}")

    current = release.status
    if current == RELEASE_DELIVERED:
        raise AlreadyDelivered(release.id)
    if new_status == current:
        logger.debug("Release %s already %s; nothing to do", release.release_number, current)
        return release

    if current == RELEASE_PENDING and new_status == RELEASE_SHIPPED:
        release.status = RELEASE_SHIPPED
        release.shipped_at = datetime.utcnow()
        shift_projections(db, item_id=release.line.item_id, in_transit_delta=to_quantity(release.quantity))
        db.flush()
        logger.info("Release %s shipped", release.release_number)
    elif current == RELEASE_SHIPPED and new_status == RELEASE_DELIVERED:
        deliver_release(db, release.id, user_id=user_id)
    else:
        raise InvalidStatusTransition(current, new_status)

    record_release_status_transition(db, release=release, from_status=current, to_status=new_status, user_id=user_id)
    return release


def list_releases(
    db: Session,
    *,
    order_id: Optional[int] = None,
    status: Optional[str] = None,
) -> Sequence[BlanketRelease]:
    query = db.query(BlanketRelease).options(selectinload(BlanketRelease.line))
    if order_id is not None:
        query = query.join(BlanketOrderLine, BlanketOrderLine.id == BlanketRelease.blanket_order_line_id).filter(
            BlanketOrderLine.blanket_order_id == order_id
        )
    if status:
        query = query.filter(BlanketRelease.status == status)
    return query.order_by(BlanketRelease.scheduled_delivery_date.asc(), BlanketRelease.id.asc()).all()


def list_pending_releases(db: Session) -> Sequence[BlanketRelease]:
    return (
        db.query(BlanketRelease)
        .options(selectinload(BlanketRelease.line))
        .filter(BlanketRelease.status != RELEASE_DELIVERED)
        .order_by(BlanketRelease.scheduled_delivery_date.asc(), BlanketRelease.id.asc())
        .all()
    )


def list_overdue_releases(db: Session, as_of: Optional[date] = None) -> Sequence[BlanketRelease]:
    as_of = as_of or date.today()
    return (
        db.query(BlanketRelease)
        .options(selectinload(BlanketRelease.line))
        .filter(BlanketRelease.status != RELEASE_DELIVERED, BlanketRelease.scheduled_delivery_date < as_of)
        .order_by(BlanketRelease.scheduled_delivery_date.asc(), BlanketRelease.id.asc())
        .all()
    )
