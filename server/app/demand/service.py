"""Historical demand feed for the forecasting and MRP collaborators.

Demand is read straight off the OUT side of the stock ledger. Nothing in
here writes to the database.
"""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.catalog.service import get_item
from app.errors import ValidationError
from app.inventory.service import MOVEMENT_OUT, to_quantity
from app.models import StockMovement


MAX_HISTORY_MONTHS = 60


def _add_months(d: date, months: int) -> date:
    m = d.month - 1 + months
    y = d.year + m // 12
    m = m % 12 + 1
    return date(y, m, 1)


def month_expression(db: Session, column):
    dialect = db.get_bind().dialect.name
    if dialect == "sqlite":
        return func.strftime("%Y-%m", column)
    return func.to_char(func.date_trunc("month", column), "YYYY-MM")


def month_labels(months: int, as_of: date) -> List[str]:
    first = _add_months(as_of.replace(day=1), -(months - 1))
    return [_add_months(first, offset).strftime("%Y-%m") for offset in range(months)]


def get_demand_history(
    db: Session,
    item_id: int,
    months: int = 12,
    as_of: Optional[date] = None,
) -> List[Dict[str, object]]:
    if months < 1 or months > MAX_HISTORY_MONTHS:
        raise ValidationError(f"months must be between 1 and {MAX_HISTORY_MONTHS}.")
    get_item(db, item_id)
    as_of = as_of or date.today()
    labels = month_labels(months, as_of)
    window_start = datetime.combine(_add_months(as_of.replace(day=1), -(months - 1)), time.min)
    window_end = datetime.combine(_add_months(as_of.replace(day=1), 1), time.min)

    month_col = month_expression(db, StockMovement.created_at)
    rows = (
        db.query(month_col, func.coalesce(func.sum(StockMovement.quantity), 0))
        .filter(
            StockMovement.item_id == item_id,
            StockMovement.movement_type == MOVEMENT_OUT,
            StockMovement.created_at >= window_start,
            StockMovement.created_at < window_end,
        )
        .group_by(month_col)
        .all()
    )
    lookup = {label: to_quantity(total).quantize(Decimal("0.01")) for label, total in rows}
    return [{"period": label, "quantity": lookup.get(label, Decimal("0"))} for label in labels]
