from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.auth import get_current_user
from app.db import get_db
from app.reconciliation.service import verify_ledger, verify_line_invariants


router = APIRouter(prefix="/api/reconciliation", tags=["reconciliation"], dependencies=[Depends(get_current_user)])


@router.get("/lines")
def check_lines(line_id: Optional[int] = None, db: Session = Depends(get_db)):
    violations = verify_line_invariants(db, line_id)
    return {"ok": not violations, "violations": violations}


@router.get("/ledger")
def check_ledger(item_id: Optional[int] = None, db: Session = Depends(get_db)):
    violations = verify_ledger(db, item_id)
    return {"ok": not violations, "violations": violations}
