from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.auth import check_authorized, get_current_user, require_action
from app.db import get_db, unit_of_work
from app.models import BlanketRelease, User
from app.releases import schemas
from app.releases.service import (
    create_release,
    get_allowed_release_transitions,
    get_release,
    list_overdue_releases,
    list_pending_releases,
    list_releases,
    update_release_status,
)
from app.roles import Action


router = APIRouter(prefix="/api/releases", tags=["releases"], dependencies=[Depends(get_current_user)])

STATUS_ACTIONS = {
    "PENDING": Action.CREATE_RELEASE,
    "SHIPPED": Action.SHIP_RELEASE,
    "DELIVERED": Action.DELIVER_RELEASE,
}


def _to_response(release: BlanketRelease) -> schemas.ReleaseResponse:
    response = schemas.ReleaseResponse.model_validate(release)
    response.allowed_transitions = get_allowed_release_transitions(release)
    return response


@router.get("", response_model=List[schemas.ReleaseResponse])
def list_releases_endpoint(
    order_id: Optional[int] = None,
    status_filter: Optional[schemas.ReleaseStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
):
    return [_to_response(release) for release in list_releases(db, order_id=order_id, status=status_filter)]


@router.get("/pending", response_model=List[schemas.ReleaseResponse])
def list_pending_releases_endpoint(db: Session = Depends(get_db)):
    return [_to_response(release) for release in list_pending_releases(db)]


@router.get("/overdue", response_model=List[schemas.ReleaseResponse])
def list_overdue_releases_endpoint(as_of: Optional[date] = None, db: Session = Depends(get_db)):
    return [_to_response(release) for release in list_overdue_releases(db, as_of)]


@router.post("", response_model=schemas.ReleaseResponse, status_code=status.HTTP_201_CREATED)
def create_release_endpoint(
    payload: schemas.ReleaseCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_action(Action.CREATE_RELEASE)),
):
    with unit_of_work(db):
        release = create_release(
            db,
            order_line_id=payload.order_line_id,
            quantity=payload.quantity,
            scheduled_date=payload.scheduled_delivery_date,
            notes=payload.notes,
            user_id=current_user.id,
        )
    return _to_response(get_release(db, release.id))


@router.get("/{release_id}", response_model=schemas.ReleaseResponse)
def get_release_endpoint(release_id: int, db: Session = Depends(get_db)):
    return _to_response(get_release(db, release_id))


@router.patch("/{release_id}/status", response_model=schemas.ReleaseResponse)
def update_release_status_endpoint(
    release_id: int,
    payload: schemas.ReleaseStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    action = STATUS_ACTIONS[payload.status]
    check_authorized(current_user, action)
    with unit_of_work(db):
        update_release_status(db, release_id, payload.status, user_id=current_user.id)
    return _to_response(get_release(db, release_id))
