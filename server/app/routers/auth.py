from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy import func, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.auth import (
    TOKEN_TYPE_REFRESH,
    get_current_user,
    hash_password,
    issue_tokens,
    require_action,
    resolve_token_user,
    verify_password,
)
from app.db import get_db
from app.models import User
from app.roles import Action, Role

router = APIRouter(prefix="/api/auth", tags=["auth"])


class LoginPayload(BaseModel):
    email: str
    password: str


class RefreshPayload(BaseModel):
    refresh_token: str


class BootstrapStatusResponse(BaseModel):
    needs_bootstrap: bool


class BootstrapManagerPayload(BaseModel):
    email: str
    password: str = Field(min_length=10)
    full_name: str | None = None


class UserCreatePayload(BaseModel):
    email: str
    password: str = Field(min_length=10)
    full_name: str | None = None
    role: Role = Role.OPERATOR


def _serialize_user(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "role": user.role,
        "is_active": user.is_active,
    }


def _users_count(db: Session) -> int:
    return int(db.query(func.count(User.id)).scalar() or 0)


@router.get("/bootstrap/status", response_model=BootstrapStatusResponse)
def bootstrap_status(db: Session = Depends(get_db)):
    return {"needs_bootstrap": _users_count(db) == 0}


@router.post("/bootstrap", status_code=status.HTTP_201_CREATED)
def bootstrap_manager(payload: BootstrapManagerPayload, db: Session = Depends(get_db)):
    try:
        if db.bind and db.bind.dialect.name == "postgresql":
            db.execute(text("LOCK TABLE users IN EXCLUSIVE MODE"))

        if _users_count(db) > 0:
            raise HTTPException(status_code=409, detail="Bootstrap already completed")

        user = User(
            email=payload.email,
            full_name=payload.full_name,
            password_hash=hash_password(payload.password),
            role=Role.MANAGER.value,
            is_active=True,
        )
        db.add(user)
        db.commit()
    except HTTPException:
        db.rollback()
        raise
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Bootstrap already completed")

    db.refresh(user)
    return {"user": _serialize_user(user), **issue_tokens(user)}


@router.post("/users", status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreatePayload,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_action(Action.MANAGE_USERS)),
):
    if db.query(User.id).filter(User.email == payload.email).first():
        raise HTTPException(status_code=409, detail=f"Email already exists: {payload.email}")
    user = User(
        email=payload.email,
        full_name=payload.full_name,
        password_hash=hash_password(payload.password),
        role=payload.role.value,
        is_active=True,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail=f"Email already exists: {payload.email}")
    db.refresh(user)
    return _serialize_user(user)


@router.post("/login")
def login(payload: LoginPayload, db: Session = Depends(get_db)):
    if _users_count(db) == 0:
        raise HTTPException(status_code=403, detail="Bootstrap required before login")

    user = db.query(User).filter(User.email == payload.email).first()
    if not user or not user.is_active or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    return {**issue_tokens(user), "user": _serialize_user(user)}


@router.post("/refresh")
def refresh(payload: RefreshPayload, db: Session = Depends(get_db)):
    user = resolve_token_user(db, payload.refresh_token, TOKEN_TYPE_REFRESH)
    return issue_tokens(user)


@router.get("/me")
def me(current_user: User = Depends(get_current_user)):
    return _serialize_user(current_user)
