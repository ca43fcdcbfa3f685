from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from honeypos.constants import ROLE_POS_USER
from honeypos.deps import get_db, list_meta, meta, paginate
from honeypos.models import AdminUser
from honeypos.security import client_ip, get_current_user, require_admin
from honeypos.serializers import audit_dict, user_dict
from honeypos.services import accounts

router = APIRouter(tags=["Auth"])


class RegisterIn(BaseModel):
    model_config = {
        "json_schema_extra": {
            "example": {
                "username": "owner",
                "password": "secret123",
                "confirm_password": "secret123",
                "display_name": "店長",
            }
        }
    }
    username: str
    password: str
    confirm_password: str
    display_name: Optional[str] = None


class LoginIn(BaseModel):
    model_config = {"json_schema_extra": {"example": {"username": "owner", "password": "secret123"}}}
    username: str
    password: str


class ChangePasswordIn(BaseModel):
    current_password: str
    new_password: str


class UserCreate(BaseModel):
    username: str
    password: str
    display_name: Optional[str] = None
    role: str = ROLE_POS_USER


class UserUpdate(BaseModel):
    display_name: Optional[str] = None
    role: Optional[str] = None


class PasswordReset(BaseModel):
    new_password: str = Field(min_length=1)


@router.get("/api/auth/status")
def auth_status(db: Session = Depends(get_db)) -> dict:
    return {"data": {"has_users": accounts.has_any_user(db)}, "meta": meta()}


@router.post("/api/auth/register")
def register(payload: RegisterIn, request: Request, db: Session = Depends(get_db)) -> dict:
    user = accounts.register_first_user(
        db,
        payload.username,
        payload.password,
        payload.confirm_password,
        payload.display_name,
        client_ip(request),
    )
    return {"data": user_dict(user), "meta": meta()}


@router.post("/api/auth/login")
def login(payload: LoginIn, request: Request, db: Session = Depends(get_db)) -> dict:
    user, token, expires_in = accounts.login(db, payload.username, payload.password, client_ip(request))
    return {
        "data": {
            "access_token": token,
            "token_type": "bearer",
            "expires_in": expires_in,
            "user": user_dict(user),
        },
        "meta": meta(),
    }


@router.get("/api/admin/accounts/me")
def me(user: AdminUser = Depends(get_current_user)) -> dict:
    return {"data": user_dict(user), "meta": meta()}


@router.post("/api/admin/accounts/change-password")
def change_password(
    payload: ChangePasswordIn,
    request: Request,
    db: Session = Depends(get_db),
    user: AdminUser = Depends(get_current_user),
) -> dict:
    accounts.change_password(db, user, payload.current_password, payload.new_password, client_ip(request))
    return {"data": {"changed": True}, "meta": meta()}


@router.get("/api/admin/accounts")
def list_accounts(db: Session = Depends(get_db), _: AdminUser = Depends(require_admin)) -> dict:
    return {"data": [user_dict(u) for u in accounts.list_users(db)], "meta": meta()}


@router.post("/api/admin/accounts")
def create_account(
    payload: UserCreate,
    request: Request,
    db: Session = Depends(get_db),
    operator: AdminUser = Depends(require_admin),
) -> dict:
    user = accounts.create_user(
        db, operator, payload.username, payload.password, payload.display_name, payload.role, client_ip(request)
    )
    return {"data": user_dict(user), "meta": meta()}


@router.put("/api/admin/accounts/{user_id}")
def update_account(
    user_id: int,
    payload: UserUpdate,
    request: Request,
    db: Session = Depends(get_db),
    operator: AdminUser = Depends(require_admin),
) -> dict:
    user = accounts.update_user(db, operator, user_id, payload.display_name, payload.role, client_ip(request))
    return {"data": user_dict(user), "meta": meta()}


@router.patch("/api/admin/accounts/{user_id}/status")
def toggle_account(
    user_id: int,
    request: Request,
    db: Session = Depends(get_db),
    operator: AdminUser = Depends(require_admin),
) -> dict:
    user = accounts.toggle_user_status(db, operator, user_id, client_ip(request))
    return {"data": user_dict(user), "meta": meta()}


@router.post("/api/admin/accounts/{user_id}/reset-password")
def reset_password(
    user_id: int,
    payload: PasswordReset,
    request: Request,
    db: Session = Depends(get_db),
    operator: AdminUser = Depends(require_admin),
) -> dict:
    accounts.reset_password(db, operator, user_id, payload.new_password, client_ip(request))
    return {"data": {"reset": True, "id": user_id}, "meta": meta()}


@router.get("/api/admin/audit-logs")
def audit_logs(
    action: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=200),
    db: Session = Depends(get_db),
    _: AdminUser = Depends(require_admin),
) -> dict:
    rows, total = paginate(accounts.audit_logs_query(db, action), page, page_size)
    return {"data": [audit_dict(entry) for entry in rows], "meta": list_meta(page, page_size, total)}
