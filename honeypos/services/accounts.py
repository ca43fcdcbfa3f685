from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Query, Session

from honeypos.constants import (
    AUDIT_CHANGE_PASSWORD,
    AUDIT_CREATE_USER,
    AUDIT_DISABLE_USER,
    AUDIT_ENABLE_USER,
    AUDIT_LOGIN,
    AUDIT_REGISTER,
    AUDIT_RESET_PASSWORD,
    AUDIT_UPDATE_USER,
    ROLE_ADMIN,
    ROLE_POS_USER,
)
from honeypos.errors import AuthenticationError, BusinessRuleError, ConflictError, NotFoundError
from honeypos.models import AdminUser, AuditLog
from honeypos.security import create_access_token, hash_password, verify_password
from honeypos.utils import utcnow

logger = logging.getLogger(__name__)

MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 6
ROLES = (ROLE_ADMIN, ROLE_POS_USER)


def log_action(
    db: Session,
    user_id: Optional[int],
    username: str,
    action: str,
    detail: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> AuditLog:
    """Adds an audit entry. The caller commits."""
    entry = AuditLog(
        user_id=user_id,
        username=username,
        action=action,
        detail=detail,
        ip_address=ip_address,
        created_at=utcnow(),
    )
    db.add(entry)
    return entry


def audit_logs_query(db: Session, action: Optional[str] = None) -> Query:
    query = db.query(AuditLog)
    if action:
        query = query.filter(AuditLog.action == action)
    return query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())


def _check_username(username: str) -> str:
    username = (username or "").strip()
    if len(username) < MIN_USERNAME_LENGTH:
        raise BusinessRuleError(f"username must be at least {MIN_USERNAME_LENGTH} characters")
    return username


def _check_password(password: str) -> None:
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise BusinessRuleError(f"password must be at least {MIN_PASSWORD_LENGTH} characters")


def _check_role(role: str) -> str:
    if role not in ROLES:
        raise BusinessRuleError(f"unknown role: {role}")
    return role


def has_any_user(db: Session) -> bool:
    return db.query(AdminUser.id).first() is not None


def get_user(db: Session, user_id: int) -> AdminUser:
    user = db.get(AdminUser, user_id)
    if user is None:
        raise NotFoundError("user not found")
    return user


def list_users(db: Session) -> list[AdminUser]:
    return db.query(AdminUser).order_by(AdminUser.id).all()


def _new_user(username: str, password: str, display_name: Optional[str], role: str) -> AdminUser:
    now = utcnow()
    return AdminUser(
        username=username,
        password_hash=hash_password(password),
        display_name=(display_name or "").strip() or username,
        role=role,
        is_active=True,
        created_at=now,
        updated_at=now,
    )


def register_first_user(
    db: Session,
    username: str,
    password: str,
    confirm_password: str,
    display_name: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> AdminUser:
    if has_any_user(db):
        raise ConflictError("an account already exists; ask an administrator to create one")
    username = _check_username(username)
    _check_password(password)
    if password != confirm_password:
        raise BusinessRuleError("passwords do not match")
    user = _new_user(username, password, display_name, ROLE_ADMIN)
    db.add(user)
    db.flush()
    log_action(db, user.id, user.username, AUDIT_REGISTER, "initial administrator", ip_address)
    db.commit()
    db.refresh(user)
    logger.info("First administrator registered: %s", user.username)
    return user


def login(db: Session, username: str, password: str, ip_address: Optional[str] = None) -> tuple[AdminUser, str, int]:
    user = db.query(AdminUser).filter(AdminUser.username == (username or "").strip()).first()
    if user is None or not user.is_active or not verify_password(password or "", user.password_hash):
        logger.warning("Failed login for %s from %s", username, ip_address)
        raise AuthenticationError("invalid username or password")
    user.last_login_at = utcnow()
    log_action(db, user.id, user.username, AUDIT_LOGIN, None, ip_address)
    db.commit()
    db.refresh(user)
    token, expires_in = create_access_token(user)
    return user, token, expires_in


def change_password(
    db: Session,
    user: AdminUser,
    current_password: str,
    new_password: str,
    ip_address: Optional[str] = None,
) -> None:
    if not verify_password(current_password or "", user.password_hash):
        raise BusinessRuleError("current password is incorrect")
    _check_password(new_password)
    user.password_hash = hash_password(new_password)
    user.updated_at = utcnow()
    log_action(db, user.id, user.username, AUDIT_CHANGE_PASSWORD, None, ip_address)
    db.commit()


def create_user(
    db: Session,
    operator: AdminUser,
    username: str,
    password: str,
    display_name: Optional[str] = None,
    role: str = ROLE_POS_USER,
    ip_address: Optional[str] = None,
) -> AdminUser:
    username = _check_username(username)
    _check_password(password)
    _check_role(role)
    if db.query(AdminUser.id).filter(AdminUser.username == username).first() is not None:
        raise ConflictError("username already exists")
    user = _new_user(username, password, display_name, role)
    db.add(user)
    db.flush()
    log_action(db, operator.id, operator.username, AUDIT_CREATE_USER, f"created {username} ({role})", ip_address)
    db.commit()
    db.refresh(user)
    logger.info("User %s created by %s", username, operator.username)
    return user


def update_user(
    db: Session,
    operator: AdminUser,
    user_id: int,
    display_name: Optional[str] = None,
    role: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> AdminUser:
    user = get_user(db, user_id)
    changes = []
    if display_name is not None and display_name.strip():
        user.display_name = display_name.strip()
        changes.append("display_name")
    if role is not None and role != user.role:
        _check_role(role)
        if user.id == operator.id:
            raise BusinessRuleError("you cannot change your own role")
        user.role = role
        changes.append("role")
    user.updated_at = utcnow()
    log_action(
        db, operator.id, operator.username, AUDIT_UPDATE_USER, f"updated {user.username}: {', '.join(changes)}", ip_address
    )
    db.commit()
    db.refresh(user)
    return user


def toggle_user_status(db: Session, operator: AdminUser, user_id: int, ip_address: Optional[str] = None) -> AdminUser:
    user = get_user(db, user_id)
    if user.id == operator.id:
        raise BusinessRuleError("you cannot disable your own account")
    user.is_active = not user.is_active
    user.updated_at = utcnow()
    action = AUDIT_ENABLE_USER if user.is_active else AUDIT_DISABLE_USER
    log_action(db, operator.id, operator.username, action, user.username, ip_address)
    db.commit()
    db.refresh(user)
    return user


def reset_password(
    db: Session, operator: AdminUser, user_id: int, new_password: str, ip_address: Optional[str] = None
) -> None:
    user = get_user(db, user_id)
    _check_password(new_password)
    user.password_hash = hash_password(new_password)
    user.updated_at = utcnow()
    log_action(db, operator.id, operator.username, AUDIT_RESET_PASSWORD, user.username, ip_address)
    db.commit()
