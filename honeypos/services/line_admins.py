from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
from typing import Optional

from sqlalchemy.orm import Session

from honeypos.constants import LINE_ADMIN_APPROVED, LINE_ADMIN_PENDING, LINE_ADMIN_REJECTED
from honeypos.errors import AuthenticationError, ConflictError, NotFoundError
from honeypos.models import AdminUser, LineAdmin
from honeypos.services import line_oa
from honeypos.utils import utcnow

logger = logging.getLogger(__name__)

AUTH_COMMAND = "/auth"

MSG_ALREADY_ADMIN = "您已是 LINE 管理員"
MSG_PENDING = "您的申請正在審核中，請等待管理員核可"
MSG_REJECTED = "您的申請已被拒絕"
MSG_SUBMITTED = "您的管理員申請已送出，請等待管理員核可"
MSG_APPROVED = "恭喜！您已成為 LINE 管理員，將會收到重要營運通知"
MSG_REJECTED_NOTICE = "您的管理員申請已被拒絕"

STATUS_REPLIES = {
    LINE_ADMIN_APPROVED: MSG_ALREADY_ADMIN,
    LINE_ADMIN_PENDING: MSG_PENDING,
    LINE_ADMIN_REJECTED: MSG_REJECTED,
}


def compute_signature(channel_secret: str, body: bytes) -> str:
    digest = hmac.new(channel_secret.encode("utf-8"), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(channel_secret: str, body: bytes, signature: Optional[str]) -> bool:
    if not signature:
        return False
    return hmac.compare_digest(compute_signature(channel_secret, body), signature)


def handle_webhook(db: Session, body: bytes, signature: Optional[str]) -> int:
    """Validates and processes a webhook delivery; returns the number of handled events."""
    credentials = line_oa.get_credentials(db)
    if not credentials.channel_secret:
        logger.warning("LINE channel secret not configured, skipping signature check")
    elif not verify_signature(credentials.channel_secret, body, signature):
        logger.warning("LINE webhook signature mismatch")
        raise AuthenticationError("invalid signature")

    payload = json.loads(body.decode("utf-8") or "{}")
    handled = 0
    for event in payload.get("events", []):
        if event.get("type") != "message":
            continue
        message = event.get("message") or {}
        if message.get("type") != "text":
            continue
        user_id = (event.get("source") or {}).get("userId")
        if not user_id:
            continue
        if handle_text(db, user_id, message.get("text") or ""):
            handled += 1
    return handled


def handle_text(db: Session, line_user_id: str, text: str) -> bool:
    command = text.strip().lower()
    if command == AUTH_COMMAND:
        apply_for_admin(db, line_user_id)
        return True
    return False


def apply_for_admin(db: Session, line_user_id: str) -> LineAdmin:
    client = line_oa.messaging_client(db)
    existing = db.query(LineAdmin).filter(LineAdmin.line_user_id == line_user_id).first()
    if existing is not None and existing.is_active:
        client.push_text(line_user_id, STATUS_REPLIES.get(existing.status, MSG_PENDING))
        return existing

    profile = client.get_profile(line_user_id) or {}
    display_name = profile.get("displayName") or line_user_id
    picture_url = profile.get("pictureUrl")
    if existing is not None:
        admin = existing
        admin.display_name = display_name
        admin.picture_url = picture_url
        admin.status = LINE_ADMIN_PENDING
        admin.is_active = True
        admin.approved_by_id = None
        admin.approved_at = None
    else:
        admin = LineAdmin(
            line_user_id=line_user_id,
            display_name=display_name,
            picture_url=picture_url,
            status=LINE_ADMIN_PENDING,
            is_active=True,
            created_at=utcnow(),
        )
        db.add(admin)
    db.commit()
    db.refresh(admin)
    logger.info("LINE admin application from %s (%s)", display_name, line_user_id)
    client.push_text(line_user_id, MSG_SUBMITTED)
    return admin


def list_line_admins(db: Session, status: Optional[str] = None) -> list[LineAdmin]:
    query = db.query(LineAdmin).filter(LineAdmin.is_active.is_(True))
    if status:
        query = query.filter(LineAdmin.status == status)
    return query.order_by(LineAdmin.created_at.desc(), LineAdmin.id.desc()).all()


def get_line_admin(db: Session, admin_id: int) -> LineAdmin:
    admin = db.get(LineAdmin, admin_id)
    if admin is None or not admin.is_active:
        raise NotFoundError("LINE admin not found")
    return admin


def _decide(db: Session, admin_id: int, approver: AdminUser, status: str, message: str) -> LineAdmin:
    admin = get_line_admin(db, admin_id)
    if admin.status != LINE_ADMIN_PENDING:
        raise ConflictError("only pending applications can be reviewed")
    admin.status = status
    admin.approved_by_id = approver.id
    admin.approved_at = utcnow()
    db.commit()
    db.refresh(admin)
    logger.info("LINE admin %s %s by %s", admin.display_name, status, approver.username)
    line_oa.messaging_client(db).push_text(admin.line_user_id, message)
    return admin


def approve_line_admin(db: Session, admin_id: int, approver: AdminUser) -> LineAdmin:
    return _decide(db, admin_id, approver, LINE_ADMIN_APPROVED, MSG_APPROVED)


def reject_line_admin(db: Session, admin_id: int, approver: AdminUser) -> LineAdmin:
    return _decide(db, admin_id, approver, LINE_ADMIN_REJECTED, MSG_REJECTED_NOTICE)


def remove_line_admin(db: Session, admin_id: int) -> None:
    admin = get_line_admin(db, admin_id)
    admin.is_active = False
    db.commit()
    logger.info("LINE admin %s removed", admin.display_name)
