from __future__ import annotations

import logging
import string
import time
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.orm import Session

from honeypos.config import settings
from honeypos.constants import LINE_ADMIN_APPROVED
from honeypos.errors import NotFoundError
from honeypos.models import BroadcastHistory, LineAdmin, LineOaSetting, MessageTemplate
from honeypos.services.line_messaging import LineMessagingClient
from honeypos.utils import utcnow

logger = logging.getLogger(__name__)

UPDATABLE_SETTINGS = (
    "channel_id",
    "channel_secret",
    "access_token",
    "auto_reply",
    "order_notification",
    "promotion_notification",
)


@dataclass(frozen=True)
class LineCredentials:
    channel_id: str
    channel_secret: str
    access_token: str


_credentials_cache: dict[str, Any] = {"expires_at": 0.0, "value": None}


def invalidate_settings_cache() -> None:
    _credentials_cache["expires_at"] = 0.0
    _credentials_cache["value"] = None


def get_line_settings(db: Session) -> LineOaSetting:
    row = db.query(LineOaSetting).order_by(LineOaSetting.id).first()
    if row is None:
        row = LineOaSetting(
            channel_id="",
            channel_secret="",
            access_token="",
            is_connected=False,
            auto_reply=True,
            order_notification=True,
            promotion_notification=False,
        )
        db.add(row)
        db.commit()
        db.refresh(row)
    return row


def get_credentials(db: Session) -> LineCredentials:
    now = time.monotonic()
    cached = _credentials_cache["value"]
    if cached is not None and now < _credentials_cache["expires_at"]:
        return cached
    row = db.query(LineOaSetting).order_by(LineOaSetting.id).first()
    if row is None:
        credentials = LineCredentials(channel_id="", channel_secret="", access_token="")
    else:
        credentials = LineCredentials(
            channel_id=row.channel_id or "",
            channel_secret=row.channel_secret or "",
            access_token=row.access_token or "",
        )
    _credentials_cache["value"] = credentials
    _credentials_cache["expires_at"] = now + settings.line_settings_cache_seconds
    return credentials


def build_client(access_token: str) -> LineMessagingClient:
    return LineMessagingClient(access_token)


def messaging_client(db: Session) -> LineMessagingClient:
    return build_client(get_credentials(db).access_token)


def update_line_settings(db: Session, changes: dict[str, Any]) -> LineOaSetting:
    row = get_line_settings(db)
    for key in UPDATABLE_SETTINGS:
        if key in changes and changes[key] is not None:
            setattr(row, key, changes[key])
    row.updated_at = utcnow()
    db.commit()
    db.refresh(row)
    invalidate_settings_cache()
    logger.info("LINE settings updated")
    return row


def check_connection(db: Session) -> bool:
    row = get_line_settings(db)
    connected = False
    if row.channel_id and row.access_token:
        connected = messaging_client(db).get_bot_info() is not None
    row.is_connected = connected
    row.updated_at = utcnow()
    db.commit()
    logger.info("LINE connection test: %s", "connected" if connected else "failed")
    return connected


class _KeepMissing(dict):
    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def render_template(content: str, values: dict[str, Any]) -> str:
    """Fills ``{name}`` placeholders, leaving unknown ones untouched."""
    try:
        return string.Formatter().vformat(content, (), _KeepMissing(values))
    except (ValueError, IndexError):
        return content


def list_templates(db: Session) -> list[MessageTemplate]:
    return db.query(MessageTemplate).order_by(MessageTemplate.id).all()


def get_template(db: Session, template_id: int) -> MessageTemplate:
    template = db.get(MessageTemplate, template_id)
    if template is None:
        raise NotFoundError("template not found")
    return template


def active_template_by_type(db: Session, template_type: str) -> Optional[MessageTemplate]:
    return (
        db.query(MessageTemplate)
        .filter(MessageTemplate.type == template_type, MessageTemplate.is_active.is_(True))
        .order_by(MessageTemplate.id)
        .first()
    )


def update_template(db: Session, template_id: int, changes: dict[str, Any]) -> MessageTemplate:
    template = get_template(db, template_id)
    for key in ("name", "type", "content", "is_active"):
        if key in changes and changes[key] is not None:
            setattr(template, key, changes[key])
    db.commit()
    db.refresh(template)
    return template


def toggle_template(db: Session, template_id: int) -> MessageTemplate:
    template = get_template(db, template_id)
    template.is_active = not template.is_active
    db.commit()
    db.refresh(template)
    return template


def broadcast(db: Session, message: str, template_id: Optional[int] = None) -> BroadcastHistory:
    if template_id is not None:
        get_template(db, template_id)
    sent = messaging_client(db).broadcast_text(message)
    record = BroadcastHistory(
        template_id=template_id,
        message=message,
        status="sent" if sent else "failed",
        sent_at=utcnow(),
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    logger.info("Broadcast %s: %s", record.status, message[:50])
    return record


def broadcast_history(db: Session, limit: int = 50) -> list[BroadcastHistory]:
    return (
        db.query(BroadcastHistory)
        .order_by(BroadcastHistory.sent_at.desc(), BroadcastHistory.id.desc())
        .limit(limit)
        .all()
    )


def notify_admins(db: Session, text: str) -> int:
    """Pushes ``text`` to every approved, active LINE admin; returns successful pushes."""
    admins = (
        db.query(LineAdmin)
        .filter(LineAdmin.status == LINE_ADMIN_APPROVED, LineAdmin.is_active.is_(True))
        .all()
    )
    if not admins:
        return 0
    client = messaging_client(db)
    delivered = 0
    for admin in admins:
        if client.push_text(admin.line_user_id, text):
            delivered += 1
    logger.info("Notified %d/%d LINE admins", delivered, len(admins))
    return delivered
