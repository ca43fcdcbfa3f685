from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from honeypos.deps import get_db, meta
from honeypos.errors import AuthenticationError
from honeypos.models import AdminUser
from honeypos.security import require_admin
from honeypos.serializers import broadcast_dict, line_admin_dict, line_settings_dict, template_dict
from honeypos.services import line_admins, line_oa

logger = logging.getLogger(__name__)

webhook_router = APIRouter(tags=["LINE"])
router = APIRouter(prefix="/api/admin/line", tags=["LINE"], dependencies=[Depends(require_admin)])


class LineSettingsUpdate(BaseModel):
    channel_id: Optional[str] = None
    channel_secret: Optional[str] = None
    access_token: Optional[str] = None
    auto_reply: Optional[bool] = None
    order_notification: Optional[bool] = None
    promotion_notification: Optional[bool] = None


class TemplateUpdate(BaseModel):
    name: Optional[str] = None
    type: Optional[str] = None
    content: Optional[str] = None
    is_active: Optional[bool] = None


class BroadcastIn(BaseModel):
    model_config = {"json_schema_extra": {"example": {"message": "本週新品上市！", "template_id": 3}}}
    message: str = Field(min_length=1)
    template_id: Optional[int] = None


@webhook_router.post("/api/line/webhook")
async def line_webhook(request: Request, db: Session = Depends(get_db)) -> dict:
    body = await request.body()
    signature = request.headers.get("X-Line-Signature")
    try:
        handled = await run_in_threadpool(line_admins.handle_webhook, db, body, signature)
    except AuthenticationError:
        raise
    except Exception:
        # LINE expects a 200 for every delivery that passed the signature check
        logger.exception("LINE webhook processing failed")
        db.rollback()
        handled = 0
    return {"data": {"handled": handled}, "meta": meta()}


@router.get("/settings")
def get_settings(db: Session = Depends(get_db)) -> dict:
    return {"data": line_settings_dict(line_oa.get_line_settings(db)), "meta": meta()}


@router.put("/settings")
def update_settings(payload: LineSettingsUpdate, db: Session = Depends(get_db)) -> dict:
    row = line_oa.update_line_settings(db, payload.model_dump(exclude_unset=True))
    return {"data": line_settings_dict(row), "meta": meta()}


@router.post("/settings/test-connection")
def test_connection(db: Session = Depends(get_db)) -> dict:
    return {"data": {"connected": line_oa.check_connection(db)}, "meta": meta()}


@router.get("/templates")
def list_templates(db: Session = Depends(get_db)) -> dict:
    return {"data": [template_dict(t) for t in line_oa.list_templates(db)], "meta": meta()}


@router.put("/templates/{template_id}")
def update_template(template_id: int, payload: TemplateUpdate, db: Session = Depends(get_db)) -> dict:
    template = line_oa.update_template(db, template_id, payload.model_dump(exclude_unset=True))
    return {"data": template_dict(template), "meta": meta()}


@router.patch("/templates/{template_id}/toggle")
def toggle_template(template_id: int, db: Session = Depends(get_db)) -> dict:
    return {"data": template_dict(line_oa.toggle_template(db, template_id)), "meta": meta()}


@router.post("/broadcast")
def broadcast(payload: BroadcastIn, db: Session = Depends(get_db)) -> dict:
    record = line_oa.broadcast(db, payload.message, payload.template_id)
    warnings = [] if record.status == "sent" else ["broadcast_failed"]
    return {"data": broadcast_dict(record), "meta": meta(warnings=warnings)}


@router.get("/broadcast/history")
def broadcast_history(db: Session = Depends(get_db)) -> dict:
    return {"data": [broadcast_dict(r) for r in line_oa.broadcast_history(db)], "meta": meta()}


@router.get("/admins")
def list_admins(status: Optional[str] = Query(default=None), db: Session = Depends(get_db)) -> dict:
    return {"data": [line_admin_dict(a) for a in line_admins.list_line_admins(db, status)], "meta": meta()}


@router.get("/admins/{admin_id}")
def get_admin(admin_id: int, db: Session = Depends(get_db)) -> dict:
    return {"data": line_admin_dict(line_admins.get_line_admin(db, admin_id)), "meta": meta()}


@router.post("/admins/{admin_id}/approve")
def approve_admin(
    admin_id: int, db: Session = Depends(get_db), user: AdminUser = Depends(require_admin)
) -> dict:
    return {"data": line_admin_dict(line_admins.approve_line_admin(db, admin_id, user)), "meta": meta()}


@router.post("/admins/{admin_id}/reject")
def reject_admin(
    admin_id: int, db: Session = Depends(get_db), user: AdminUser = Depends(require_admin)
) -> dict:
    return {"data": line_admin_dict(line_admins.reject_line_admin(db, admin_id, user)), "meta": meta()}


@router.delete("/admins/{admin_id}")
def remove_admin(admin_id: int, db: Session = Depends(get_db)) -> dict:
    line_admins.remove_line_admin(db, admin_id)
    return {"data": {"removed": True, "id": admin_id}, "meta": meta()}
