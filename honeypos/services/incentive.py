from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from honeypos.constants import DEFAULT_INCENTIVE_TARGET
from honeypos.errors import BusinessRuleError
from honeypos.models import DailySettlement, IncentiveSetting
from honeypos.utils import utcnow


def get_incentive_settings(db: Session) -> IncentiveSetting:
    row = db.query(IncentiveSetting).order_by(IncentiveSetting.id).first()
    if row is None:
        row = IncentiveSetting(is_enabled=True, daily_target=DEFAULT_INCENTIVE_TARGET, updated_at=utcnow())
        db.add(row)
        db.flush()
    return row


def update_incentive_settings(
    db: Session, is_enabled: Optional[bool] = None, daily_target: Optional[int] = None
) -> IncentiveSetting:
    if daily_target is not None and daily_target < 1:
        raise BusinessRuleError("daily target must be at least 1")
    row = get_incentive_settings(db)
    if is_enabled is not None:
        row.is_enabled = is_enabled
    if daily_target is not None:
        row.daily_target = daily_target
    row.updated_at = utcnow()
    db.commit()
    db.refresh(row)
    return row


def incentive_history(db: Session, limit: int = 30) -> list[DailySettlement]:
    return (
        db.query(DailySettlement)
        .order_by(DailySettlement.business_date.desc(), DailySettlement.id.desc())
        .limit(limit)
        .all()
    )
