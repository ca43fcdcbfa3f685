from __future__ import annotations

from typing import Any, Iterator, Optional
from uuid import uuid4

from sqlalchemy.orm import Query, Session

from honeypos.db import SessionLocal


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def meta(request_id: Optional[str] = None, warnings: Optional[list[str]] = None) -> dict:
    return {
        "request_id": request_id or f"req_{uuid4().hex}",
        "warnings": warnings or [],
    }


def paginate(query: Query, page: int, page_size: int) -> tuple[list[Any], int]:
    total = query.order_by(None).count()
    rows = query.offset((page - 1) * page_size).limit(page_size).all()
    return rows, total


def list_meta(page: int, page_size: int, total: int, warnings: Optional[list[str]] = None) -> dict:
    result = meta(warnings=warnings)
    result["page"] = {"page": page, "page_size": page_size, "total": total}
    return result
