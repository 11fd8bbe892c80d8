from __future__ import annotations

import math
from typing import Callable

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from siteops.core.config import get_settings


def clamp_limit(limit: int | None) -> int:
    settings = get_settings()
    if not limit or limit < 1:
        return settings.default_page_size
    return min(limit, settings.max_page_size)


def paginate(
    session: Session,
    stmt: Select,
    page: int,
    limit: int | None,
    serialize: Callable = lambda row: row,
) -> tuple[list, dict]:
    limit = clamp_limit(limit)
    page = max(page, 1)
    total = int(session.scalar(select(func.count()).select_from(stmt.order_by(None).subquery())) or 0)
    rows = list(session.scalars(stmt.limit(limit).offset((page - 1) * limit)).all())
    total_pages = math.ceil(total / limit) if total else 0
    return [serialize(row) for row in rows], {
        "current_page": page,
        "total_pages": total_pages,
        "total": total,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }
