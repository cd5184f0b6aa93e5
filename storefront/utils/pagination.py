# storefront/utils/pagination.py
from typing import Tuple
from sqlalchemy import asc, desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import DEFAULT_PAGE, DEFAULT_LIMIT, MAX_LIMIT


def clamp_page(page: int | None, limit: int | None) -> Tuple[int, int]:
    page = max(page or DEFAULT_PAGE, 1)
    limit = min(max(limit or DEFAULT_LIMIT, 1), MAX_LIMIT)
    return page, limit


def sort_clause(model, sort_by: str | None, order: str | None, allowed: set, default: str = "created_at"):
    """Unknown sort fields fall back to ``default``; order is asc/desc."""
    if sort_by not in allowed:
        sort_by = default
    column = getattr(model, sort_by)
    return asc(column) if (order or "desc").lower() == "asc" else desc(column)


async def paginate(db: AsyncSession, stmt, page: int, limit: int):
    """
    Run ``stmt`` with offset/limit and return ``(total, rows)``.
    ``stmt`` must be a plain ``select(Model)`` with filters and ordering applied.
    """
    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total = (await db.execute(count_stmt)).scalar() or 0
    result = await db.execute(stmt.offset((page - 1) * limit).limit(limit))
    return total, result.scalars().all()
