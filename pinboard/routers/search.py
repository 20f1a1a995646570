"""
Search endpoint — GET /search?q=<text>&type=pins|users|all

Case-insensitive substring match:
  pins  — title, description or any tag
  users — username or display name
"""
import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from pinboard.config import settings
from pinboard.database import get_db
from pinboard.models import Pin, PinTag, User
from pinboard.pagination import page_window
from pinboard.routers.pins import build_pin_response
from pinboard.schemas import SearchResponse, UserResponse

logger = logging.getLogger(__name__)
router = APIRouter()


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@router.get("/", response_model=SearchResponse)
async def search(
    q: str = Query("", description="Search text"),
    kind: str = Query("pins", alias="type", pattern="^(pins|users|all)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.feed_page_size, ge=1),
    db: AsyncSession = Depends(get_db),
):
    query_text = q.strip()
    if not query_text:
        return SearchResponse()

    offset, limit = page_window(page, limit)
    pattern = f"%{_escape_like(query_text.lower())}%"
    result = SearchResponse()

    if kind in ("pins", "all"):
        condition = or_(
            func.lower(Pin.title).like(pattern, escape="\\"),
            func.lower(Pin.description).like(pattern, escape="\\"),
            Pin.pin_id.in_(
                select(PinTag.pin_id).where(
                    func.lower(PinTag.tag).like(pattern, escape="\\")
                )
            ),
        )
        rows = await db.execute(
            select(Pin)
            .where(condition)
            .order_by(Pin.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        result.pins = [build_pin_response(p) for p in rows.scalars().all()]
        result.total_pins = await db.scalar(
            select(func.count()).select_from(Pin).where(condition)
        )

    if kind in ("users", "all"):
        condition = or_(
            func.lower(User.username).like(pattern, escape="\\"),
            func.lower(User.display_name).like(pattern, escape="\\"),
        )
        rows = await db.execute(
            select(User)
            .where(condition)
            .order_by(User.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        result.users = [UserResponse.model_validate(u) for u in rows.scalars().all()]
        result.total_users = await db.scalar(
            select(func.count()).select_from(User).where(condition)
        )

    logger.debug(
        "search q=%r type=%s → %d pins, %d users",
        query_text, kind, result.total_pins, result.total_users,
    )
    return result
