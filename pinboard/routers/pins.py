"""
Pin endpoints:
  GET  /pins                — paginated feed (newest first, optional tag/author scope)
  POST /pins                — create a pin
  GET  /pins/{id}           — pin detail + related pins
  GET  /pins/{id}/related   — ranked related pins
  POST /pins/{id}/like      — toggle like
  POST /pins/{id}/save      — toggle save
"""
import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from opentelemetry import trace
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from pinboard.config import settings
from pinboard.database import get_db
from pinboard.dependencies import get_current_user, get_optional_user_id, get_social_store
from pinboard.models import Board, BoardPin, Pin, PinTag, User, counter_step
from pinboard.pagination import page_window
from pinboard.ranking.relevance import rank_with_scores
from pinboard.schemas import (
    LikeToggleResponse,
    PinCreate,
    PinDetailResponse,
    PinResponse,
    SaveToggleResponse,
)
from pinboard.social.errors import PersistenceFailure
from pinboard.social.store import RelationKind, SocialToggleStore
from pinboard.telemetry import PIN_INGESTION_TOTAL, RELATED_LATENCY, RELATED_RETURNED

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


def build_pin_response(
    pin: Pin,
    author: Optional[User] = None,
    relevance_score: Optional[float] = None,
) -> PinResponse:
    author = author or pin.author
    return PinResponse(
        pin_id=pin.pin_id,
        user_id=pin.user_id,
        username=author.username if author else None,
        display_name=author.display_name if author else None,
        avatar_url=author.avatar_url if author else None,
        title=pin.title,
        description=pin.description or "",
        image_url=pin.image_url,
        image_width=pin.image_width,
        image_height=pin.image_height,
        link=pin.link,
        tags=list(pin.tags or []),
        like_count=pin.like_count,
        save_count=pin.save_count,
        created_at=pin.created_at,
        relevance_score=round(relevance_score, 4) if relevance_score is not None else None,
    )


def tag_clause(tag: str):
    """Match pins carrying `tag` exactly."""
    return Pin.pin_id.in_(select(PinTag.pin_id).where(PinTag.tag == tag))


async def _get_pin_or_404(db: AsyncSession, pin_id: str) -> Pin:
    pin = await db.get(Pin, pin_id)
    if not pin:
        raise HTTPException(status_code=404, detail="Pin not found")
    return pin


async def _related_pins(db: AsyncSession, pin: Pin, limit: int) -> list[PinResponse]:
    """Rank the newest `related_candidate_pool` pins against `pin`."""
    with tracer.start_as_current_span("related_pins") as span:
        t0 = time.perf_counter()

        rows = await db.execute(
            select(Pin)
            .where(Pin.pin_id != pin.pin_id)
            .order_by(Pin.created_at.desc())
            .limit(settings.related_candidate_pool)
        )
        candidates = rows.scalars().all()
        ranked = rank_with_scores(pin, candidates, limit)

        RELATED_LATENCY.observe(time.perf_counter() - t0)
        RELATED_RETURNED.observe(len(ranked))
        span.set_attribute("pin.id", pin.pin_id)
        span.set_attribute("related.candidates", len(candidates))
        span.set_attribute("related.returned", len(ranked))

    return [build_pin_response(p, relevance_score=s) for p, s in ranked]


async def _adjust_counter(db: AsyncSession, pin: Pin, column, delta: int) -> None:
    """Atomic +1 / -1 on a pin counter; never drops below zero."""
    await db.execute(
        update(Pin)
        .where(Pin.pin_id == pin.pin_id)
        .values({column.key: counter_step(column, delta)})
        .execution_options(synchronize_session=False)
    )
    await db.refresh(pin, [column.key])


@router.get("/", response_model=list[PinResponse])
async def list_pins(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.feed_page_size, ge=1),
    tag: Optional[str] = Query(None, description="Only pins carrying this tag"),
    author: Optional[str] = Query(None, description="Only pins by this user_id"),
    db: AsyncSession = Depends(get_db),
):
    offset, limit = page_window(page, limit)
    query = select(Pin)
    if tag:
        query = query.where(tag_clause(tag.strip()))
    if author:
        query = query.where(Pin.user_id == author)
    rows = await db.execute(
        query.order_by(Pin.created_at.desc()).offset(offset).limit(limit)
    )
    return [build_pin_response(p) for p in rows.scalars().all()]


@router.post("/", response_model=PinResponse, status_code=status.HTTP_201_CREATED)
async def create_pin(
    body: PinCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Create a pin authored by the acting user.

    If `board_id` is given the pin is also added to that board, which must
    belong to the same user.
    """
    with tracer.start_as_current_span("create_pin") as span:
        board = None
        if body.board_id:
            board = await db.get(Board, body.board_id)
            if not board or board.user_id != user.user_id:
                raise HTTPException(status_code=404, detail="Board not found")

        pin = Pin(
            user_id=user.user_id,
            title=body.title,
            description=body.description,
            image_url=body.image_url,
            image_width=body.image_width,
            image_height=body.image_height,
            link=body.link,
            tags=body.tags,
        )
        db.add(pin)
        await db.flush()        # materialise pin_id
        await db.refresh(pin)   # load server-generated fields (created_at)

        db.add_all([PinTag(pin_id=pin.pin_id, tag=t) for t in body.tags])
        if board is not None:
            db.add(BoardPin(board_id=board.board_id, pin_id=pin.pin_id))

        span.set_attribute("pin.id", pin.pin_id)
        span.set_attribute("pin.user_id", pin.user_id)

        PIN_INGESTION_TOTAL.inc()
        logger.info("Pin created: %s by user %s", pin.pin_id, pin.user_id)
        return build_pin_response(pin, author=user)


@router.get("/{pin_id}", response_model=PinDetailResponse)
async def get_pin(
    pin_id: str,
    actor_id: Optional[str] = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_db),
    store: SocialToggleStore = Depends(get_social_store),
):
    pin = await _get_pin_or_404(db, pin_id)
    related = await _related_pins(db, pin, settings.related_limit)

    is_liked = is_saved = False
    if actor_id:
        try:
            is_liked = await store.is_member(actor_id, RelationKind.LIKE, pin_id)
            is_saved = await store.is_member(actor_id, RelationKind.SAVE, pin_id)
        except PersistenceFailure as exc:
            raise HTTPException(status_code=503, detail=str(exc))

    return PinDetailResponse(
        **build_pin_response(pin).model_dump(),
        is_liked=is_liked,
        is_saved=is_saved,
        related=related,
    )


@router.get("/{pin_id}/related", response_model=list[PinResponse])
async def get_related_pins(
    pin_id: str,
    limit: int = Query(settings.related_limit, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """Pins most related to `pin_id`; an empty list means nothing is related."""
    pin = await _get_pin_or_404(db, pin_id)
    return await _related_pins(db, pin, limit)


@router.post("/{pin_id}/like", response_model=LikeToggleResponse)
async def toggle_like(
    pin_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    store: SocialToggleStore = Depends(get_social_store),
):
    """Like or unlike a pin. The pin's like_count follows the new state."""
    pin = await _get_pin_or_404(db, pin_id)
    try:
        is_liked = await store.toggle(user.user_id, RelationKind.LIKE, pin_id)
    except PersistenceFailure as exc:
        raise HTTPException(status_code=503, detail=str(exc))

    await _adjust_counter(db, pin, Pin.like_count, 1 if is_liked else -1)
    return LikeToggleResponse(pin_id=pin_id, is_liked=is_liked, likes_count=pin.like_count)


@router.post("/{pin_id}/save", response_model=SaveToggleResponse)
async def toggle_save(
    pin_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    store: SocialToggleStore = Depends(get_social_store),
):
    pin = await _get_pin_or_404(db, pin_id)
    try:
        is_saved = await store.toggle(user.user_id, RelationKind.SAVE, pin_id)
    except PersistenceFailure as exc:
        raise HTTPException(status_code=503, detail=str(exc))

    await _adjust_counter(db, pin, Pin.save_count, 1 if is_saved else -1)
    return SaveToggleResponse(pin_id=pin_id, is_saved=is_saved, saves_count=pin.save_count)
