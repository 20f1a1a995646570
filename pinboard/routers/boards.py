"""
Board endpoints:
  GET  /boards              — the acting user's boards
  POST /boards              — create a board
  GET  /boards/{id}         — board with its pins (private boards: owner only)
  POST /boards/{id}/pins    — add a pin to an owned board
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from opentelemetry import trace
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pinboard.database import get_db
from pinboard.dependencies import get_current_user, get_optional_user_id
from pinboard.models import Board, BoardPin, Pin, User
from pinboard.routers.pins import build_pin_response
from pinboard.schemas import BoardCreate, BoardDetailResponse, BoardPinAdd, BoardResponse

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


def build_board_response(board: Board, pin_count: int = 0) -> BoardResponse:
    return BoardResponse(
        board_id=board.board_id,
        user_id=board.user_id,
        name=board.name,
        description=board.description or "",
        is_private=board.is_private,
        cover_image=board.cover_image,
        pin_count=pin_count,
        created_at=board.created_at,
    )


async def board_pin_counts(db: AsyncSession, board_ids: list[str]) -> dict[str, int]:
    if not board_ids:
        return {}
    rows = await db.execute(
        select(BoardPin.board_id, func.count(BoardPin.pin_id))
        .where(BoardPin.board_id.in_(board_ids))
        .group_by(BoardPin.board_id)
    )
    return {board_id: count for board_id, count in rows.all()}


async def list_user_boards(
    db: AsyncSession, user_id: str, include_private: bool
) -> list[BoardResponse]:
    query = select(Board).where(Board.user_id == user_id)
    if not include_private:
        query = query.where(Board.is_private.is_(False))
    rows = await db.execute(query.order_by(Board.created_at.desc()))
    boards = rows.scalars().all()
    counts = await board_pin_counts(db, [b.board_id for b in boards])
    return [build_board_response(b, counts.get(b.board_id, 0)) for b in boards]


@router.get("/", response_model=list[BoardResponse])
async def list_boards(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await list_user_boards(db, user.user_id, include_private=True)


@router.post("/", response_model=BoardResponse, status_code=status.HTTP_201_CREATED)
async def create_board(
    body: BoardCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    with tracer.start_as_current_span("create_board"):
        board = Board(
            user_id=user.user_id,
            name=body.name,
            description=body.description,
            is_private=body.is_private,
            cover_image=body.cover_image or None,
        )
        db.add(board)
        await db.flush()
        await db.refresh(board)

        logger.info("Board created: %s by user %s", board.board_id, user.user_id)
        return build_board_response(board)


@router.get("/{board_id}", response_model=BoardDetailResponse)
async def get_board(
    board_id: str,
    actor_id: Optional[str] = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_db),
):
    board = await db.get(Board, board_id)
    # Private boards are invisible to everyone but the owner
    if not board or (board.is_private and board.user_id != actor_id):
        raise HTTPException(status_code=404, detail="Board not found")

    rows = await db.execute(
        select(Pin)
        .join(BoardPin, BoardPin.pin_id == Pin.pin_id)
        .where(BoardPin.board_id == board_id)
        .order_by(BoardPin.created_at.desc())
    )
    pins = [build_pin_response(p) for p in rows.scalars().all()]
    return BoardDetailResponse(
        **build_board_response(board, len(pins)).model_dump(),
        pins=pins,
    )


@router.post("/{board_id}/pins", status_code=status.HTTP_204_NO_CONTENT)
async def add_pin_to_board(
    board_id: str,
    body: BoardPinAdd,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Add a pin to one of the acting user's boards — idempotent."""
    board = await db.get(Board, board_id)
    if not board or board.user_id != user.user_id:
        raise HTTPException(status_code=404, detail="Board not found")
    if not await db.get(Pin, body.pin_id):
        raise HTTPException(status_code=404, detail="Pin not found")

    existing = await db.get(BoardPin, (board_id, body.pin_id))
    if existing:
        return  # already on the board

    db.add(BoardPin(board_id=board_id, pin_id=body.pin_id))
    logger.info("Pin %s added to board %s", body.pin_id, board_id)
