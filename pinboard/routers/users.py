"""
User endpoints:
  POST /users                    — register a user profile
  GET  /users/{username}         — profile with recent pins and boards
  PUT  /users/{username}         — edit your own profile
  POST /users/{user_id}/follow   — toggle following another user
  GET  /users/{user_id}/following — ids the user follows
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from opentelemetry import trace
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from pinboard.database import get_db
from pinboard.dependencies import get_current_user, get_optional_user_id, get_social_store
from pinboard.models import Pin, User, counter_step
from pinboard.routers.boards import list_user_boards
from pinboard.routers.pins import build_pin_response
from pinboard.schemas import (
    FollowResponse,
    ProfileResponse,
    UserCreate,
    UserResponse,
    UserUpdate,
)
from pinboard.social.errors import InvalidOperation, PersistenceFailure
from pinboard.social.store import RelationKind, SocialToggleStore

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)

PROFILE_PIN_LIMIT = 50


async def _bump(db: AsyncSession, user_id: str, column, delta: int) -> None:
    await db.execute(
        update(User)
        .where(User.user_id == user_id)
        .values({column.key: counter_step(column, delta)})
        .execution_options(synchronize_session=False)
    )


@router.post("/", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(body: UserCreate, db: AsyncSession = Depends(get_db)):
    with tracer.start_as_current_span("create_user"):
        existing = await db.execute(
            select(User).where(User.username == body.username)
        )
        if existing.scalar_one_or_none():
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Username '{body.username}' already taken",
            )

        user = User(
            username=body.username,
            display_name=body.display_name,
            bio=body.bio,
            avatar_url=body.avatar_url,
            website=body.website,
        )
        db.add(user)
        await db.flush()  # get user_id before commit
        await db.refresh(user)

        logger.info("Created user %s (id=%s)", user.username, user.user_id)
        return user


@router.get("/{username}", response_model=ProfileResponse)
async def get_profile(
    username: str,
    actor_id: Optional[str] = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_db),
):
    row = await db.execute(select(User).where(User.username == username))
    user = row.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    pins = await db.execute(
        select(Pin)
        .where(Pin.user_id == user.user_id)
        .order_by(Pin.created_at.desc())
        .limit(PROFILE_PIN_LIMIT)
    )
    boards = await list_user_boards(
        db, user.user_id, include_private=(actor_id == user.user_id)
    )
    return ProfileResponse(
        **UserResponse.model_validate(user).model_dump(),
        pins=[build_pin_response(p, author=user) for p in pins.scalars().all()],
        boards=boards,
    )


@router.put("/{username}", response_model=UserResponse)
async def update_profile(
    username: str,
    body: UserUpdate,
    actor: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Edit display name, bio, website or avatar. Only the owner may do this."""
    row = await db.execute(select(User).where(User.username == username))
    user = row.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if user.user_id != actor.user_id:
        raise HTTPException(status_code=403, detail="Cannot edit another user's profile")

    changes = body.model_dump(exclude_unset=True)
    if "bio" in changes and changes["bio"] is None:
        changes["bio"] = ""
    for field, value in changes.items():
        setattr(user, field, value)
    await db.flush()

    logger.info("Updated profile %s: %s", username, sorted(changes))
    return user


@router.post("/{user_id}/follow", response_model=FollowResponse)
async def toggle_follow(
    user_id: str,
    actor: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    store: SocialToggleStore = Depends(get_social_store),
):
    """
    Follow or unfollow `user_id`.

    Following yourself is rejected with 400. Follower / following counters
    on both users track the new state.
    """
    with tracer.start_as_current_span("toggle_follow") as span:
        target = await db.get(User, user_id)
        if not target:
            raise HTTPException(status_code=404, detail="User not found")

        try:
            is_following = await store.toggle(actor.user_id, RelationKind.FOLLOW, user_id)
        except InvalidOperation as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        except PersistenceFailure as exc:
            raise HTTPException(status_code=503, detail=str(exc))

        delta = 1 if is_following else -1
        await _bump(db, actor.user_id, User.following_count, delta)
        await _bump(db, user_id, User.follower_count, delta)
        await db.refresh(target, ["follower_count"])

        span.set_attribute("follow.is_following", is_following)
        return FollowResponse(
            user_id=user_id,
            is_following=is_following,
            follower_count=target.follower_count,
        )


@router.get("/{user_id}/following")
async def list_following(
    user_id: str,
    store: SocialToggleStore = Depends(get_social_store),
):
    try:
        following = await store.members(user_id, RelationKind.FOLLOW)
    except PersistenceFailure as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    return {"user_id": user_id, "following": sorted(following)}
