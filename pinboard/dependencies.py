"""
Request-scoped FastAPI dependencies.

  get_current_user  — resolves the acting user from the X-User-Id header.
                      Authentication itself happens upstream (identity
                      provider / gateway); we only trust the forwarded id.
  get_social_store  — the process-wide SocialToggleStore built at startup.
"""
import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from pinboard.clients.redis_client import get_redis
from pinboard.config import settings
from pinboard.database import get_db
from pinboard.models import User
from pinboard.social.backends import InMemoryMembershipBackend, RedisMembershipBackend
from pinboard.social.store import SocialToggleStore

logger = logging.getLogger(__name__)

_social_store: Optional[SocialToggleStore] = None


def init_social_store() -> SocialToggleStore:
    """Build the store for the configured backend (call after init_redis)."""
    global _social_store
    if settings.social_backend == "redis":
        backend = RedisMembershipBackend(get_redis(), ttl=settings.social_key_ttl)
    elif settings.social_backend == "memory":
        backend = InMemoryMembershipBackend()
    else:
        raise ValueError(f"Unknown social_backend: {settings.social_backend!r}")
    _social_store = SocialToggleStore(backend)
    logger.info("Social toggle store ready (backend=%s)", settings.social_backend)
    return _social_store


def get_social_store() -> SocialToggleStore:
    if _social_store is None:
        raise RuntimeError("Social store not initialised — call init_social_store() at startup")
    return _social_store


async def get_current_user(
    x_user_id: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> User:
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )
    user = await db.get(User, x_user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


async def get_optional_user_id(x_user_id: Optional[str] = Header(None)) -> Optional[str]:
    """Actor id when present; anonymous requests get None."""
    return x_user_id or None
