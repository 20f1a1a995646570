"""
Persistence backends for relation membership sets.

Each (actor, kind) pair owns one blob: a JSON list of target ids, read and
written wholesale. A toggle is one read-modify-write of that blob:
Redis runs it as an optimistic WATCH / MULTI transaction so that API workers
sharing the key cannot overwrite each other's flips.

  RedisMembershipBackend    — STRING (JSON) keyed by social:{kind}:{actor_id}
                              Server-authoritative; shared by all API workers.
  InMemoryMembershipBackend — dict-backed scope for a single process
                              (local development and tests).

Backends raise PersistenceFailure for every I/O or decode problem so the
store never has to know which client library is underneath.
"""
import json
import logging
from typing import Optional, Protocol

import redis.asyncio as aioredis
from redis.exceptions import RedisError, WatchError

from pinboard.social.errors import PersistenceFailure

logger = logging.getLogger(__name__)

KEY_TEMPLATE = "social:{kind}:{actor_id}"

# Optimistic transaction attempts before a contended toggle gives up
MAX_WATCH_RETRIES = 10


def membership_key(actor_id: str, kind: str) -> str:
    return KEY_TEMPLATE.format(kind=kind, actor_id=actor_id)


def _decode(key: str, raw) -> set[str]:
    if raw is None:
        return set()
    try:
        members = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise PersistenceFailure(f"Corrupt membership blob at {key}") from exc
    if not isinstance(members, list):
        raise PersistenceFailure(f"Corrupt membership blob at {key}")
    return {str(m) for m in members}


def _encode(members: set[str]) -> str:
    # Sorted so identical sets always serialise to identical blobs
    return json.dumps(sorted(members))


def _flip(members: set[str], target_id: str) -> bool:
    """Flip `target_id` in place; return whether it is now a member."""
    if target_id in members:
        members.discard(target_id)
        return False
    members.add(target_id)
    return True


class MembershipBackend(Protocol):
    async def load(self, actor_id: str, kind: str) -> set[str]: ...

    async def save(self, actor_id: str, kind: str, members: set[str]) -> None: ...

    async def flip(self, actor_id: str, kind: str, target_id: str) -> bool: ...

    async def delete(self, actor_id: str, kind: str) -> None: ...


class RedisMembershipBackend:
    def __init__(self, redis: aioredis.Redis, ttl: int = 0) -> None:
        self._redis = redis
        self._ttl = ttl

    async def load(self, actor_id: str, kind: str) -> set[str]:
        key = membership_key(actor_id, kind)
        try:
            raw = await self._redis.get(key)
        except RedisError as exc:
            logger.error("Redis read failed for %s: %s", key, exc)
            raise PersistenceFailure(f"Could not read {key}") from exc
        return _decode(key, raw)

    async def save(self, actor_id: str, kind: str, members: set[str]) -> None:
        key = membership_key(actor_id, kind)
        try:
            await self._redis.set(key, _encode(members), ex=self._ttl or None)
        except RedisError as exc:
            logger.error("Redis write failed for %s: %s", key, exc)
            raise PersistenceFailure(f"Could not write {key}") from exc

    async def flip(self, actor_id: str, kind: str, target_id: str) -> bool:
        """
        Toggle one target inside a WATCH / MULTI transaction.

        A write to the key by another worker between the read and the
        EXEC aborts the transaction with WatchError; the read-modify-write
        is then retried on a fresh read.
        """
        key = membership_key(actor_id, kind)
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                for attempt in range(1, MAX_WATCH_RETRIES + 1):
                    try:
                        await pipe.watch(key)
                        members = _decode(key, await pipe.get(key))
                        now_member = _flip(members, target_id)
                        pipe.multi()
                        pipe.set(key, _encode(members), ex=self._ttl or None)
                        await pipe.execute()
                        return now_member
                    except WatchError:
                        logger.debug("%s changed mid-toggle, retry %d", key, attempt)
        except RedisError as exc:
            logger.error("Redis toggle failed for %s: %s", key, exc)
            raise PersistenceFailure(f"Could not update {key}") from exc

        logger.error("Gave up toggling %s after %d conflicts", key, MAX_WATCH_RETRIES)
        raise PersistenceFailure(f"Could not update {key}: too much contention")

    async def delete(self, actor_id: str, kind: str) -> None:
        key = membership_key(actor_id, kind)
        try:
            await self._redis.delete(key)
        except RedisError as exc:
            logger.error("Redis delete failed for %s: %s", key, exc)
            raise PersistenceFailure(f"Could not delete {key}") from exc


class InMemoryMembershipBackend:
    """
    Blob store held in a plain dict.

    Pass the same `scope` dict to several backends to model several stores
    reading one persisted scope.
    """

    def __init__(self, scope: Optional[dict[str, str]] = None) -> None:
        self.scope: dict[str, str] = {} if scope is None else scope

    async def load(self, actor_id: str, kind: str) -> set[str]:
        key = membership_key(actor_id, kind)
        return _decode(key, self.scope.get(key))

    async def save(self, actor_id: str, kind: str, members: set[str]) -> None:
        self.scope[membership_key(actor_id, kind)] = _encode(members)

    async def flip(self, actor_id: str, kind: str, target_id: str) -> bool:
        # Single process: the store's lock already serialises this
        members = await self.load(actor_id, kind)
        now_member = _flip(members, target_id)
        await self.save(actor_id, kind, members)
        return now_member

    async def delete(self, actor_id: str, kind: str) -> None:
        self.scope.pop(membership_key(actor_id, kind), None)
