"""
Social toggle store — likes, saves and follows.

Every (actor, kind, target) triple is a two-state machine:

    ABSENT ──toggle──▶ PRESENT ──toggle──▶ ABSENT ...

toggle() returns the state it leaves the triple in. Each call is a
read-modify-write of the actor's whole set for that kind, done by the
backend's flip():

  1. acquire the (actor, kind) lock
  2. load the current set from the backend
  3. flip the single target
  4. write the set back (write-through) and only then report the new state

If the read or the write fails the PersistenceFailure propagates and nothing
has been flipped. Sets are never cached between calls, so a fresh store over
the same backend scope always sees the last confirmed write.

The per-key lock linearises toggles inside one process. Across API workers
sharing one Redis, the backend's WATCH / MULTI transaction does the same.
"""
import asyncio
import enum
import logging
import weakref
from typing import Optional, Union

from opentelemetry import trace

from pinboard.social.backends import MembershipBackend
from pinboard.social.errors import InvalidOperation, PersistenceFailure
from pinboard.telemetry import SOCIAL_PERSISTENCE_FAILURES_TOTAL, SOCIAL_TOGGLES_TOTAL

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class RelationKind(str, enum.Enum):
    LIKE = "like"
    SAVE = "save"
    FOLLOW = "follow"


KindLike = Union[RelationKind, str]


def _coerce_kind(kind: KindLike) -> RelationKind:
    try:
        return RelationKind(kind)
    except ValueError:
        raise InvalidOperation(f"Unknown relation kind: {kind!r}") from None


class SocialToggleStore:
    def __init__(self, backend: MembershipBackend) -> None:
        self._backend = backend
        self._locks: "weakref.WeakValueDictionary[tuple[str, str], asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, actor_id: str, kind: RelationKind) -> asyncio.Lock:
        key = (actor_id, kind.value)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    async def _load(self, actor_id: str, kind: RelationKind) -> set[str]:
        try:
            return await self._backend.load(actor_id, kind.value)
        except PersistenceFailure:
            SOCIAL_PERSISTENCE_FAILURES_TOTAL.labels(kind=kind.value).inc()
            raise

    async def is_member(self, actor_id: str, kind: KindLike, target_id: str) -> bool:
        """Pure lookup; unknown actors and targets are simply not members."""
        kind = _coerce_kind(kind)
        return target_id in await self._load(actor_id, kind)

    async def members(self, actor_id: str, kind: KindLike) -> frozenset[str]:
        kind = _coerce_kind(kind)
        return frozenset(await self._load(actor_id, kind))

    async def toggle(self, actor_id: str, kind: KindLike, target_id: str) -> bool:
        """
        Flip `target_id` in the actor's `kind` set and return the new state.

        Raises InvalidOperation for a self-follow and PersistenceFailure if
        the set could not be read or written.
        """
        kind = _coerce_kind(kind)
        if kind is RelationKind.FOLLOW and actor_id == target_id:
            SOCIAL_TOGGLES_TOTAL.labels(kind=kind.value, result="rejected").inc()
            raise InvalidOperation("Cannot follow yourself")

        with tracer.start_as_current_span("social_toggle") as span:
            span.set_attribute("social.kind", kind.value)
            span.set_attribute("social.actor_id", actor_id)
            span.set_attribute("social.target_id", target_id)

            async with self._lock_for(actor_id, kind):
                try:
                    now_member = await self._backend.flip(actor_id, kind.value, target_id)
                except PersistenceFailure:
                    SOCIAL_PERSISTENCE_FAILURES_TOTAL.labels(kind=kind.value).inc()
                    SOCIAL_TOGGLES_TOTAL.labels(kind=kind.value, result="failed").inc()
                    raise

            result = "added" if now_member else "removed"
            SOCIAL_TOGGLES_TOTAL.labels(kind=kind.value, result=result).inc()
            span.set_attribute("social.is_member", now_member)
            logger.info("%s %s %s → %s", actor_id, kind.value, target_id, result)
            return now_member

    async def reset(self, actor_id: str, kind: Optional[KindLike] = None) -> None:
        """Clear one set, or all of the actor's sets when `kind` is None."""
        kinds = list(RelationKind) if kind is None else [_coerce_kind(kind)]
        for k in kinds:
            async with self._lock_for(actor_id, k):
                try:
                    await self._backend.delete(actor_id, k.value)
                except PersistenceFailure:
                    SOCIAL_PERSISTENCE_FAILURES_TOTAL.labels(kind=k.value).inc()
                    raise
            logger.info("Cleared %s set for %s", k.value, actor_id)
