"""Unit tests for membership set backends."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import WatchError

from pinboard.social.backends import (
    MAX_WATCH_RETRIES,
    InMemoryMembershipBackend,
    RedisMembershipBackend,
    membership_key,
)
from pinboard.social.errors import PersistenceFailure
from pinboard.social.store import SocialToggleStore


def test_membership_key_layout() -> None:
    assert membership_key("u-1", "like") == "social:like:u-1"


class TestRedisBackend:
    def test_load_missing_key_is_empty(self) -> None:
        redis = AsyncMock()
        redis.get.return_value = None
        backend = RedisMembershipBackend(redis)

        assert asyncio.run(backend.load("u1", "save")) == set()
        redis.get.assert_awaited_once_with("social:save:u1")

    def test_load_decodes_json_list(self) -> None:
        redis = AsyncMock()
        redis.get.return_value = '["b", "a"]'
        backend = RedisMembershipBackend(redis)

        assert asyncio.run(backend.load("u1", "like")) == {"a", "b"}

    def test_save_writes_sorted_blob(self) -> None:
        redis = AsyncMock()
        backend = RedisMembershipBackend(redis)

        asyncio.run(backend.save("u1", "follow", {"z", "m"}))
        redis.set.assert_awaited_once_with("social:follow:u1", json.dumps(["m", "z"]), ex=None)

    def test_save_applies_ttl(self) -> None:
        redis = AsyncMock()
        backend = RedisMembershipBackend(redis, ttl=3600)

        asyncio.run(backend.save("u1", "like", set()))
        assert redis.set.await_args.kwargs["ex"] == 3600

    def test_read_error_becomes_persistence_failure(self) -> None:
        redis = AsyncMock()
        redis.get.side_effect = RedisConnectionError("down")
        backend = RedisMembershipBackend(redis)

        with pytest.raises(PersistenceFailure):
            asyncio.run(backend.load("u1", "like"))

    def test_write_error_becomes_persistence_failure(self) -> None:
        redis = AsyncMock()
        redis.set.side_effect = RedisConnectionError("down")
        backend = RedisMembershipBackend(redis)

        with pytest.raises(PersistenceFailure):
            asyncio.run(backend.save("u1", "like", {"p"}))

    @pytest.mark.parametrize("raw", ["not json", '{"a": 1}', "42"])
    def test_corrupt_blob_is_rejected(self, raw: str) -> None:
        redis = AsyncMock()
        redis.get.return_value = raw
        backend = RedisMembershipBackend(redis)

        with pytest.raises(PersistenceFailure):
            asyncio.run(backend.load("u1", "like"))


def _make_redis_with_pipeline(stored=None):
    """Redis mock whose pipeline() hands out one transactional pipeline mock."""
    pipe = AsyncMock()
    pipe.__aenter__.return_value = pipe
    pipe.__aexit__.return_value = False
    pipe.multi = MagicMock()
    pipe.set = MagicMock()
    pipe.get.return_value = stored
    redis = AsyncMock()
    redis.pipeline = MagicMock(return_value=pipe)
    return redis, pipe


class TestRedisFlip:
    def test_flip_is_one_watched_transaction(self) -> None:
        redis, pipe = _make_redis_with_pipeline('["pin-1"]')
        backend = RedisMembershipBackend(redis)

        assert asyncio.run(backend.flip("u1", "like", "pin-2")) is True
        redis.pipeline.assert_called_once_with(transaction=True)
        pipe.watch.assert_awaited_once_with("social:like:u1")
        pipe.multi.assert_called_once()
        pipe.set.assert_called_once_with(
            "social:like:u1", json.dumps(["pin-1", "pin-2"]), ex=None
        )
        pipe.execute.assert_awaited_once()

    def test_flip_removes_present_target(self) -> None:
        redis, pipe = _make_redis_with_pipeline('["pin-1", "pin-2"]')
        backend = RedisMembershipBackend(redis, ttl=60)

        assert asyncio.run(backend.flip("u1", "save", "pin-1")) is False
        pipe.set.assert_called_once_with("social:save:u1", json.dumps(["pin-2"]), ex=60)

    def test_concurrent_write_retries_on_fresh_read(self) -> None:
        # Another worker adds pin-9 between our read and EXEC
        redis, pipe = _make_redis_with_pipeline()
        pipe.get.side_effect = [None, '["pin-9"]']
        pipe.execute.side_effect = [WatchError("key changed"), [True]]
        backend = RedisMembershipBackend(redis)

        assert asyncio.run(backend.flip("u1", "like", "pin-1")) is True
        assert pipe.watch.await_count == 2
        assert pipe.set.call_args_list[-1].args == (
            "social:like:u1",
            json.dumps(["pin-1", "pin-9"]),
        )

    def test_persistent_contention_gives_up(self) -> None:
        redis, pipe = _make_redis_with_pipeline()
        pipe.execute.side_effect = WatchError("key changed")
        backend = RedisMembershipBackend(redis)

        with pytest.raises(PersistenceFailure):
            asyncio.run(backend.flip("u1", "like", "pin-1"))
        assert pipe.execute.await_count == MAX_WATCH_RETRIES

    def test_connection_error_becomes_persistence_failure(self) -> None:
        redis, pipe = _make_redis_with_pipeline()
        pipe.execute.side_effect = RedisConnectionError("down")
        backend = RedisMembershipBackend(redis)

        with pytest.raises(PersistenceFailure):
            asyncio.run(backend.flip("u1", "save", "pin-1"))

    def test_corrupt_blob_is_not_overwritten(self) -> None:
        redis, pipe = _make_redis_with_pipeline("not json")
        backend = RedisMembershipBackend(redis)

        with pytest.raises(PersistenceFailure):
            asyncio.run(backend.flip("u1", "like", "pin-1"))
        pipe.execute.assert_not_awaited()

    def test_store_toggle_goes_through_transaction(self) -> None:
        redis, pipe = _make_redis_with_pipeline('["pin-1"]')
        store = SocialToggleStore(RedisMembershipBackend(redis))

        assert asyncio.run(store.toggle("u1", "like", "pin-1")) is False
        pipe.set.assert_called_once_with("social:like:u1", json.dumps([]), ex=None)
        redis.set.assert_not_awaited()

    def test_store_toggle_write_failure_reports_no_success(self) -> None:
        redis, pipe = _make_redis_with_pipeline()
        pipe.execute.side_effect = RedisConnectionError("down")
        store = SocialToggleStore(RedisMembershipBackend(redis))

        with pytest.raises(PersistenceFailure):
            asyncio.run(store.toggle("u1", "save", "pin-1"))


class TestInMemoryBackend:
    def test_shared_scope(self) -> None:
        scope: dict[str, str] = {}
        asyncio.run(InMemoryMembershipBackend(scope).save("u1", "like", {"p"}))

        assert asyncio.run(InMemoryMembershipBackend(scope).load("u1", "like")) == {"p"}
        assert scope == {"social:like:u1": '["p"]'}

    def test_delete_missing_key(self) -> None:
        backend = InMemoryMembershipBackend()
        asyncio.run(backend.delete("u1", "like"))
        assert backend.scope == {}

    def test_flip_writes_through(self) -> None:
        backend = InMemoryMembershipBackend()

        assert asyncio.run(backend.flip("u1", "save", "p")) is True
        assert backend.scope == {"social:save:u1": '["p"]'}
        assert asyncio.run(backend.flip("u1", "save", "p")) is False
        assert backend.scope == {"social:save:u1": "[]"}
