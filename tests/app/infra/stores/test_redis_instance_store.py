"""Testes do RedisInstanceRepository com mock."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisDriverConnectionError
from redis.exceptions import WatchError

from app.infra.stores import RedisInstanceRepository
from fsm import create_instance
from tests.fakes.fsm_payloads import build_document_definition
from utils.errors import ConcurrencyConflictError, InstanceNotFoundError, RedisConnectionError


def _mock_redis(stored: bytes | None = None) -> tuple[MagicMock, MagicMock]:
    """Cliente async com pipeline transacional mockado."""
    pipe = MagicMock()
    pipe.watch = AsyncMock()
    pipe.get = AsyncMock(return_value=stored)
    pipe.execute = AsyncMock(return_value=[True])

    pipeline_cm = MagicMock()
    pipeline_cm.__aenter__ = AsyncMock(return_value=pipe)
    pipeline_cm.__aexit__ = AsyncMock(return_value=False)

    client = MagicMock()
    client.pipeline.return_value = pipeline_cm
    client.get = AsyncMock(return_value=stored)
    client.delete = AsyncMock(return_value=1)
    return client, pipe


@pytest.fixture
def definition():
    return build_document_definition()


class TestSaveInstance:
    """Save com WATCH/MULTI."""

    @pytest.mark.asyncio
    async def test_first_save(self, definition) -> None:
        client, pipe = _mock_redis()
        repository = RedisInstanceRepository(client, lambda _id: definition, key_prefix="t:")
        instance = create_instance(definition, instance_id="i-1")

        await repository.save_instance(instance)

        client.pipeline.assert_called_once_with(transaction=True)
        pipe.watch.assert_awaited_once_with("t:i-1")
        pipe.multi.assert_called_once()
        key, raw = pipe.set.call_args[0]
        assert key == "t:i-1"
        document = json.loads(raw)
        assert document["version"] == 1
        assert document["instance"]["id"] == "i-1"
        pipe.execute.assert_awaited_once()
        assert instance.version == 1

    @pytest.mark.asyncio
    async def test_version_mismatch(self, definition) -> None:
        stored = json.dumps({"version": 3, "instance": {}}).encode()
        client, pipe = _mock_redis(stored)
        repository = RedisInstanceRepository(client, lambda _id: definition)
        instance = create_instance(definition, instance_id="i-1")

        with pytest.raises(ConcurrencyConflictError) as exc_info:
            await repository.save_instance(instance)

        assert exc_info.value.actual_version == 3
        pipe.execute.assert_not_awaited()
        assert instance.version == 0

    @pytest.mark.asyncio
    async def test_watch_error_is_conflict(self, definition) -> None:
        client, pipe = _mock_redis()
        pipe.execute.side_effect = WatchError("chave alterada")
        repository = RedisInstanceRepository(client, lambda _id: definition)

        with pytest.raises(ConcurrencyConflictError):
            await repository.save_instance(create_instance(definition))

    @pytest.mark.asyncio
    async def test_connection_error(self, definition) -> None:
        client, pipe = _mock_redis()
        pipe.watch.side_effect = RedisDriverConnectionError("down")
        repository = RedisInstanceRepository(client, lambda _id: definition)

        with pytest.raises(RedisConnectionError):
            await repository.save_instance(create_instance(definition))


class TestLoadInstance:
    """Load e reidratação."""

    @pytest.mark.asyncio
    async def test_load_round_trip(self, definition) -> None:
        instance = create_instance(definition, instance_id="i-1")
        instance.execute_transition(instance.get_transitions_for_trigger("submit")[0])
        stored = json.dumps({"version": 4, "instance": instance.to_dict()}).encode()
        client, _ = _mock_redis(stored)
        repository = RedisInstanceRepository(client, lambda _id: definition)

        loaded = await repository.load_instance("i-1")

        client.get.assert_awaited_once_with("fsm:instance:i-1")
        assert loaded.current_state.name == "Review"
        assert loaded.version == 4

    @pytest.mark.asyncio
    async def test_load_missing(self, definition) -> None:
        client, _ = _mock_redis(None)
        repository = RedisInstanceRepository(client, lambda _id: definition)
        assert await repository.load_instance("nada") is None

    @pytest.mark.asyncio
    async def test_load_unknown_definition(self, definition) -> None:
        stored = json.dumps(
            {"version": 1, "instance": create_instance(definition).to_dict()}
        ).encode()
        client, _ = _mock_redis(stored)
        repository = RedisInstanceRepository(client, lambda _id: None)

        with pytest.raises(InstanceNotFoundError):
            await repository.load_instance("i-1")

    @pytest.mark.asyncio
    async def test_load_corrupted_document(self, definition) -> None:
        client, _ = _mock_redis(b"{not json")
        repository = RedisInstanceRepository(client, lambda _id: definition)

        with pytest.raises(InstanceNotFoundError):
            await repository.load_instance("i-1")

    @pytest.mark.asyncio
    async def test_load_connection_error(self, definition) -> None:
        client, _ = _mock_redis()
        client.get.side_effect = RedisDriverConnectionError("down")
        repository = RedisInstanceRepository(client, lambda _id: definition)

        with pytest.raises(RedisConnectionError):
            await repository.load_instance("i-1")

    @pytest.mark.asyncio
    async def test_delete(self, definition) -> None:
        client, _ = _mock_redis()
        repository = RedisInstanceRepository(client, lambda _id: definition)

        assert await repository.delete_instance("i-1")
        client.delete.assert_awaited_once_with("fsm:instance:i-1")
