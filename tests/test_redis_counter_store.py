"""Unit tests for the Redis counter store (client mocked)."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError, TimeoutError as RedisTimeoutError

from rategate.adapters.counter_store.redis_store import INCREMENT_SCRIPT, RedisCounterStore
from rategate.core.errors import StoreUnavailableAppError


def _client_with_script(script: AsyncMock) -> MagicMock:
    client = MagicMock()
    client.register_script.return_value = script
    return client


def test_registers_increment_script_once() -> None:
    client = _client_with_script(AsyncMock())

    RedisCounterStore(client)

    client.register_script.assert_called_once_with(INCREMENT_SCRIPT)


@pytest.mark.asyncio
async def test_increment_runs_script_with_key_and_window() -> None:
    script = AsyncMock(return_value=[1, 1060])
    store = RedisCounterStore(_client_with_script(script))

    record = await store.increment("rate-limit:POST /items:abc", 60)

    script.assert_awaited_once_with(keys=["rate-limit:POST /items:abc"], args=[60])
    assert record.count == 1
    assert record.reset_at == 1060


@pytest.mark.asyncio
async def test_increment_coerces_string_replies() -> None:
    script = AsyncMock(return_value=["7", "1060"])
    store = RedisCounterStore(_client_with_script(script))

    record = await store.increment("k", 60)

    assert (record.count, record.reset_at) == (7, 1060)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        RedisConnectionError("connection refused"),
        RedisTimeoutError("timed out"),
        ResponseError("NOSCRIPT"),
    ],
)
async def test_redis_errors_become_store_unavailable(error: Exception) -> None:
    store = RedisCounterStore(_client_with_script(AsyncMock(side_effect=error)))

    with pytest.raises(StoreUnavailableAppError) as exc_info:
        await store.increment("k", 60)

    assert exc_info.value.code == "counter_store_unavailable"
    assert exc_info.value.__cause__ is error


@pytest.mark.asyncio
async def test_invalid_increment_args_never_reach_redis() -> None:
    script = AsyncMock()
    store = RedisCounterStore(_client_with_script(script))

    with pytest.raises(ValueError):
        await store.increment("", 60)
    with pytest.raises(ValueError):
        await store.increment("k", 0)

    script.assert_not_awaited()


@pytest.mark.asyncio
async def test_ping_reports_reachability() -> None:
    client = _client_with_script(AsyncMock())
    client.ping = AsyncMock(return_value=True)
    store = RedisCounterStore(client)

    assert await store.ping() is True

    client.ping = AsyncMock(side_effect=RedisConnectionError("down"))
    assert await store.ping() is False


@pytest.mark.asyncio
async def test_close_releases_client() -> None:
    client = _client_with_script(AsyncMock())
    client.aclose = AsyncMock()
    store = RedisCounterStore(client)

    await store.close()

    client.aclose.assert_awaited_once()


def test_from_url_applies_timeouts() -> None:
    with patch("rategate.adapters.counter_store.redis_store.aioredis.from_url") as from_url:
        from_url.return_value = _client_with_script(AsyncMock())

        RedisCounterStore.from_url("redis://cache:6379/1", timeout_seconds=0.25)

    from_url.assert_called_once_with(
        "redis://cache:6379/1",
        decode_responses=True,
        socket_connect_timeout=0.25,
        socket_timeout=0.25,
    )


def test_script_sets_expiry_only_when_opening_a_window() -> None:
    opening_branch, existing_branch = INCREMENT_SCRIPT.split("else", 1)

    assert "if count == 1 then" in opening_branch
    assert "EXPIREAT', KEYS[1], reset_at" in opening_branch
    assert "TIME" in opening_branch
    assert "EXPIRE" not in existing_branch
    assert "HSET" not in existing_branch
