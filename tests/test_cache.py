import pytest

from defi_revenue.cache import MISSING, MemoryCache, NullCache, cached


@pytest.mark.asyncio
async def test_memory_cache_loads_once():
    cache = MemoryCache()
    calls = []

    async def loader():
        calls.append(1)
        return {"value": 42}

    first = await cached(cache, ("k", 1), loader)
    second = await cached(cache, ("k", 1), loader)

    assert first == second == {"value": 42}
    assert len(calls) == 1
    assert len(cache) == 1


@pytest.mark.asyncio
async def test_distinct_keys_load_separately():
    cache = MemoryCache()

    async def loader_a():
        return "a"

    async def loader_b():
        return "b"

    assert await cached(cache, ("k", 1), loader_a) == "a"
    assert await cached(cache, ("k", 2), loader_b) == "b"


@pytest.mark.asyncio
async def test_null_cache_always_loads():
    cache = NullCache()
    calls = []

    async def loader():
        calls.append(1)
        return None

    await cached(cache, "k", loader)
    await cached(cache, "k", loader)

    assert len(calls) == 2
    assert cache.get("k") is MISSING


@pytest.mark.asyncio
async def test_falsy_values_are_cached():
    cache = MemoryCache()
    calls = []

    async def loader():
        calls.append(1)
        return []

    await cached(cache, "empty", loader)
    await cached(cache, "empty", loader)

    assert len(calls) == 1


@pytest.mark.asyncio
async def test_loader_errors_are_not_cached():
    cache = MemoryCache()
    attempts = []

    async def flaky():
        attempts.append(1)
        if len(attempts) == 1:
            raise RuntimeError("boom")
        return "ok"

    with pytest.raises(RuntimeError):
        await cached(cache, "k", flaky)
    assert await cached(cache, "k", flaky) == "ok"
