"""Unit tests for model handle ownership."""

import pytest

from surviveai.core.model_lifecycle import ModelHandle
from surviveai.lib.errors import ModelInUseError, ModelNotInitializedError
from tests.fakes import FakeEngine


@pytest.mark.asyncio
async def test_generation_requires_initialization():
    handle = ModelHandle(FakeEngine())
    assert not handle.is_ready

    with pytest.raises(ModelNotInitializedError):
        async with handle.generation():
            pass


@pytest.mark.asyncio
async def test_acquire_and_initialize():
    engine = FakeEngine()
    handle = ModelHandle(engine)
    progress = []

    await handle.acquire(on_progress=progress.append)
    await handle.initialize()

    assert engine.downloaded
    assert progress == [1.0]
    assert handle.is_ready


@pytest.mark.asyncio
async def test_in_flight_counting():
    handle = ModelHandle(FakeEngine())
    await handle.initialize()

    async with handle.generation() as engine:
        assert engine is handle.engine
        assert handle.in_flight == 1
    assert handle.in_flight == 0


@pytest.mark.asyncio
async def test_release_refused_while_generating():
    handle = ModelHandle(FakeEngine())
    await handle.initialize()

    async with handle.generation():
        with pytest.raises(ModelInUseError):
            await handle.release()

    await handle.release()
    assert not handle.is_ready


@pytest.mark.asyncio
async def test_released_handle_cannot_be_reinitialized():
    handle = ModelHandle(FakeEngine())
    await handle.initialize()
    await handle.release()

    with pytest.raises(ModelNotInitializedError):
        await handle.initialize()
    with pytest.raises(ModelNotInitializedError):
        async with handle.generation():
            pass
