"""Tests for per-session chunk scratch storage."""

import pytest

from neurolink.transfer import ChunkStore


@pytest.mark.asyncio
async def test_write_then_read(scratch_dir):
    store = ChunkStore("trans_a", scratch_dir)

    await store.write(2, b"payload")

    assert store.has(2)
    assert not store.has(0)
    assert await store.read(2) == b"payload"


@pytest.mark.asyncio
async def test_write_overwrites_same_index(scratch_dir):
    store = ChunkStore("trans_a", scratch_dir)

    await store.write(0, b"a much longer first version")
    await store.write(0, b"short")

    assert await store.read(0) == b"short"
    assert store.size_on_disk() == len(b"short")


@pytest.mark.asyncio
async def test_read_missing_index_raises(scratch_dir):
    store = ChunkStore("trans_a", scratch_dir)
    with pytest.raises(FileNotFoundError):
        await store.read(5)


@pytest.mark.asyncio
async def test_release_removes_directory_and_is_idempotent(scratch_dir):
    store = ChunkStore("trans_a", scratch_dir)
    await store.write(0, b"x")

    store.release()
    store.release()

    assert store.released
    assert not store.path.exists()
    assert store.size_on_disk() == 0


def test_stores_are_isolated(scratch_dir):
    first = ChunkStore("trans_same", scratch_dir)
    second = ChunkStore("trans_same", scratch_dir)

    assert first.path != second.path
    assert first.path.parent == scratch_dir


def test_defaults_to_system_temp_dir():
    store = ChunkStore("trans_tmp")
    try:
        assert store.path.exists()
        assert store.path.name.startswith("neurolink-trans_tmp-")
    finally:
        store.release()
