"""Tests for read access to the storage directory."""

import io
import os
import tarfile

import pytest

from neurolink.storage import SharedStorage


@pytest.fixture
def shared(storage_dir):
    return SharedStorage(storage_dir)


def test_list_files_newest_first(shared, storage_dir):
    (storage_dir / "old.txt").write_bytes(b"1")
    (storage_dir / "new.txt").write_bytes(b"22")
    (storage_dir / "subdir").mkdir()
    os.utime(storage_dir / "old.txt", (1_000_000, 1_000_000))
    os.utime(storage_dir / "new.txt", (2_000_000, 2_000_000))

    files = shared.list_files()

    assert [f.name for f in files] == ["new.txt", "old.txt"]
    assert files[0].size == 2
    assert files[0].modified_at.endswith("+00:00")


def test_creates_missing_directory(tmp_path):
    SharedStorage(tmp_path / "fresh" / "shared")
    assert (tmp_path / "fresh" / "shared").is_dir()


@pytest.mark.parametrize("name", ["../escape.txt", "nested/file.txt", ".."])
def test_resolve_rejects_paths_outside_storage(shared, name):
    with pytest.raises(ValueError):
        shared.resolve(name)


@pytest.mark.asyncio
async def test_read_file_chunk_bounds(shared, storage_dir):
    (storage_dir / "f.bin").write_bytes(b"abcdefgh")

    assert await shared.read_file_chunk("f.bin", 0, 3) == b"abc"
    assert await shared.read_file_chunk("f.bin", 2, 3) == b"gh"

    with pytest.raises(ValueError):
        await shared.read_file_chunk("f.bin", 3, 3)
    with pytest.raises(ValueError):
        await shared.read_file_chunk("f.bin", 0, 0)
    with pytest.raises(FileNotFoundError):
        await shared.read_file_chunk("missing.bin", 0, 3)


@pytest.mark.asyncio
async def test_build_batch_archive(shared, storage_dir):
    (storage_dir / "one.txt").write_bytes(b"1")
    (storage_dir / "two.txt").write_bytes(b"2")

    data = await shared.build_batch_archive(["one.txt", "two.txt"])

    with tarfile.open(fileobj=io.BytesIO(data), mode='r:gz') as tf:
        assert tf.getnames() == ["one.txt", "two.txt"]


@pytest.mark.asyncio
async def test_build_batch_archive_missing_file(shared):
    with pytest.raises(FileNotFoundError):
        await shared.build_batch_archive(["ghost.txt"])
