"""Tests for completed-upload batch grouping."""

from datetime import datetime, timedelta, timezone

import pytest

from neurolink.transfer import BatchIndex, CompletedUpload, single_batch_id

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


def at(seconds: int) -> datetime:
    return T0 + timedelta(seconds=seconds)


def upload(batch_id, name, seconds, size=10):
    return CompletedUpload(batch_id=batch_id, name=name, size=size, uploaded_at=at(seconds))


@pytest.mark.asyncio
async def test_empty_index():
    assert await BatchIndex().list_batches() == []


@pytest.mark.asyncio
async def test_files_in_a_batch_share_one_entry():
    index = BatchIndex()
    await index.record(upload("B1", "q.txt", 20))
    await index.record(upload("B1", "p.txt", 10))

    batches = await index.list_batches()

    assert len(batches) == 1
    assert batches[0].batch_id == "B1"
    assert batches[0].uploaded_at == at(20).isoformat()
    assert [f.name for f in batches[0].files] == ["p.txt", "q.txt"]
    assert batches[0].files[0].uploaded_at == at(10).isoformat()


@pytest.mark.asyncio
async def test_batches_ordered_by_latest_upload_descending():
    index = BatchIndex()
    await index.record(upload("old", "a", 5))
    await index.record(upload("new", "b", 15))
    await index.record(upload("old", "c", 30))
    await index.record(upload("mid", "d", 20))

    batches = await index.list_batches()

    assert [b.batch_id for b in batches] == ["old", "mid", "new"]


@pytest.mark.asyncio
async def test_equal_timestamps_keep_arrival_order():
    index = BatchIndex()
    await index.record(upload("B", "first", 10))
    await index.record(upload("B", "second", 10))

    batch = (await index.list_batches())[0]

    assert [f.name for f in batch.files] == ["first", "second"]


@pytest.mark.asyncio
async def test_files_for_batch():
    index = BatchIndex()
    await index.record(upload("B", "late", 9))
    await index.record(upload("other", "x", 1))
    await index.record(upload("B", "early", 3))

    files = await index.files_for_batch("B")

    assert [f.name for f in files] == ["early", "late"]
    assert await index.files_for_batch("missing") == []


@pytest.mark.asyncio
async def test_to_dict_shape():
    index = BatchIndex()
    await index.record(upload(single_batch_id("trans_1"), "solo.bin", 1, size=42))

    data = (await index.list_batches())[0].to_dict()

    assert data == {
        'batch_id': 'single_trans_1',
        'uploaded_at': at(1).isoformat(),
        'files': [{'name': 'solo.bin', 'size': 42, 'uploaded_at': at(1).isoformat()}],
    }
