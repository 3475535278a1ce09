"""Tests for transfer metadata and status variants."""

import pytest

from neurolink.transfer import (
    Completed, Failed, InProgress, Pending, TransferMetadata, chunk_count,
)


def metadata(total_chunks=4, status=None):
    return TransferMetadata(
        id="trans_1",
        filename="f.bin",
        total_size=total_chunks * 10,
        chunk_size=10,
        total_chunks=total_chunks,
        status=status or Pending(),
    )


@pytest.mark.parametrize("total_size,chunk_size", [
    (0, 1), (1, 1), (7, 3), (9, 3), (10, 3), (1 << 40, 1 << 20), (5, 100),
])
def test_chunk_count_matches_ceiling(total_size, chunk_size):
    expected = -(-total_size // chunk_size)
    assert chunk_count(total_size, chunk_size) == expected


@pytest.mark.parametrize("status,percent", [
    (Pending(), 0),
    (InProgress(received_count=1), 25),
    (InProgress(received_count=3), 75),
    (Completed(final_hash="ab"), 100),
])
def test_progress_percent(status, percent):
    assert metadata(status=status).progress_percent == percent


def test_zero_chunk_transfer_reports_full_progress():
    assert metadata(total_chunks=0).progress_percent == 100


def test_status_names():
    assert Pending().name == 'pending'
    assert InProgress(1).name == 'in_progress'
    assert Completed("h").name == 'completed'
    assert Failed("disk").name == 'failed'


def test_to_dict_includes_variant_payload():
    data = metadata(status=Completed(final_hash="cafe")).to_dict()

    assert data['status'] == 'completed'
    assert data['final_hash'] == 'cafe'
    assert 'received_count' not in data


def test_snapshot_is_independent():
    original = metadata()
    copy = original.snapshot()

    original.status = InProgress(received_count=2)

    assert copy.status == Pending()
