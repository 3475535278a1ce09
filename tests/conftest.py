"""Shared pytest fixtures for all tests."""

from datetime import datetime, timedelta, timezone

import pytest

from neurolink.config import Config
from neurolink.service import TransferService
from neurolink.transfer import BatchIndex, Reassembler, TransferRegistry


class FakeClock:
    """Deterministic clock: each call returns the next second after `start`."""

    def __init__(self, start=None):
        self.now = start or datetime(2026, 1, 1, tzinfo=timezone.utc)

    def set(self, seconds: int):
        """Pin the next reading to start-of-epoch + seconds."""
        self.now = datetime(2026, 1, 1, tzinfo=timezone.utc) + timedelta(seconds=seconds)

    def __call__(self):
        current = self.now
        self.now = current + timedelta(seconds=1)
        return current


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage_dir(tmp_path):
    """
    Directory completed files are written to.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to an empty storage directory
    """
    path = tmp_path / 'shared'
    path.mkdir()
    return path


@pytest.fixture
def scratch_dir(tmp_path):
    """Parent directory for per-session chunk scratch space."""
    path = tmp_path / 'scratch'
    path.mkdir()
    return path


@pytest.fixture
def config(storage_dir, scratch_dir):
    return Config(storage_dir=storage_dir, scratch_dir=scratch_dir)


@pytest.fixture
def batches():
    return BatchIndex()


@pytest.fixture
def registry(storage_dir, scratch_dir, batches, clock):
    """Registry writing into the temp storage dir, with direct reassembly."""
    return TransferRegistry(
        reassembler=Reassembler(storage_dir),
        batches=batches,
        scratch_dir=scratch_dir,
        clock=clock,
    )


@pytest.fixture
def service(config, clock):
    return TransferService(config, clock=clock)
