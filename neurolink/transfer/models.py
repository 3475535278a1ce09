"""
Transfer Data Model

Design Decision: Status Representation
======================================

Options Considered:
1. Status string + optional fields (received_count, final_hash, reason)
   - Simple to serialize
   - Allows nonsense like "completed" without a hash

2. Enum + payload dict
   - Still untyped payload

3. One frozen dataclass per status variant
   - Each variant carries exactly its own data
   - isinstance() checks read naturally

Decision: One frozen dataclass per variant
- Pending, InProgress(received_count), Completed(final_hash), Failed(reason)
- A Completed status without a hash cannot be constructed
- Frozen so snapshots handed to callers can't be mutated in place

Sizes and counts:
- total_chunks = ceil(total_size / chunk_size), integer ceiling division
- A zero-byte file therefore has zero chunks
"""

import asyncio
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, Optional, Union

from .chunk_store import ChunkStore


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def chunk_count(total_size: int, chunk_size: int) -> int:
    """Number of chunks needed for total_size bytes at chunk_size each."""
    return (total_size + chunk_size - 1) // chunk_size


# === Status Variants ===

@dataclass(frozen=True)
class Pending:
    """Session created, no chunk received yet."""
    name = 'pending'


@dataclass(frozen=True)
class InProgress:
    """At least one chunk received."""
    received_count: int
    name = 'in_progress'


@dataclass(frozen=True)
class Completed:
    """Reassembly succeeded."""
    final_hash: str
    name = 'completed'


@dataclass(frozen=True)
class Failed:
    """Terminal failure. Reserved; nothing currently produces it."""
    reason: str
    name = 'failed'


TransferStatus = Union[Pending, InProgress, Completed, Failed]


# === Records ===

@dataclass(frozen=True)
class ChunkRecord:
    """Bookkeeping for one received chunk."""
    index: int
    hash: str  # SHA-256 as hex
    size: int  # Bytes actually received


@dataclass
class TransferMetadata:
    """Declared properties and current status of one transfer."""
    id: str
    filename: str
    total_size: int
    chunk_size: int
    total_chunks: int
    batch_id: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    status: TransferStatus = field(default_factory=Pending)

    @property
    def received_count(self) -> int:
        if isinstance(self.status, InProgress):
            return self.status.received_count
        if isinstance(self.status, Completed):
            return self.total_chunks
        return 0

    @property
    def progress_percent(self) -> int:
        """Whole-number progress, based on chunk count rather than bytes."""
        if isinstance(self.status, Completed) or self.total_chunks == 0:
            return 100
        return (self.received_count * 100) // self.total_chunks

    def snapshot(self) -> 'TransferMetadata':
        """Independent copy safe to hand to callers."""
        return replace(self)

    def to_dict(self) -> Dict:
        data = {
            'id': self.id,
            'filename': self.filename,
            'total_size': self.total_size,
            'chunk_size': self.chunk_size,
            'total_chunks': self.total_chunks,
            'batch_id': self.batch_id,
            'created_at': self.created_at.isoformat(),
            'status': self.status.name,
        }
        if isinstance(self.status, InProgress):
            data['received_count'] = self.status.received_count
        elif isinstance(self.status, Completed):
            data['final_hash'] = self.status.final_hash
        elif isinstance(self.status, Failed):
            data['reason'] = self.status.reason
        return data


@dataclass
class TransferSession:
    """
    One in-flight upload.

    Owned by the TransferRegistry. The lock serializes chunk writes and
    reassembly for this session only; `detached` is set once the session
    has been completed or cancelled so late callers holding a reference
    can tell it is gone.
    """
    metadata: TransferMetadata
    store: ChunkStore
    chunks: Dict[int, ChunkRecord] = field(default_factory=dict)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    detached: bool = False

    @property
    def id(self) -> str:
        return self.metadata.id

    @property
    def received_count(self) -> int:
        return len(self.chunks)

    @property
    def is_complete(self) -> bool:
        return len(self.chunks) == self.metadata.total_chunks


@dataclass(frozen=True)
class CompletedUpload:
    """Immutable history entry for one successfully completed transfer."""
    batch_id: str
    name: str
    size: int
    uploaded_at: datetime
