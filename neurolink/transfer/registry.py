"""
Transfer Registry

Design Decision: Locking Strategy
=================================

Options Considered:
1. One lock around the whole registry for every operation
   - Simplest and obviously correct
   - A slow disk write for one session stalls every other session

2. Sharded locks by session id hash
   - Better throughput, but unrelated sessions still contend

3. Registry lock for the map + one lock per session
   - Create/lookup/remove are atomic for the registry as a whole
   - Chunk writes and reassembly only serialize within their own session

Decision: Registry lock + per-session lock
- The registry lock is held only around dict access, never across I/O
- A session's lock is held across its chunk write or its reassembly
- complete() and cancel() both take the session lock; whichever gets it
  first wins and marks the session detached, so the other one raises
  SessionNotFound

Lifecycle:
```
create ──> Pending ──receive_chunk──> InProgress(n) ──complete──> Completed
   │                                       │                        (removed)
   └──────────────── cancel ───────────────┘ (removed)
```
Sessions nobody completes or cancels stay registered until the process
exits; there is no expiry.
"""

import asyncio
import hashlib
import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .batches import BatchIndex, single_batch_id
from .chunk_store import ChunkStore
from .errors import (
    ChunkIndexOutOfRange, FileTooLarge, IncompleteTransfer, InvalidChunkHash,
    InvalidChunkSize, InvalidFilename, InvalidTotalSize, IOFailure, SessionNotFound,
)
from .models import (
    ChunkRecord, Completed, CompletedUpload, InProgress, TransferMetadata,
    TransferSession, chunk_count, utc_now,
)
from .reassembler import Reassembler

logger = logging.getLogger(__name__)


def generate_session_id() -> str:
    """Collision-free session id."""
    return f"trans_{uuid.uuid4().hex}"


def check_filename(filename: str):
    """
    Ensure filename names a file directly inside the storage directory.

    Raises:
        InvalidFilename: For empty names, path separators, '.', '..' or NUL
    """
    if (not filename or filename in ('.', '..') or '\0' in filename
            or '/' in filename or '\\' in filename):
        raise InvalidFilename(filename)


class TransferRegistry:
    """
    Single source of truth for active transfer sessions.

    Provides:
    - create(): open a session
    - receive_chunk(): store one chunk
    - complete(): reassemble, record in the batch index, evict
    - status(): metadata snapshot
    - cancel(): evict and discard chunks
    """

    def __init__(self, reassembler: Reassembler, batches: BatchIndex,
                 scratch_dir: Optional[Path] = None,
                 max_file_size: Optional[int] = None,
                 clock: Callable[[], datetime] = utc_now):
        """
        Args:
            reassembler: Writes completed sessions to final storage
            batches: Receives a record for every completed session
            scratch_dir: Parent for per-session chunk directories
            max_file_size: Reject larger declared sizes (None = no limit)
            clock: Source of timestamps, replaceable in tests
        """
        self.reassembler = reassembler
        self.batches = batches
        self.scratch_dir = scratch_dir
        self.max_file_size = max_file_size
        self.clock = clock

        self._sessions: Dict[str, TransferSession] = {}
        self._lock = asyncio.Lock()

    # === Internal ===

    async def _get(self, session_id: str) -> TransferSession:
        async with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    async def _detach(self, session: TransferSession):
        """Remove from the map and release scratch storage. Caller holds session.lock."""
        async with self._lock:
            self._sessions.pop(session.id, None)
        session.detached = True
        session.store.release()

    # === Operations ===

    async def create(self, filename: str, total_size: int, chunk_size: int,
                     batch_id: Optional[str] = None) -> str:
        """
        Open a new transfer session.

        Returns:
            The new session id

        Raises:
            InvalidChunkSize: If chunk_size <= 0
            InvalidTotalSize: If total_size < 0
            InvalidFilename: If filename isn't a plain file name
            FileTooLarge: If max_file_size is set and total_size exceeds it
            IOFailure: If the scratch directory can't be created
        """
        if chunk_size <= 0:
            raise InvalidChunkSize(chunk_size)
        if total_size < 0:
            raise InvalidTotalSize(total_size)
        check_filename(filename)
        if self.max_file_size is not None and total_size > self.max_file_size:
            raise FileTooLarge(total_size, self.max_file_size)

        session_id = generate_session_id()
        total_chunks = chunk_count(total_size, chunk_size)

        try:
            store = ChunkStore(session_id, self.scratch_dir)
        except OSError as e:
            raise IOFailure(str(e)) from e

        metadata = TransferMetadata(
            id=session_id,
            filename=filename,
            total_size=total_size,
            chunk_size=chunk_size,
            total_chunks=total_chunks,
            batch_id=batch_id,
            created_at=self.clock(),
        )

        async with self._lock:
            self._sessions[session_id] = TransferSession(metadata=metadata, store=store)

        logger.info(f"Initializing transfer: {session_id} for file: {filename} "
                    f"({total_chunks} chunks)")
        return session_id

    async def receive_chunk(self, session_id: str, index: int, data: bytes,
                            expected_hash: Optional[str] = None) -> str:
        """
        Store one chunk. A repeated index replaces the earlier bytes.

        Args:
            session_id: Target session
            index: Zero-based chunk index
            data: Raw chunk bytes
            expected_hash: Optional hex SHA-256 the caller wants checked

        Returns:
            Hex SHA-256 of data

        Raises:
            SessionNotFound, ChunkIndexOutOfRange, InvalidChunkHash, IOFailure
        """
        session = await self._get(session_id)
        total_chunks = session.metadata.total_chunks
        if index < 0 or index >= total_chunks:
            raise ChunkIndexOutOfRange(total_chunks, index)

        chunk_hash = hashlib.sha256(data).hexdigest()
        if expected_hash is not None and expected_hash.lower() != chunk_hash:
            raise InvalidChunkHash(index, expected_hash, chunk_hash)

        async with session.lock:
            if session.detached:
                raise SessionNotFound(session_id)
            try:
                await session.store.write(index, data)
            except OSError as e:
                raise IOFailure(str(e)) from e

            session.chunks[index] = ChunkRecord(index=index, hash=chunk_hash, size=len(data))
            session.metadata.status = InProgress(received_count=session.received_count)

        logger.debug(f"Received chunk {index} for transfer {session_id} "
                     f"(hash: {chunk_hash[:16]})")
        return chunk_hash

    async def complete(self, session_id: str) -> TransferMetadata:
        """
        Reassemble a fully received session and retire it.

        On IOFailure the session is left registered with its chunks and
        status untouched, so complete() can simply be called again.

        Raises:
            SessionNotFound, IncompleteTransfer, IOFailure
        """
        session = await self._get(session_id)

        async with session.lock:
            if session.detached:
                raise SessionNotFound(session_id)
            if not session.is_complete:
                raise IncompleteTransfer(session.metadata.total_chunks, session.received_count)

            logger.info(f"Completing transfer: {session_id}")
            final_hash = await self.reassembler.reassemble(session)

            metadata = session.metadata
            metadata.status = Completed(final_hash=final_hash)
            await self.batches.record(CompletedUpload(
                batch_id=metadata.batch_id or single_batch_id(session_id),
                name=metadata.filename,
                size=metadata.total_size,
                uploaded_at=self.clock(),
            ))
            await self._detach(session)

        logger.info(f"Transfer {session_id} completed. File: {metadata.filename} "
                    f"(hash: {final_hash[:16]})")
        return metadata.snapshot()

    async def status(self, session_id: str) -> Optional[TransferMetadata]:
        """Metadata snapshot, or None if the session isn't active."""
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            return session.metadata.snapshot()

    async def cancel(self, session_id: str):
        """
        Drop a session and its chunks.

        Raises:
            SessionNotFound: If the session isn't active
        """
        session = await self._get(session_id)

        async with session.lock:
            if session.detached:
                raise SessionNotFound(session_id)
            await self._detach(session)

        logger.info(f"Cancelled transfer: {session_id}")

    # === Introspection ===

    async def active_sessions(self) -> List[TransferMetadata]:
        """Snapshots of every session still registered."""
        async with self._lock:
            return [s.metadata.snapshot() for s in self._sessions.values()]

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions
