"""
Transfer Service - Main Controller

This is the entry point the HTTP layer and CLI talk to. It wires together:
- TransferRegistry for in-flight sessions
- Reassembler for writing final files
- BatchIndex for completed-upload history
- SharedStorage for reading back what has been stored

and exposes the operation set as plain dicts ready for JSON encoding.
Errors are raised as TransferError subclasses; translating them into
responses is the caller's job.
"""

import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional
from datetime import datetime

from .config import Config
from .storage import SharedStorage
from .transfer import (
    BatchIndex, Reassembler, SessionNotFound, TransferRegistry,
)
from .transfer.models import utc_now

logger = logging.getLogger(__name__)


class BatchNotFound(LookupError):
    """Raised when no completed upload carries the requested batch id."""

    def __init__(self, batch_id: str):
        self.batch_id = batch_id
        super().__init__(f"Batch not found: {batch_id}")


class TransferService:
    """
    A complete transfer endpoint.

    Combines all components into a unified interface:
    - create_transfer / submit_chunk / finalize_transfer
    - query_status / cancel_transfer
    - list_completed_batches / list_files
    - read_file_chunk / build_batch_archive
    """

    def __init__(self, config: Config = None,
                 clock: Callable[[], datetime] = utc_now):
        """
        Initialize the service.

        Args:
            config: Service configuration (uses defaults if not provided)
            clock: Timestamp source, replaceable in tests
        """
        self.config = config or Config()

        self.storage_dir = Path(self.config.storage_dir)
        self.storage = SharedStorage(self.storage_dir)

        self.batches = BatchIndex()
        self.reassembler = Reassembler(
            storage_dir=self.storage_dir,
            atomic=self.config.atomic_reassembly,
        )
        self.registry = TransferRegistry(
            reassembler=self.reassembler,
            batches=self.batches,
            scratch_dir=self.config.scratch_dir,
            max_file_size=self.config.max_file_size,
            clock=clock,
        )

    # === Transfers ===

    async def create_transfer(self, filename: str, total_size: int, chunk_size: int,
                              batch_id: Optional[str] = None) -> Dict:
        session_id = await self.registry.create(filename, total_size, chunk_size, batch_id)
        metadata = await self.registry.status(session_id)
        return {
            'session_id': session_id,
            'total_chunks': metadata.total_chunks,
        }

    async def submit_chunk(self, session_id: str, index: int, data: bytes,
                           expected_hash: Optional[str] = None) -> Dict:
        content_hash = await self.registry.receive_chunk(
            session_id, index, data, expected_hash=expected_hash
        )
        metadata = await self.registry.status(session_id)
        if metadata is None:
            # Completed or cancelled between the write and this lookup
            raise SessionNotFound(session_id)
        return {
            'content_hash': content_hash,
            'received_count': metadata.received_count,
            'total_chunks': metadata.total_chunks,
        }

    async def finalize_transfer(self, session_id: str) -> Dict:
        metadata = await self.registry.complete(session_id)
        return {
            'session_id': metadata.id,
            'filename': metadata.filename,
            'status': metadata.status.name,
            'final_hash': metadata.status.final_hash,
        }

    async def query_status(self, session_id: str) -> Optional[Dict]:
        """Status summary, or None when the session isn't active."""
        metadata = await self.registry.status(session_id)
        if metadata is None:
            return None
        return {
            'session_id': metadata.id,
            'status': metadata.status.name,
            'progress_percent': metadata.progress_percent,
        }

    async def cancel_transfer(self, session_id: str):
        await self.registry.cancel(session_id)

    # === Completed uploads ===

    async def list_completed_batches(self) -> List[Dict]:
        return [batch.to_dict() for batch in await self.batches.list_batches()]

    def list_files(self) -> List[Dict]:
        return [f.to_dict() for f in self.storage.list_files()]

    async def read_file_chunk(self, name: str, index: int, chunk_size: int) -> bytes:
        return await self.storage.read_file_chunk(name, index, chunk_size)

    async def build_batch_archive(self, batch_id: str) -> bytes:
        """
        Tarball of every file in a batch.

        Raises:
            BatchNotFound: If no completed upload has this batch id
        """
        uploads = await self.batches.files_for_batch(batch_id)
        if not uploads:
            raise BatchNotFound(batch_id)

        # A name uploaded twice in one batch is a single file on disk
        names = list(dict.fromkeys(u.name for u in uploads))
        logger.info(f"Packing batch {batch_id} ({len(names)} files)")
        return await self.storage.build_batch_archive(names)

    def get_stats(self) -> Dict:
        return {
            'active_transfers': len(self.registry),
            'completed_uploads': len(self.batches),
            'storage_dir': str(self.storage_dir),
        }
