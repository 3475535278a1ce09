"""
Reassembler

Concatenates a session's chunks, in ascending index order, into the
final file while computing a streaming SHA-256 over the same bytes.

Write modes:
- direct (default): stream straight into storage_dir/filename. A failure
  part-way leaves whatever was written; nothing is cleaned up.
- atomic: stream into a .part file beside the destination and
  os.replace() it into place on success; the .part file is removed on
  failure so no partial destination is ever visible.

The output length is the sum of the chunk lengths; it is not
compared against the size the client declared.
"""

import hashlib
import logging
from pathlib import Path

import aiofiles
import aiofiles.os

from .errors import IOFailure
from .models import TransferSession

logger = logging.getLogger(__name__)


class Reassembler:
    """
    Writes completed sessions into the storage directory.
    """

    def __init__(self, storage_dir: Path, atomic: bool = False):
        self.storage_dir = Path(storage_dir)
        self.atomic = atomic

    def destination(self, session: TransferSession) -> Path:
        """Final path for a session's file (no collision avoidance)."""
        return self.storage_dir / session.metadata.filename

    async def reassemble(self, session: TransferSession) -> str:
        """
        Reassemble all chunks of a session.

        The caller must already have checked that every index is present.

        Returns:
            Hex SHA-256 of the reassembled bytes

        Raises:
            IOFailure: If any chunk read or destination write fails
        """
        final_path = self.destination(session)
        write_path = final_path
        if self.atomic:
            write_path = final_path.with_name(f"{final_path.name}.{session.id}.part")

        hasher = hashlib.sha256()
        try:
            await aiofiles.os.makedirs(self.storage_dir, exist_ok=True)
            async with aiofiles.open(write_path, 'wb') as f:
                for index in range(session.metadata.total_chunks):
                    data = await session.store.read(index)
                    await f.write(data)
                    hasher.update(data)
                await f.flush()

            if self.atomic:
                await aiofiles.os.replace(write_path, final_path)
        except OSError as e:
            if self.atomic:
                await self._discard(write_path)
            logger.error(f"Reassembly failed for {session.id}: {e}")
            raise IOFailure(str(e)) from e

        final_hash = hasher.hexdigest()
        logger.debug(f"Reassembled {final_path} (hash: {final_hash[:16]}...)")
        return final_hash

    async def _discard(self, path: Path):
        """Remove a partial output file if it exists."""
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            pass
