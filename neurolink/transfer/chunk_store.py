"""
Chunk Store

Design Decision: Scratch Layout
===============================

Options Considered:
1. Hash-named chunk files (content addressed)
   - Deduplicates, but a resend of an index with new bytes would leave
     the old chunk behind and needs an index -> hash indirection

2. One sparse file per session, chunks written at offsets
   - Fewest files, but offsets depend on every chunk having chunk_size
     bytes, which callers don't guarantee

3. One directory per session, one file per index
   - Overwrite-by-index is a plain file rewrite
   - Release is a single rmtree
   - Easy to inspect while debugging

Decision: One temp directory per session
```
<scratch root>/
└── neurolink-<session>-xxxx/
    ├── chunk_0.tmp
    ├── chunk_1.tmp
    └── ...
```

Writes are flushed and fsync'd before returning so an acknowledged chunk
is on disk.
"""

import asyncio
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional

import aiofiles

logger = logging.getLogger(__name__)


class ChunkStore:
    """
    Per-session scratch storage for raw chunk bytes, keyed by index.
    """

    def __init__(self, session_id: str, scratch_root: Optional[Path] = None):
        """
        Create a fresh scratch directory.

        Args:
            session_id: Owning session, used in the directory name
            scratch_root: Parent directory (defaults to the system temp dir)
        """
        if scratch_root is not None:
            Path(scratch_root).mkdir(parents=True, exist_ok=True)
        self.path = Path(tempfile.mkdtemp(
            prefix=f"neurolink-{session_id}-",
            dir=str(scratch_root) if scratch_root is not None else None,
        ))
        self._released = False

    def _chunk_path(self, index: int) -> Path:
        """Get filesystem path for a chunk."""
        return self.path / f"chunk_{index}.tmp"

    @property
    def released(self) -> bool:
        return self._released

    async def write(self, index: int, data: bytes):
        """
        Store chunk bytes under index, replacing anything already there.

        Raises:
            OSError: If the write or fsync fails
        """
        async with aiofiles.open(self._chunk_path(index), 'wb') as f:
            await f.write(data)
            await f.flush()
            await asyncio.to_thread(os.fsync, f.fileno())

    async def read(self, index: int) -> bytes:
        """
        Read chunk bytes for index.

        Raises:
            FileNotFoundError: If the chunk was never written
            OSError: If the read fails
        """
        async with aiofiles.open(self._chunk_path(index), 'rb') as f:
            return await f.read()

    def has(self, index: int) -> bool:
        """Check if a chunk exists on disk."""
        return self._chunk_path(index).exists()

    def size_on_disk(self) -> int:
        """Total bytes currently held in this store."""
        if not self.path.exists():
            return 0
        return sum(p.stat().st_size for p in self.path.iterdir() if p.is_file())

    def release(self):
        """Delete the scratch directory. Safe to call more than once."""
        if self._released:
            return
        self._released = True
        shutil.rmtree(self.path, ignore_errors=True)
        logger.debug(f"Released scratch storage {self.path}")

    def __repr__(self) -> str:
        return f"ChunkStore({os.fspath(self.path)!r})"
