"""
Shared Storage

Read-side access to the flat storage directory that completed transfers
are written into:
- listing stored files
- reading a byte range of a stored file
- packing a set of stored files into a .tar.gz

Storage Layout:
```
shared/
├── report.pdf
├── photo.jpg
└── ...
```
Files are named exactly as the uploader declared them; a second upload
with the same name replaces the first.
"""

import asyncio
import io
import logging
import tarfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Sequence

import aiofiles

logger = logging.getLogger(__name__)


@dataclass
class SharedFile:
    """A file sitting in the storage directory."""
    name: str
    size: int
    modified_at: str

    def to_dict(self) -> Dict:
        return {
            'name': self.name,
            'size': self.size,
            'modified_at': self.modified_at,
        }


class SharedStorage:
    """
    Access to final files in the storage directory.
    """

    def __init__(self, storage_dir: Path):
        self.storage_dir = Path(storage_dir)
        self.storage_dir.mkdir(parents=True, exist_ok=True)

    def resolve(self, name: str) -> Path:
        """
        Path of a stored file.

        Raises:
            ValueError: If name points outside the storage directory
        """
        root = self.storage_dir.resolve()
        path = (root / name).resolve()
        if path.parent != root:
            raise ValueError(f"Invalid file name: {name}")
        return path

    def list_files(self) -> List[SharedFile]:
        """Files in the storage directory, most recently modified first."""
        files = []
        for entry in self.storage_dir.iterdir():
            if not entry.is_file():
                continue
            stat = entry.stat()
            files.append(SharedFile(
                name=entry.name,
                size=stat.st_size,
                modified_at=datetime.fromtimestamp(stat.st_mtime, timezone.utc).isoformat(),
            ))

        files.sort(key=lambda f: f.modified_at, reverse=True)
        return files

    async def read_file_chunk(self, name: str, index: int, chunk_size: int) -> bytes:
        """
        Read bytes [index*chunk_size, index*chunk_size + chunk_size) of a file.

        Raises:
            ValueError: For a bad name, chunk_size <= 0, or an offset past EOF
            FileNotFoundError: If the file doesn't exist
        """
        if chunk_size <= 0:
            raise ValueError("chunk_size must be greater than 0")
        if index < 0:
            raise ValueError("index must not be negative")

        path = self.resolve(name)
        size = path.stat().st_size
        start = index * chunk_size
        if start >= size:
            raise ValueError(f"Chunk {index} is past the end of {name} ({size} bytes)")

        async with aiofiles.open(path, 'rb') as f:
            await f.seek(start)
            return await f.read(chunk_size)

    async def build_batch_archive(self, names: Sequence[str]) -> bytes:
        """
        Pack stored files into an in-memory gzip'd tarball.

        Raises:
            ValueError: For a bad name
            FileNotFoundError: If a file is missing
        """
        paths = [self.resolve(name) for name in names]
        return await asyncio.to_thread(self._build_archive, paths)

    @staticmethod
    def _build_archive(paths: List[Path]) -> bytes:
        buffer = io.BytesIO()
        with tarfile.open(fileobj=buffer, mode='w:gz') as tf:
            for path in paths:
                tf.add(path, arcname=path.name)
        logger.debug(f"Built archive of {len(paths)} files ({buffer.tell():,} bytes)")
        return buffer.getvalue()
