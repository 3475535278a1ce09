"""
Batch Index

Append-only history of completed uploads, grouped for listing and
bulk download.

Grouping rules:
- Records sharing a batch_id form one batch
- Files within a batch: oldest first
- Batches: most recent upload first
- Sorting is stable, so equal timestamps keep arrival order

History lives only in memory and is empty after a restart.
"""

import asyncio
from dataclasses import dataclass
from typing import Dict, List

from .models import CompletedUpload


def single_batch_id(session_id: str) -> str:
    """Synthetic batch id for an upload that wasn't given one."""
    return f"single_{session_id}"


@dataclass
class UploadedFile:
    """One file as shown inside a batch."""
    name: str
    size: int
    uploaded_at: str

    def to_dict(self) -> Dict:
        return {
            'name': self.name,
            'size': self.size,
            'uploaded_at': self.uploaded_at,
        }


@dataclass
class UploadBatch:
    """A group of completed uploads."""
    batch_id: str
    uploaded_at: str  # Latest upload time in the batch
    files: List[UploadedFile]

    def to_dict(self) -> Dict:
        return {
            'batch_id': self.batch_id,
            'uploaded_at': self.uploaded_at,
            'files': [f.to_dict() for f in self.files],
        }


class BatchIndex:
    """
    Append-only list of CompletedUpload records.
    """

    def __init__(self):
        self._records: List[CompletedUpload] = []
        self._lock = asyncio.Lock()

    async def record(self, upload: CompletedUpload):
        """Append a completed upload."""
        async with self._lock:
            self._records.append(upload)

    async def records(self) -> List[CompletedUpload]:
        """Copy of every record, in insertion order."""
        async with self._lock:
            return list(self._records)

    async def list_batches(self) -> List[UploadBatch]:
        """Group all records into batches, newest batch first."""
        async with self._lock:
            grouped: Dict[str, List[CompletedUpload]] = {}
            for item in self._records:
                grouped.setdefault(item.batch_id, []).append(item)

        batches = []
        for batch_id, items in grouped.items():
            items.sort(key=lambda u: u.uploaded_at)
            batches.append((items[-1].uploaded_at, UploadBatch(
                batch_id=batch_id,
                uploaded_at=items[-1].uploaded_at.isoformat(),
                files=[
                    UploadedFile(
                        name=u.name,
                        size=u.size,
                        uploaded_at=u.uploaded_at.isoformat(),
                    )
                    for u in items
                ],
            )))

        batches.sort(key=lambda pair: pair[0], reverse=True)
        return [batch for _, batch in batches]

    async def files_for_batch(self, batch_id: str) -> List[CompletedUpload]:
        """Uploads belonging to one batch, oldest first. Empty if unknown."""
        async with self._lock:
            items = [u for u in self._records if u.batch_id == batch_id]
        items.sort(key=lambda u: u.uploaded_at)
        return items

    def __len__(self) -> int:
        return len(self._records)
