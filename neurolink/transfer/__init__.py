"""
Transfer Module - Chunked Upload Sessions

Tracks in-flight uploads chunk by chunk and reassembles them into final
files once every chunk has arrived.
"""

from .batches import BatchIndex, UploadBatch, UploadedFile, single_batch_id
from .chunk_store import ChunkStore
from .errors import (
    TransferError,
    SessionNotFound,
    ChunkIndexOutOfRange,
    InvalidChunkSize,
    IncompleteTransfer,
    IOFailure,
    InvalidChunkHash,
    FileTooLarge,
    InvalidTotalSize,
    InvalidFilename,
)
from .models import (
    Pending,
    InProgress,
    Completed,
    Failed,
    TransferStatus,
    TransferMetadata,
    TransferSession,
    ChunkRecord,
    CompletedUpload,
    chunk_count,
)
from .reassembler import Reassembler
from .registry import TransferRegistry

__all__ = [
    'BatchIndex',
    'UploadBatch',
    'UploadedFile',
    'single_batch_id',
    'ChunkStore',
    'TransferError',
    'SessionNotFound',
    'ChunkIndexOutOfRange',
    'InvalidChunkSize',
    'IncompleteTransfer',
    'IOFailure',
    'InvalidChunkHash',
    'FileTooLarge',
    'InvalidTotalSize',
    'InvalidFilename',
    'Pending',
    'InProgress',
    'Completed',
    'Failed',
    'TransferStatus',
    'TransferMetadata',
    'TransferSession',
    'ChunkRecord',
    'CompletedUpload',
    'chunk_count',
    'Reassembler',
    'TransferRegistry',
]
