"""
Transfer Errors

Every failure a transfer operation can produce is a subclass of
TransferError carrying the structured details (counts, indices, ids)
the calling layer needs to build an actionable message.
"""


class TransferError(Exception):
    """
    Base exception class for all transfer-related errors.
    """
    pass


class SessionNotFound(TransferError):
    """
    Raised when a session id is unknown, completed, or cancelled.
    """

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Transfer not found: {session_id}")


class ChunkIndexOutOfRange(TransferError):
    """
    Raised when a chunk index falls outside 0..total_chunks-1.
    """

    def __init__(self, total_chunks: int, index: int):
        self.total_chunks = total_chunks
        self.index = index
        super().__init__(
            f"Chunk index out of range: expected index below {total_chunks}, got {index}"
        )


class InvalidChunkSize(TransferError):
    """
    Raised when a transfer is created with a non-positive chunk size.
    """

    def __init__(self, chunk_size: int):
        self.chunk_size = chunk_size
        super().__init__(f"Invalid chunk_size: must be greater than 0 (got {chunk_size})")


class IncompleteTransfer(TransferError):
    """
    Raised when completion is requested before every chunk has arrived.
    """

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Transfer incomplete: expected {expected} chunks, received {actual}"
        )


class IOFailure(TransferError):
    """
    Raised when chunk storage or reassembly hits a filesystem error.

    The original OSError is chained as __cause__.
    """

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"IO error: {reason}")


class InvalidChunkHash(TransferError):
    """
    Raised when a caller-supplied chunk hash does not match the received bytes.

    Only produced when the caller opts in by sending an expected hash.
    """

    def __init__(self, index: int, expected: str, actual: str):
        self.index = index
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Invalid chunk hash for chunk {index}: "
            f"expected {expected[:16]}..., got {actual[:16]}..."
        )


class FileTooLarge(TransferError):
    """
    Raised when a declared size exceeds the configured maximum.

    Only produced when max_file_size is configured.
    """

    def __init__(self, total_size: int, limit: int):
        self.total_size = total_size
        self.limit = limit
        super().__init__(f"File too large: {total_size:,} bytes exceeds limit of {limit:,}")


class InvalidTotalSize(TransferError):
    """
    Raised when a transfer is created with a negative total size.
    """

    def __init__(self, total_size: int):
        self.total_size = total_size
        super().__init__(f"Invalid total_size: must not be negative (got {total_size})")


class InvalidFilename(TransferError):
    """
    Raised when a filename is not a plain name inside the storage directory.

    Separators, '.', '..', empty names and NUL bytes are all rejected.
    """

    def __init__(self, filename: str):
        self.filename = filename
        super().__init__(f"Invalid filename: {filename!r}")
