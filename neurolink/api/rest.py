"""
REST API for the Transfer Service

Design Decision: Response Envelope
==================================

Every JSON endpoint answers with the same envelope:
    {"success": bool, "data": ... | null, "error": str | null}

Transfer errors map onto HTTP status codes:
- 400: InvalidChunkSize, ChunkIndexOutOfRange, IncompleteTransfer,
       InvalidChunkHash, FileTooLarge, InvalidTotalSize, InvalidFilename
- 404: SessionNotFound
- 500: IOFailure

Request-shape problems (missing fields, wrong types) are left to
FastAPI's validation and come back as 422.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, File, Form, HTTPException, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, Response
from pydantic import BaseModel, Field

from ..transfer import (
    ChunkIndexOutOfRange, FileTooLarge, IncompleteTransfer, InvalidChunkHash,
    InvalidChunkSize, InvalidFilename, InvalidTotalSize, IOFailure, SessionNotFound,
    TransferError,
)
from ..service import BatchNotFound, TransferService

logger = logging.getLogger(__name__)

VERSION = "2.0.0"

ERROR_STATUS = {
    InvalidChunkSize: 400,
    ChunkIndexOutOfRange: 400,
    IncompleteTransfer: 400,
    InvalidChunkHash: 400,
    FileTooLarge: 400,
    InvalidTotalSize: 400,
    InvalidFilename: 400,
    SessionNotFound: 404,
    IOFailure: 500,
}


# === Pydantic Models ===

class InitTransferRequest(BaseModel):
    """Request to open a transfer."""
    filename: str
    total_size: int = Field(..., ge=0)
    chunk_size: int
    batch_id: Optional[str] = None


class CompleteTransferRequest(BaseModel):
    """Request to finalize a transfer."""
    transfer_id: str


class InitTransferResponse(BaseModel):
    transfer_id: str
    total_chunks: int


class ChunkResponse(BaseModel):
    chunk_hash: str
    received_count: int
    total_chunks: int


class StatusResponse(BaseModel):
    transfer_id: str
    status: str
    progress: str


class ApiResponse(BaseModel):
    """Common envelope for JSON responses."""
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None


def ok(data: Any = None) -> dict:
    return ApiResponse(success=True, data=data).model_dump()


def fail(error: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ApiResponse(success=False, error=error).model_dump(),
    )


def error_status(exc: TransferError) -> int:
    for error_type, status_code in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return status_code
    return 500


# === API Creation ===

def create_app(service: TransferService) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        service: TransferService instance to expose

    Returns:
        FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Handle startup and shutdown."""
        logger.info(f"API server starting (storage: {service.storage_dir})")
        yield
        logger.info("API server stopping...")

    app = FastAPI(
        title="NeuroLink Transfer API",
        description="Chunked file transfer service",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(TransferError)
    async def transfer_error_handler(request, exc: TransferError):
        status_code = error_status(exc)
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=exc)
        else:
            logger.info(f"{request.method} {request.url.path} rejected: {exc}")
        return fail(str(exc), status_code)

    # === Endpoints ===

    @app.get("/", tags=["General"])
    async def root():
        """API root - basic info (JSON; no upload page is served)."""
        return {
            "name": "NeuroLink",
            "version": VERSION,
            "status": "running",
        }

    @app.get("/health", tags=["General"])
    async def health_check():
        """Health check."""
        return ok("healthy")

    @app.get("/stats", tags=["General"])
    async def get_stats():
        """Counts of active and completed transfers."""
        return ok(service.get_stats())

    # === Transfers ===

    @app.post("/transfer/init", tags=["Transfers"])
    async def init_transfer(request: InitTransferRequest):
        """Open a chunked transfer."""
        logger.info(f"Init transfer request: {request.filename} ({request.total_size} bytes)")

        result = await service.create_transfer(
            request.filename, request.total_size, request.chunk_size, request.batch_id
        )
        return ok(InitTransferResponse(
            transfer_id=result['session_id'],
            total_chunks=result['total_chunks'],
        ).model_dump())

    @app.post("/transfer/chunk", tags=["Transfers"])
    async def receive_chunk(
        transfer_id: str = Form(...),
        chunk_index: int = Form(...),
        chunk: UploadFile = File(...),
        chunk_hash: Optional[str] = Form(None),
    ):
        """Upload one chunk as multipart form data."""
        data = await chunk.read()
        result = await service.submit_chunk(
            transfer_id, chunk_index, data, expected_hash=chunk_hash
        )
        return ok(ChunkResponse(
            chunk_hash=result['content_hash'],
            received_count=result['received_count'],
            total_chunks=result['total_chunks'],
        ).model_dump())

    @app.post("/transfer/complete", tags=["Transfers"])
    async def complete_transfer(request: CompleteTransferRequest):
        """Reassemble a fully uploaded transfer."""
        result = await service.finalize_transfer(request.transfer_id)
        return ok({
            "transfer_id": result['session_id'],
            "filename": result['filename'],
            "status": result['status'],
            "final_hash": result['final_hash'],
        })

    @app.get("/transfer/{transfer_id}/status", tags=["Transfers"])
    async def get_status(transfer_id: str):
        """Progress of an active transfer."""
        result = await service.query_status(transfer_id)
        if result is None:
            return fail("Transfer not found", 404)

        return ok(StatusResponse(
            transfer_id=result['session_id'],
            status=result['status'],
            progress=f"{result['progress_percent']}%",
        ).model_dump())

    @app.delete("/transfer/{transfer_id}", tags=["Transfers"])
    async def cancel_transfer(transfer_id: str):
        """Abort a transfer and discard its chunks."""
        await service.cancel_transfer(transfer_id)
        return ok({"transfer_id": transfer_id, "status": "cancelled"})

    # === Files ===

    @app.get("/files", tags=["Files"])
    async def list_files():
        """Files in the storage directory, newest first."""
        try:
            return ok(service.list_files())
        except OSError as e:
            logger.error(f"Error listing files: {e}", exc_info=True)
            return fail(str(e), 500)

    @app.get("/uploads", tags=["Files"])
    async def list_uploads():
        """Completed uploads grouped into batches."""
        return ok(await service.list_completed_batches())

    @app.get("/download/batch/{batch_id}", tags=["Files"])
    async def download_batch(batch_id: str):
        """All files of a batch as a .tar.gz."""
        try:
            archive = await service.build_batch_archive(batch_id)
        except BatchNotFound:
            raise HTTPException(status_code=404, detail="Batch not found")
        except (OSError, ValueError) as e:
            logger.error(f"Failed to build archive for {batch_id}: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=f"Failed to build archive: {e}")

        return Response(
            content=archive,
            media_type="application/gzip",
            headers={
                "Content-Disposition": f'attachment; filename="upload-{batch_id}.tar.gz"',
            },
        )

    @app.get("/download/chunk/{filename}", tags=["Files"])
    async def download_chunk(
        filename: str,
        index: int = Query(..., ge=0),
        chunk_size: int = Query(...),
    ):
        """One byte range of a stored file."""
        try:
            data = await service.read_file_chunk(filename, index, chunk_size)
        except (OSError, ValueError) as e:
            raise HTTPException(status_code=400, detail=f"Chunk download failed: {e}")

        return Response(
            content=data,
            media_type="application/octet-stream",
            headers={
                "Content-Disposition": f'attachment; filename="{filename}.part{index}"',
            },
        )

    @app.get("/shared/{filename}", tags=["Files"])
    async def get_shared_file(filename: str):
        """Serve a stored file."""
        try:
            path = service.storage.resolve(filename)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid file name")
        if not path.is_file():
            raise HTTPException(status_code=404, detail="File not found")
        return FileResponse(path, filename=filename)

    return app


async def run_api_server(service: TransferService, host: str = "0.0.0.0", port: int = 3030,
                         log_level: str = "info"):
    """
    Run the API server.

    Args:
        service: TransferService instance
        host: Host to bind to
        port: Port to listen on
    """
    import uvicorn

    app = create_app(service)

    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level=log_level,
    )
    server = uvicorn.Server(config)
    await server.serve()
