import uuid

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response, StreamingResponse
from starlette.background import BackgroundTask

from upload_server.logger_config import setup_logger, structured_log
from upload_server.middleware import RequestBodyTooLargeError
from upload_server.responses import UploadResponse
from upload_server.storage import (
    BlobNotFoundError,
    BlobReader,
    Capability,
    OperationNotSupportedError,
    StorageBackend,
    StorageError,
)
from upload_server.validation import InvalidFilenameError, validate_filename

logger = setup_logger()

router = APIRouter()

PREFLIGHT_METHODS = "POST,PUT,GET,HEAD"
PREFLIGHT_HEADERS = "Authorization,Content-Type"


def get_storage(request: Request) -> StorageBackend:
    return request.app.state.storage


def check_filename(name: str) -> str:
    """Validate a user supplied name and raise HTTPException if invalid."""
    try:
        return validate_filename(name)
    except InvalidFilenameError as e:
        logger.info(structured_log("Invalid filename", filename=name))
        raise HTTPException(status_code=400, detail=str(e))


def generate_filename() -> str:
    return uuid.uuid4().hex


def backend_failure(err: StorageError, operation: str, filename: str) -> HTTPException:
    """Log a backend failure and turn it into a 500 the client can see."""
    if isinstance(err, OperationNotSupportedError):
        logger.error(structured_log(
            "Storage backend does not support this operation; check the server configuration",
            operation=operation,
            filename=filename,
            cause=err,
        ))
        return HTTPException(status_code=500, detail=str(err))

    logger.error(structured_log(
        f"Failed to {operation} file",
        filename=filename,
        cause=err,
        bytes_written=getattr(err, "bytes_written", None),
    ))
    return HTTPException(status_code=500, detail=f"failed to {operation} file")


def require(storage: StorageBackend, capability: Capability, filename: str):
    if not storage.supports(capability):
        raise backend_failure(
            OperationNotSupportedError(storage.name, capability), capability.value, filename
        )


async def store_upload(storage: StorageBackend, filename: str, request: Request) -> UploadResponse:
    require(storage, Capability.WRITE, filename)
    try:
        size = await storage.write(filename, request.stream())
    except RequestBodyTooLargeError as e:
        logger.warning(structured_log("Upload rejected", filename=filename, error=e))
        raise HTTPException(status_code=413, detail=str(e))
    except StorageError as e:
        raise backend_failure(e, "write", filename)

    logger.info(structured_log(
        f"file uploaded by {request.method}",
        path=request.url.path,
        filename=filename,
        size=size,
    ))
    return UploadResponse(filename=filename)


@router.options("/files")
@router.options("/files/{name}")
async def preflight():
    return Response(
        status_code=204,
        headers={
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": PREFLIGHT_METHODS,
            "Access-Control-Allow-Headers": PREFLIGHT_HEADERS,
        },
    )


@router.head("/files/{name}", status_code=204)
async def probe_file(name: str, storage: StorageBackend = Depends(get_storage)):
    """Answer 204 when the file exists and 404 when it does not."""
    check_filename(name)
    require(storage, Capability.EXISTS, name)
    try:
        found = await storage.exists(name)
    except StorageError as e:
        raise backend_failure(e, "probe", name)

    if not found:
        raise HTTPException(status_code=404, detail=f"\"{name}\" is not found")
    return Response(status_code=204)


@router.get("/files/{name}")
async def download_file(name: str, storage: StorageBackend = Depends(get_storage)):
    check_filename(name)
    require(storage, Capability.READ, name)
    try:
        reader = await storage.read(name)
    except BlobNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StorageError as e:
        raise backend_failure(e, "read", name)

    logger.info(structured_log("Serving file", filename=name))

    async def file_iterator(blob: BlobReader):
        try:
            async for chunk in blob:
                yield chunk
        finally:
            await blob.close()

    return StreamingResponse(
        file_iterator(reader),
        media_type="application/octet-stream",
        background=BackgroundTask(reader.close),
    )


@router.put("/files/{name}", status_code=201, response_model=UploadResponse)
async def upload_file(name: str, request: Request, storage: StorageBackend = Depends(get_storage)):
    """Store the request body under the given name, replacing any previous file."""
    check_filename(name)
    return await store_upload(storage, name, request)


@router.post("/files", status_code=201, response_model=UploadResponse)
async def upload_generated(request: Request, storage: StorageBackend = Depends(get_storage)):
    """Store the request body under a freshly generated name."""
    try:
        filename = generate_filename()
    except Exception as e:
        logger.error(structured_log("Failed to generate filename", cause=e))
        raise HTTPException(status_code=500, detail="failed to generate filename")
    return await store_upload(storage, filename, request)
