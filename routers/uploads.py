import asyncio
from typing import Optional

from fastapi import APIRouter, File, HTTPException, Request, UploadFile

from errors import RejectedType, TooLarge
from logging_config import get_logger
from schemas.uploads import UploadResponse

logger = get_logger(__name__)

uploads_router = APIRouter(tags=["uploads"])


@uploads_router.post("/upload", response_model=UploadResponse)
async def upload_file(request: Request, file: Optional[UploadFile] = File(None)):
    # Clients upload here first, then announce the returned path with a fileShared event
    if file is None or not file.filename:
        logger.warning(f"Upload rejected from {request.client.host if request.client else 'unknown'}: no file")
        raise HTTPException(status_code=400, detail="No file uploaded")

    blob_store = request.app.state.blob_store
    mime = file.content_type or "application/octet-stream"

    # Read one byte past the limit so oversize files are detected without loading them whole
    data = await file.read(blob_store.max_bytes + 1)
    try:
        loop = asyncio.get_running_loop()
        blob = await loop.run_in_executor(None, blob_store.store, data, file.filename, mime)
    except RejectedType as e:
        logger.warning(f"Upload '{file.filename}' rejected: {e.message}")
        raise HTTPException(status_code=415, detail=e.message)
    except TooLarge as e:
        logger.warning(f"Upload '{file.filename}' rejected: {e.message}")
        raise HTTPException(status_code=413, detail=e.message)
    finally:
        await file.close()

    return UploadResponse(success=True, path=blob.path, name=blob.name, mime=blob.mime)
