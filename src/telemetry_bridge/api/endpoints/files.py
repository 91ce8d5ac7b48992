from fastapi import APIRouter, File, Form, UploadFile
from fastapi.responses import FileResponse
from typing import Any, Dict, Optional
import traceback
from ..dependencies import FileGatewayDependency
from ..responses import failure, failure_response
from ...models.api import DownloadRequest
from ...utils.exceptions import BridgeError, ValidationError
from ...utils.logging import get_logger

logger = get_logger(__name__)

files_router = APIRouter()


@files_router.get("/files", response_model=None)
async def list_files(files: FileGatewayDependency):
    """Files in the default upload directory"""
    try:
        return await files.list_files()
    except Exception as e:
        logger.error(f"Failed to list files: {traceback.format_exc()}")
        return failure_response(e, "Failed to list files")


@files_router.delete("/delete/{filename}", response_model=None)
async def delete_file(filename: str, files: FileGatewayDependency):
    try:
        await files.delete_file(filename)
        return {"success": True}
    except BridgeError as e:
        logger.warning(f"Delete of {filename!r} rejected: {str(e)}")
        return failure_response(e, "Failed to delete file")
    except Exception as e:
        logger.error(f"Failed to delete {filename!r}: {traceback.format_exc()}")
        return failure_response(e, "Failed to delete file")


@files_router.post("/upload")
async def upload_file(
    files: FileGatewayDependency,
    file: Optional[UploadFile] = File(None),
    button_name: Optional[str] = Form(None),
) -> Dict[str, Any]:
    try:
        if file is None or not file.filename:
            raise ValidationError("No file uploaded")
        filename = await files.receive_upload(file, file.filename, button_name or None)
        return {"filename": filename, "success": True, "error": ""}
    except BridgeError as e:
        logger.warning(f"Upload rejected: {str(e)}")
        return failure(e, "Upload failed", filename="")
    except Exception as e:
        logger.error(f"Upload failed: {traceback.format_exc()}")
        return failure(e, "Upload failed", filename="")
    finally:
        if file is not None:
            await file.close()


@files_router.post("/download", response_model=None)
async def download_file(request: DownloadRequest, files: FileGatewayDependency):
    """Stream the file on success, JSON status on failure"""
    try:
        path = await files.resolve_download(request.filename, request.button_name or None)
        return FileResponse(path, media_type="application/octet-stream", filename=path.name)
    except BridgeError as e:
        logger.warning(f"Download of {request.filename!r} rejected: {str(e)}")
        return failure(e, "Download failed", filename="")
    except Exception as e:
        logger.error(f"Download failed: {traceback.format_exc()}")
        return failure(e, "Download failed", filename="")


@files_router.get("/browse", response_model=None)
async def browse(files: FileGatewayDependency, path: str = "", button_name: Optional[str] = None):
    try:
        return await files.browse(path, button_name or None)
    except BridgeError as e:
        logger.warning(f"Browse of {path!r} rejected: {str(e)}")
        return failure_response(e, "Failed to list directory")
    except Exception as e:
        logger.error(f"Failed to browse {path!r}: {traceback.format_exc()}")
        return failure_response(e, "Failed to list directory")
