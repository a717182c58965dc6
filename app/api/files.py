"""File upload and download."""

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from app.dependencies import get_db, get_file_service
from app.services.file_service import FileService


router = APIRouter(tags=["files"])


@router.post("/file", status_code=201)
def upload_file(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    files: FileService = Depends(get_file_service),
):
    """Store an upload (1 MiB max) and return its token."""
    stored = files.save(db, file.file, file.filename or "")
    return {"token": stored.token}


@router.get("/file/{token}")
def download_file(
    token: str,
    db: Session = Depends(get_db),
    files: FileService = Depends(get_file_service),
):
    stored = files.get(db, token)
    return FileResponse(
        files.path_for(stored),
        media_type=files.content_type(stored),
        headers={"Content-Disposition": f'inline; filename="{stored.name}"'},
    )
