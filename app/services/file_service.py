"""File handling service for uploads referenced by posts, comments, avatars and banners."""
import io
import logging
import re
import uuid
from pathlib import Path
from typing import BinaryIO, Iterable, Optional

from PIL import Image, UnidentifiedImageError
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import BadRequestError, NotFoundError
from app.models.stored_file import StoredFile

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp"}
CONTENT_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
}
_EXTENSION_RE = re.compile(r"\.\w+$")


class FileService:
    """Service for handling file uploads and storage."""

    def __init__(self, upload_dir: Optional[str] = None, max_size: Optional[int] = None):
        self.upload_dir = Path(upload_dir or settings.uploads_dir)
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        self.max_size = max_size or settings.max_upload_size

    def path_for(self, stored: StoredFile) -> Path:
        return self.upload_dir / f"{stored.token}{stored.extension}"

    def save(self, db: Session, stream: BinaryIO, filename: str) -> StoredFile:
        """
        Store an uploaded file under a fresh token.

        Args:
            db: Database session
            stream: Readable binary stream of the upload
            filename: Client-supplied file name (used for the extension)

        Returns:
            The persisted StoredFile

        Raises:
            BadRequestError: If the file is empty, too large or a broken image
        """
        contents = stream.read(self.max_size + 1)
        if not contents:
            raise BadRequestError("Unable to process file upload.")
        if len(contents) > self.max_size:
            raise BadRequestError("File too large. Please upload a file smaller than 1MB.")

        name = Path(filename or "upload").name
        match = _EXTENSION_RE.search(name)
        extension = match.group(0).lower() if match else ""
        if extension in IMAGE_EXTENSIONS:
            self._verify_image(contents)

        stored = StoredFile(token=str(uuid.uuid4()), name=name, extension=extension)
        path = self.path_for(stored)
        with open(path, "wb") as f:
            f.write(contents)

        db.add(stored)
        try:
            db.commit()
        except Exception:
            db.rollback()
            path.unlink(missing_ok=True)
            raise
        logger.info("Stored upload %s (%d bytes)", stored.token, len(contents))
        return stored

    def _verify_image(self, contents: bytes) -> None:
        try:
            with Image.open(io.BytesIO(contents)) as img:
                img.verify()
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            logger.info("Rejected upload that is not a valid image: %s", e)
            raise BadRequestError("Uploaded file is not a valid image")

    def get(self, db: Session, token: str) -> StoredFile:
        stored = db.get(StoredFile, token)
        if stored is None or not self.path_for(stored).exists():
            raise NotFoundError("File not found.")
        return stored

    def content_type(self, stored: StoredFile) -> str:
        return CONTENT_TYPES.get(stored.extension, "application/octet-stream")

    def missing_tokens(self, db: Session, tokens: Iterable[str]) -> list[str]:
        """Return the tokens that do not reference a stored file."""
        wanted = {token for token in tokens if token}
        if not wanted:
            return []
        found = {
            token
            for (token,) in db.query(StoredFile.token).filter(StoredFile.token.in_(wanted))
        }
        return sorted(wanted - found)

    def require_tokens(self, db: Session, tokens: Iterable[str]) -> None:
        missing = self.missing_tokens(db, tokens)
        if missing:
            raise BadRequestError(f"Unknown file token: {missing[0]}")
