"""
Unit tests for FileService.
"""
import io

import pytest
from sqlalchemy.orm import Session

from app.errors import BadRequestError, NotFoundError
from app.models import StoredFile
from app.services.file_service import FileService
from tests.factories import create_stored_file
from tests.fixtures.images import jpeg_bytes, png_bytes


@pytest.fixture
def service(tmp_path) -> FileService:
    return FileService(upload_dir=str(tmp_path), max_size=64 * 1024)


class TestSave:
    """Tests for storing uploads."""

    def test_save_png(self, db: Session, service: FileService):
        stored = service.save(db, io.BytesIO(png_bytes()), "Cat.PNG")

        assert stored.extension == ".png"
        assert stored.name == "Cat.PNG"
        assert service.path_for(stored).read_bytes() == png_bytes()
        assert db.get(StoredFile, stored.token) is not None

    def test_tokens_are_unique(self, db: Session, service: FileService):
        first = service.save(db, io.BytesIO(png_bytes()), "a.png")
        second = service.save(db, io.BytesIO(png_bytes()), "a.png")

        assert first.token != second.token

    def test_non_image_kept_as_is(self, db: Session, service: FileService):
        stored = service.save(db, io.BytesIO(b"hello"), "notes.txt")

        assert stored.extension == ".txt"
        assert service.content_type(stored) == "application/octet-stream"

    def test_client_path_is_stripped(self, db: Session, service: FileService):
        stored = service.save(db, io.BytesIO(b"hello"), "../../etc/passwd")

        assert stored.name == "passwd"
        assert service.path_for(stored).parent == service.upload_dir

    def test_empty_upload_rejected(self, db: Session, service: FileService):
        with pytest.raises(BadRequestError):
            service.save(db, io.BytesIO(b""), "empty.png")

    def test_oversized_upload_rejected(self, db: Session, service: FileService):
        with pytest.raises(BadRequestError):
            service.save(db, io.BytesIO(b"x" * (64 * 1024 + 1)), "big.bin")

        assert db.query(StoredFile).count() == 0

    def test_fake_image_rejected(self, db: Session, service: FileService):
        with pytest.raises(BadRequestError):
            service.save(db, io.BytesIO(b"definitely not a png"), "fake.png")

        assert list(service.upload_dir.iterdir()) == []


class TestLookup:
    """Tests for fetching files and validating tokens."""

    def test_get_and_content_type(self, db: Session, service: FileService):
        stored = service.save(db, io.BytesIO(jpeg_bytes()), "photo.jpg")

        found = service.get(db, stored.token)

        assert found.token == stored.token
        assert service.content_type(found) == "image/jpeg"

    @pytest.mark.parametrize("extension, expected", [(".gif", "image/gif"), (".webp", "image/webp")])
    def test_content_type_for_other_images(self, db: Session, service: FileService, extension, expected):
        stored = create_stored_file(db, name=f"anim{extension}", extension=extension)

        assert service.content_type(stored) == expected

    def test_get_unknown_token(self, db: Session, service: FileService):
        with pytest.raises(NotFoundError):
            service.get(db, "missing")

    def test_get_row_without_file(self, db: Session, service: FileService):
        stored = create_stored_file(db)

        with pytest.raises(NotFoundError):
            service.get(db, stored.token)

    def test_missing_tokens(self, db: Session, service: FileService):
        stored = create_stored_file(db)

        assert service.missing_tokens(db, [stored.token, "nope", ""]) == ["nope"]
        assert service.missing_tokens(db, []) == []

    def test_require_tokens(self, db: Session, service: FileService):
        stored = create_stored_file(db)

        service.require_tokens(db, [stored.token])
        with pytest.raises(BadRequestError):
            service.require_tokens(db, [stored.token, "nope"])
