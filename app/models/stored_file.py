from sqlalchemy import Column, String

from app.database import Base
from app.models.types import UTCDateTime, utcnow


class StoredFile(Base):
    """Uploaded file; bytes live at ``<uploads_dir>/<token><extension>``."""
    __tablename__ = "files"

    token = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)
    extension = Column(String(16), nullable=False)
    created_at = Column(UTCDateTime, default=utcnow)
