# filedrive/models/file.py
from datetime import datetime

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from filedrive.models.database import Base


class FileMeta(Base):
    __tablename__ = "files"

    id = Column(Integer, primary_key=True, index=True)
    filename = Column(String, nullable=False)          # Display name, changed by rename
    original_name = Column(String, nullable=True)      # Name user uploaded
    mime_type = Column(String, nullable=True)
    resource_type = Column(String, nullable=True)      # Blob store kind hint
    url = Column(String, nullable=True)                # Blob locator
    public_id = Column(String, nullable=True)          # Blob id in the object store
    path = Column(String, nullable=True)               # Local disk path (legacy rows)
    size = Column(BigInteger, nullable=False, default=0)  # Size in bytes
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Many files → one owner (User)
    owner = relationship("User", back_populates="files")
