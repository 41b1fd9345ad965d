"""Video record model.

A record is created by its owner before any media is uploaded; the upload
pipeline later fills in ``video_url`` once the remuxed file is in storage.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from tubely.core.database import Base


class Video(Base):
    """Video record owned by a single user."""

    __tablename__ = "videos"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    thumbnail_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    video_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    def is_owned_by(self, user_id: uuid.UUID | str) -> bool:
        """Check whether ``user_id`` owns this record."""
        return self.user_id == str(user_id)

    def __repr__(self) -> str:
        return f"<Video(id={self.id}, user_id={self.user_id}, title={self.title!r})>"
