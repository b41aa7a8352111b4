from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, String, ForeignKey, Text, DateTime, JSON, Index, text
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from .database import Base

# JSONB on Postgres, plain JSON elsewhere (sqlite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------
# ORIGINAL CONTENT
# ---------------------------
class OriginalContent(Base):
    __tablename__ = "original_content"

    id = Column(Integer, primary_key=True, index=True)
    content = Column(Text, nullable=False)
    content_hash = Column(String(64), unique=True, nullable=False)  # one row per distinct text
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    remixes = relationship("RemixOutput", back_populates="original_content")

    def __repr__(self):
        return f"<OriginalContent {self.id} {self.content_hash[:12]}>"


# ---------------------------
# REMIX OUTPUTS
# ---------------------------
class RemixOutput(Base):
    __tablename__ = "remix_outputs"

    id = Column(Integer, primary_key=True, index=True)
    original_content_id = Column(
        Integer, ForeignKey("original_content.id", ondelete="CASCADE"), nullable=False, index=True
    )
    remix_type = Column(String(64), nullable=False)
    remixed_content = Column(Text, nullable=False)
    # "metadata" is reserved on declarative classes
    meta = Column("metadata", JSONType, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    original_content = relationship("OriginalContent", back_populates="remixes")

    __table_args__ = (
        Index("ix_remix_outputs_created_at", "created_at"),
    )


# ---------------------------
# USER PREFERENCES
# ---------------------------
class UserPreferences(Base):
    __tablename__ = "user_preferences"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(128), nullable=True, unique=True, index=True)  # NULL = anonymous bucket
    favorite_remix_types = Column(JSONType, nullable=False, default=list)
    default_settings = Column(JSONType, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    # unique(user_id) lets NULLs repeat; this keeps the anonymous bucket to one row too
    __table_args__ = (
        Index(
            "uq_user_preferences_anonymous",
            text("(user_id IS NULL)"),
            unique=True,
            sqlite_where=text("user_id IS NULL"),
            postgresql_where=text("user_id IS NULL"),
        ),
    )


# ---------------------------
# TAGS
# ---------------------------
class Tag(Base):
    __tablename__ = "tags"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(64), unique=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    def __repr__(self):
        return f"<Tag {self.name}>"
