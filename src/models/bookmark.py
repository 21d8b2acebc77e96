"""Bookmark model for storing bookmarked pages and their captured metadata."""
from sqlalchemy import Boolean, Index, Text, false
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base, TimestampMixin


class Bookmark(Base, TimestampMixin):
    """Bookmark model - a URL with its title, notes, tags and archived blobs."""

    __tablename__ = "bookmarks"
    # SQLite reuses the highest rowid after a delete unless AUTOINCREMENT is set
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Free text, comma-separated by convention; not parsed server-side
    tags: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Blob store keys; None when the capture step failed
    snapshot_key: Mapped[str | None] = mapped_column(Text, nullable=True)
    favicon_key: Mapped[str | None] = mapped_column(Text, nullable=True)

    archived: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false(),
    )


Index("idx_bookmarks_created_at", Bookmark.created_at.desc())
Index("idx_bookmarks_tags", Bookmark.tags)
# Backstop for the pre-insert duplicate check: two concurrent creates of the same
# URL can both pass the check, only one of them can pass this index.
Index("uq_bookmarks_url", Bookmark.url, unique=True)
