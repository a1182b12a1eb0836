# mangabook/models/manga_list.py
from sqlalchemy import Column, Integer, ForeignKey, Boolean, DateTime, JSON
from sqlalchemy.orm import relationship

from mangabook.database import Base
from mangabook.models.user_model import utcnow


class MangaList(Base):
    """One document per user: the ordered categories and their entries.

    ``categories`` is a JSON array of category objects (camelCase keys, the
    same shape the API speaks). Order in the array is the display order.
    Always assign a new list to it; in-place mutation is not tracked.
    """

    __tablename__ = "manga_lists"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    categories = Column(JSON, nullable=False, default=list)
    total_entries = Column(Integer, nullable=False, default=0)
    is_public = Column(Boolean, nullable=False, default=False, index=True)

    # bumped on every persisted change; exposed as the ETag of GET /list
    revision = Column(Integer, nullable=False, default=0)

    last_activity = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    owner = relationship("User", back_populates="manga_list")
