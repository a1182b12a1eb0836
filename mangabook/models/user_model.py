from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.orm import relationship

from mangabook.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(30), unique=True, index=True, nullable=False)  # stored lowercased
    email = Column(String(320), unique=True, index=True, nullable=False)    # stored lowercased
    password = Column(String, nullable=False)
    recovery_keyword = Column(String, nullable=False)
    display_name = Column(String(50))
    avatar_url = Column(String(2048))

    theme = Column(String(10), default="dark", nullable=False)  # light | dark | auto
    items_per_page = Column(Integer, default=20, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)
    profile_public = Column(Boolean, default=False, nullable=False)
    lists_public = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    last_login = Column(DateTime(timezone=True), nullable=True)

    manga_list = relationship("MangaList", uselist=False, cascade="all, delete-orphan", back_populates="owner")

    def to_safe_dict(self) -> dict:
        """Public view of the account; never includes either hash."""
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "displayName": self.display_name,
            "avatarUrl": self.avatar_url,
            "preferences": {"theme": self.theme, "itemsPerPage": self.items_per_page},
            "isActive": self.is_active,
            "profilePublic": self.profile_public,
            "listsPublic": self.lists_public,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "lastLogin": self.last_login.isoformat() if self.last_login else None,
        }
