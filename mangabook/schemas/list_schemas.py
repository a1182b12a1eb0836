from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Dict, List, Literal, Optional, Union

from mangabook.config import DEFAULT_IMAGE_URL

EntryStatus = Literal["plan-to-read", "reading", "completed", "dropped", "on-hold"]


def _check_http_url(v: Optional[str]) -> Optional[str]:
    if not isinstance(v, str):
        return v
    v = v.strip()
    if v and not (v.startswith("http://") or v.startswith("https://")):
        raise ValueError("Image URL must be a valid HTTP/HTTPS URL")
    return v


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MangaEntry(CamelModel):
    id: Optional[str] = None
    name: str = Field(min_length=1, max_length=200)
    chapter: Union[int, float] = Field(0, ge=0, le=9999)
    image_url: str = DEFAULT_IMAGE_URL
    mal_id: Optional[int] = None
    author: Optional[str] = Field(None, max_length=100)
    status: EntryStatus = "plan-to-read"
    user_rating: Optional[int] = Field(None, ge=1, le=10)
    user_notes: Optional[str] = Field(None, max_length=1000)
    synopsis: Optional[str] = Field(None, max_length=2000)
    added_at: Optional[datetime] = None
    last_updated: Optional[datetime] = None

    @field_validator("name", "author", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("image_url", mode="before")
    @classmethod
    def default_blank_image(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return DEFAULT_IMAGE_URL
        return _check_http_url(v)


class MangaEntryPatch(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    chapter: Optional[Union[int, float]] = Field(None, ge=0, le=9999)
    image_url: Optional[str] = None
    mal_id: Optional[int] = None
    author: Optional[str] = Field(None, max_length=100)
    status: Optional[EntryStatus] = None
    user_rating: Optional[int] = Field(None, ge=1, le=10)
    user_notes: Optional[str] = Field(None, max_length=1000)
    synopsis: Optional[str] = Field(None, max_length=2000)

    @field_validator("image_url")
    @classmethod
    def validate_image_url(cls, v):
        return _check_http_url(v)


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=50)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Category name is required")
        return v


class CategoryRename(CategoryCreate):
    pass


class AddMangaRequest(CamelModel):
    category_name: str = Field(min_length=1, max_length=50)
    manga: MangaEntry


# GET /list and POST /list speak this: category name -> entries, in order
CategoryMapPayload = Dict[str, List[MangaEntry]]


class PaginatedEntries(CamelModel):
    entries: List[dict]
    total_entries: int
    current_page: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool


class PublicListOut(CamelModel):
    username: str
    display_name: Optional[str] = None
    total_entries: int
    last_activity: Optional[datetime] = None
    categories: Dict[str, List[dict]]
