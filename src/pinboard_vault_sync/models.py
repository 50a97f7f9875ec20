"""Data models for Pinboard API responses."""

import logging
from datetime import datetime
from typing import Any, ClassVar, Optional, Union

from dateutil.parser import parse as parse_date
from pydantic import BaseModel, Field

from pinboard_vault_sync.errors import DecodeError, RequestValidationError

logger = logging.getLogger(__name__)

TRUE_FLAGS = ("yes", "true", "1", 1)
FALSE_FLAGS = ("no", "false", "0", 0)


def parse_flag(value: Union[str, int, bool]) -> bool:
    """Normalize Pinboard's yes/no style flags to a bool."""
    if isinstance(value, bool):
        return value
    if value in TRUE_FLAGS:
        return True
    if value in FALSE_FLAGS:
        return False
    raise DecodeError(f"Unable to parse flag {value!r}")


def parse_time(value: Optional[str]) -> Optional[datetime]:
    """Parse an API timestamp, returning None for missing values."""
    if not value:
        return None
    return parse_date(value)


class Tag(BaseModel):
    """A bookmark tag, with a usage count when the API reports one."""

    name: str = Field(description="The tag name")
    count: Optional[int] = Field(None, description="Number of bookmarks with this tag")


class Post(BaseModel):
    """A Pinboard bookmark ("pin")."""

    href: str = Field(description="The bookmarked URL")
    description: str = Field(default="", description="The bookmark title")
    extended: str = Field(default="", description="Free-form notes")
    meta: str = Field(default="", description="Change-detection signature")
    hash: str = Field(default="", description="Hash of the URL")
    time: Optional[datetime] = Field(None, description="When the bookmark was saved")
    shared: bool = Field(default=True, description="Whether the bookmark is public")
    toread: bool = Field(default=False, description="Whether it is marked unread")
    tags: list[Tag] = Field(default_factory=list, description="Tags, in API order")

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> "Post":
        """Create a Post from one entry of a posts/* response."""
        return cls(
            href=data["href"],
            description=data.get("description", ""),
            extended=data.get("extended", ""),
            meta=data.get("meta", ""),
            hash=data.get("hash", ""),
            time=parse_time(data.get("time")),
            shared=parse_flag(data.get("shared", "yes")),
            toread=parse_flag(data.get("toread", "no")),
            tags=[Tag(name=name) for name in (data.get("tags") or "").split()],
        )

    @property
    def tag_names(self) -> list[str]:
        return [tag.name for tag in self.tags]


class PostCollection(BaseModel):
    """The posts returned by one posts/get or posts/recent call."""

    date: Optional[datetime] = Field(None, description="Server time of the response")
    user: str = Field(default="", description="Owner of the bookmarks")
    posts: list[Post] = Field(default_factory=list)

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> "PostCollection":
        collection = cls(
            date=parse_time(data.get("date")),
            user=data.get("user", ""),
            posts=[Post.from_response(post) for post in data.get("posts", [])],
        )
        logger.debug("Got a PostCollection with %d posts", len(collection.posts))
        return collection


class Note(BaseModel):
    """A Pinboard note. ``text`` is only populated by the single-note fetch."""

    id: str
    title: str = ""
    create_date: Optional[datetime] = None
    update_date: Optional[datetime] = None
    hash: str = ""
    text: Optional[str] = None

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> "Note":
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            create_date=parse_time(data.get("created_at")),
            update_date=parse_time(data.get("updated_at")),
            hash=data.get("hash", ""),
            text=data.get("text"),
        )


class NotePost(BaseModel):
    """A note joined with the bookmark Pinboard creates for its public URL."""

    note: Note
    post: Post


class ApiToken(BaseModel):
    """A Pinboard API token of the form ``user:secret``."""

    SEPARATOR: ClassVar[str] = ":"

    user: str
    secret: str

    @classmethod
    def from_string(cls, token: str) -> "ApiToken":
        parts = token.split(cls.SEPARATOR)
        if len(parts) != 2 or not parts[0] or not parts[1]:
            raise RequestValidationError("Invalid API token string")
        return cls(user=parts[0], secret=parts[1])

    def __str__(self) -> str:
        return f"{self.user}{self.SEPARATOR}{self.secret}"


class SyncReport(BaseModel):
    """Outcome of one sync run."""

    success: bool
    posts: int = Field(default=0, description="Number of posts fetched")
    daily_notes: list[str] = Field(
        default_factory=list, description="Daily notes that were merged"
    )
    pin_notes: list[str] = Field(
        default_factory=list, description="Per-pin notes that were merged"
    )
    latest_sync_time: Optional[int] = Field(
        None, description="Unix time recorded for a successful run"
    )
    error: Optional[str] = Field(None, description="Failure reason")
