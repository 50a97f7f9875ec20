"""Pinboard API client built from composable request descriptors."""

import asyncio
import logging
from datetime import date, datetime
from typing import Any, Awaitable, Optional, Sequence

from pinboard_vault_sync.errors import JoinError, RequestValidationError
from pinboard_vault_sync.models import (
    ApiToken,
    Note,
    NotePost,
    PostCollection,
    Tag,
    parse_time,
)
from pinboard_vault_sync.request import HttpClient, QueryParam, RequestDescriptor

logger = logging.getLogger(__name__)

API_HOST = "api.pinboard.in"
API_VERSION = "v1"
NOTES_HOST = "notes.pinboard.in"

MAX_TAGS = 3
MAX_RECENT_COUNT = 100


def _check_tags(tags: Sequence[str]) -> None:
    if len(tags) > MAX_TAGS:
        raise RequestValidationError(
            f"Only {MAX_TAGS} tags are supported for this request"
        )


def _tag_params(tags: Sequence[str]) -> list[QueryParam]:
    return [QueryParam.create("tag", tag) for tag in tags]


class PostsEndpoint:
    """posts/* calls.

    ``get`` and ``recent`` validate their arguments when called and only then
    hand back an awaitable, so a bad argument never reaches the network.
    """

    noun = "posts"

    def __init__(self, base_request: RequestDescriptor, http: Optional[HttpClient] = None):
        self.request = base_request.clone(sub_path=[self.noun])
        self.http = http or HttpClient()

    async def update(self) -> Optional[datetime]:
        """Return the time of the most recent change to any bookmark."""
        result = await self.http.execute(self.request.clone(sub_path=["update"]))
        logger.debug("Last update time: %s", result.get("update_time"))
        return parse_time(result.get("update_time"))

    def get(
        self,
        tags: Sequence[str] = (),
        dt: Optional[date] = None,
        url: Optional[str] = None,
        include_meta: bool = False,
        encode_url: bool = True,
    ) -> Awaitable[PostCollection]:
        """Fetch bookmarks for a single date, or the one matching ``url``."""
        _check_tags(tags)
        params = _tag_params(tags)
        if dt is not None:
            day = dt.date() if isinstance(dt, datetime) else dt
            params.append(QueryParam.create("dt", day.isoformat()))
        if url:
            params.append(QueryParam.create("url", url, encode_value=encode_url))
        params.append(QueryParam.create("meta", "yes" if include_meta else "no"))
        return self._fetch_collection(
            self.request.clone(sub_path=["get"], query_params=params)
        )

    def recent(
        self, tags: Sequence[str] = (), count: Optional[int] = None
    ) -> Awaitable[PostCollection]:
        """Fetch the most recent bookmarks, optionally filtered by up to 3 tags."""
        _check_tags(tags)
        if count is not None and not 0 <= count <= MAX_RECENT_COUNT:
            raise RequestValidationError(
                f"Invalid value for 'count': '{count}'. "
                f"Must be between 0-{MAX_RECENT_COUNT}."
            )
        params = _tag_params(tags)
        if count:
            params.append(QueryParam.create("count", str(count)))
        return self._fetch_collection(
            self.request.clone(sub_path=["recent"], query_params=params)
        )

    async def _fetch_collection(self, request: RequestDescriptor) -> PostCollection:
        result = await self.http.execute(request)
        return PostCollection.from_response(result)


class TagsEndpoint:
    """tags/* calls."""

    noun = "tags"

    def __init__(self, base_request: RequestDescriptor, http: Optional[HttpClient] = None):
        self.request = base_request.clone(sub_path=[self.noun])
        self.http = http or HttpClient()

    async def get(self) -> list[Tag]:
        result = await self.http.execute(self.request.clone(sub_path=["get"]))
        tags = [Tag(name=name, count=int(count)) for name, count in result.items()]
        logger.debug("Got %d tags", len(tags))
        return tags

    async def rename(self, old: str, new: str) -> Any:
        request = self.request.clone(
            sub_path=["rename"],
            query_params=[QueryParam.create("old", old), QueryParam.create("new", new)],
        )
        result = await self.http.execute(request)
        logger.debug("Got result: %s", result)
        return result


class NotesEndpoint:
    """notes/* calls."""

    noun = "notes"

    def __init__(self, base_request: RequestDescriptor, http: Optional[HttpClient] = None):
        self.request = base_request.clone(sub_path=[self.noun])
        self.http = http or HttpClient()

    async def list(self) -> list[Note]:
        """List note metadata. The listing never includes note text."""
        result = await self.http.execute(self.request.clone(sub_path=["list"]))
        return [Note.from_response(note) for note in result.get("notes", [])]

    def get(self, note_id: str) -> Awaitable[Note]:
        """Fetch one note including its text."""
        if not note_id:
            raise RequestValidationError("An empty string is an invalid note id")
        return self._fetch_note(self.request.clone(sub_path=[note_id]))

    async def _fetch_note(self, request: RequestDescriptor) -> Note:
        result = await self.http.execute(request)
        return Note.from_response(result)


class NotePostsEndpoint:
    """Joins notes with the bookmarks Pinboard keeps for them.

    Pinboard stores a note's tags on a separate bookmark pointing at the note's
    public URL (``https://notes.pinboard.in/u:USER/NOTE_ID``), so a full note
    takes two calls: notes/ID for the text, then posts/get?url=... for the tags.
    """

    def __init__(
        self,
        notes: NotesEndpoint,
        posts: PostsEndpoint,
        notes_request: RequestDescriptor,
    ):
        self.notes = notes
        self.posts = posts
        self.notes_request = notes_request

    def note_url(self, note_id: str) -> str:
        return self.notes_request.clone(sub_path=[note_id]).full_url

    async def get(self, note_id: str) -> NotePost:
        note = await self.notes.get(note_id)
        return await self._join(note)

    async def list(self) -> list[NotePost]:
        """Fetch every note with its bookmark. Any failed join fails the whole call."""
        # notes/list omits the text, so each note is fetched again in full
        metadata = await self.notes.list()
        return list(await asyncio.gather(*(self.get(note.id) for note in metadata)))

    async def _join(self, note: Note) -> NotePost:
        url = self.note_url(note.id)
        collection = await self.posts.get(url=url, encode_url=False)
        if len(collection.posts) != 1:
            raise JoinError(
                f"Expected to find bookmark for URL {url}, "
                f"but found {len(collection.posts)} instead."
            )
        return NotePost(note=note, post=collection.posts[0])


class PinboardClient:
    """Pinboard API client: one shared, authenticated base request per endpoint."""

    def __init__(
        self,
        token: str,
        http: Optional[HttpClient] = None,
        base_request: Optional[RequestDescriptor] = None,
        notes_request: Optional[RequestDescriptor] = None,
    ):
        """Initialize the client from a ``user:secret`` API token."""
        self.api_token = ApiToken.from_string(token)
        self.http = http or HttpClient()

        base_request = base_request or RequestDescriptor(
            host=API_HOST, base_path=[API_VERSION]
        )
        self.base_request = base_request.clone(
            query_params=[
                QueryParam.create("auth_token", str(self.api_token), encode_value=False),
                QueryParam.create("format", "json"),
            ]
        ).model_copy(update={"parse_json": True})

        notes_request = notes_request or RequestDescriptor(host=NOTES_HOST)
        self.notes_request = notes_request.clone(sub_path=[f"u:{self.api_token.user}"])

        self.posts = PostsEndpoint(self.base_request, self.http)
        self.tags = TagsEndpoint(self.base_request, self.http)
        self.notes = NotesEndpoint(self.base_request, self.http)
        self.note_posts = NotePostsEndpoint(self.notes, self.posts, self.notes_request)

        logger.debug("Pinboard client for user %s set up", self.api_token.user)
