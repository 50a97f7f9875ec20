"""Filesystem vault: daily notes, per-pin notes, and live buffer registration."""

import asyncio
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Any, Optional, Union

import pendulum

from pinboard_vault_sync.models import Post
from pinboard_vault_sync.sections import LiveBuffer

logger = logging.getLogger(__name__)

MAX_FILENAME_LENGTH = 50
NOTE_EXTENSION = ".md"
DAILY_NOTE_FORMAT = "YYYY-MM-DD"

_UNSAFE_FILENAME = re.compile(r"[^a-zA-Z0-9\s._-]")

Timezone = Union[str, pendulum.Timezone, None]


def format_as_filename(text: str) -> str:
    """Keep letters, digits, whitespace, dots, hyphens and underscores, capped in length."""
    return _UNSAFE_FILENAME.sub("", text).strip()[:MAX_FILENAME_LENGTH]


def localize(moment: datetime, tz: Timezone = None) -> pendulum.DateTime:
    """Convert ``moment`` to ``tz`` (the local zone by default).

    Naive datetimes are taken to already be in ``tz``.
    """
    zone = tz or pendulum.local_timezone()
    if moment.tzinfo is None:
        return pendulum.instance(moment, tz=zone)
    return pendulum.instance(moment).in_timezone(zone)


def pin_fields(post: Post) -> dict[str, str]:
    return {
        "description": post.description,
        "href": post.href,
        "extended": post.extended,
        "shared": str(post.shared).lower(),
        "toread": str(post.toread).lower(),
        "tags": ",".join(post.tag_names),
    }


def pin_note_path(post: Post, folder: str, template: str, tz: Timezone = None) -> str:
    """Relative vault path of the note for ``post``.

    ``template`` is a date format (``YYYY-MM/[{description}]``); ``{field}``
    tokens left in the formatted result are replaced with filename-safe values.
    """
    when = localize(post.time, tz) if post.time else pendulum.now(tz)
    name = when.format(template)
    for field, value in pin_fields(post).items():
        name = name.replace(f"{{{field}}}", format_as_filename(value))
    return normalize_path(f"{folder}/{name}{NOTE_EXTENSION}")


def normalize_path(path: str) -> str:
    """Collapse duplicate and leading/trailing slashes."""
    return str(PurePosixPath(*[part for part in path.split("/") if part]))


class Vault:
    """A directory of markdown notes.

    Notes are addressed by paths relative to ``root``. Blocking file access
    runs on a single worker thread.
    """

    def __init__(self, root: Path, tz: Timezone = None):
        self.root = Path(root)
        self.tz = tz
        self._buffers: dict[str, LiveBuffer] = {}
        self._executor = ThreadPoolExecutor(max_workers=1)

    async def _run_in_executor(self, func, *args) -> Any:
        """Run a synchronous function in the thread pool."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, func, *args)

    def _full_path(self, note: str) -> Path:
        return self.root / note

    def daily_note_path(
        self, day: datetime, folder: str = "", fmt: str = DAILY_NOTE_FORMAT
    ) -> str:
        name = localize(day, self.tz).format(fmt)
        return normalize_path(f"{folder}/{name}{NOTE_EXTENSION}")

    def pin_note_path(self, post: Post, folder: str, template: str) -> str:
        return pin_note_path(post, folder, template, self.tz)

    async def exists(self, note: str) -> bool:
        return await self._run_in_executor(self._full_path(note).is_file)

    async def get_daily_note(
        self, day: datetime, folder: str = "", fmt: str = DAILY_NOTE_FORMAT
    ) -> Optional[str]:
        note = self.daily_note_path(day, folder, fmt)
        return note if await self.exists(note) else None

    async def create_daily_note(
        self, day: datetime, folder: str = "", fmt: str = DAILY_NOTE_FORMAT
    ) -> str:
        note = self.daily_note_path(day, folder, fmt)
        await self.touch(note)
        logger.info("Created daily note %s", note)
        return note

    async def touch(self, note: str) -> None:
        """Create ``note`` and its folders if they do not exist yet."""

        def _touch() -> None:
            path = self._full_path(note)
            path.parent.mkdir(parents=True, exist_ok=True)
            if not path.exists():
                path.write_text("", encoding="utf-8")

        await self._run_in_executor(_touch)

    async def read(self, note: str) -> str:
        return await self._run_in_executor(self._full_path(note).read_text, "utf-8")

    async def write(self, note: str, text: str) -> None:
        await self._run_in_executor(self._full_path(note).write_text, text, "utf-8")

    def open_buffer(self, note: str, buffer: LiveBuffer) -> None:
        """Register an editor buffer currently showing ``note``."""
        self._buffers[note] = buffer

    def close_buffer(self, note: str) -> None:
        self._buffers.pop(note, None)

    def get_live_buffer(self, note: str) -> Optional[LiveBuffer]:
        return self._buffers.get(note)

    async def close(self) -> None:
        """Close the vault and clean up resources."""
        self._executor.shutdown(wait=True)
