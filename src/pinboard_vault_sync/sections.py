"""Idempotent section and properties-block merges into markdown documents.

A heading section is the heading line plus every following line up to the next
heading of the same or a higher level (fewer ``#``), so sub-headings belong to
the section. A properties block is a ``---`` delimited block starting on the
first line of a document.

The merge is planned once as a ``TextEdit`` against the current text and then
applied either to a live editor buffer, when the document is open, or to the
stored text.
"""

import logging
import re
from typing import NamedTuple, Optional, Protocol, TypeVar

logger = logging.getLogger(__name__)

PROPERTIES_DELIMITER = "---"

_HEADING = re.compile(r"^(#{1,6})\s+\S")

Doc = TypeVar("Doc")


class Position(NamedTuple):
    """A (line, column) location in a document."""

    line: int
    ch: int


class LiveBuffer(Protocol):
    """An open editor buffer that must be edited in place."""

    def replace_range(self, text: str, from_pos: Position, to_pos: Position) -> None:
        ...

    def insert_at(self, text: str, pos: Position) -> None:
        ...


class DocumentStore(Protocol[Doc]):
    """Storage for documents identified by ``Doc`` handles."""

    async def read(self, doc: Doc) -> str:
        ...

    async def write(self, doc: Doc, text: str) -> None:
        ...

    def get_live_buffer(self, doc: Doc) -> Optional[LiveBuffer]:
        ...


class TextEdit(NamedTuple):
    """Replace the text between ``start`` and ``end`` with ``text``."""

    start: Position
    end: Position
    text: str

    @property
    def is_insert(self) -> bool:
        return self.start == self.end

    def apply(self, document: str) -> str:
        lines = document.split("\n")
        start = _offset(lines, self.start)
        end = _offset(lines, self.end)
        return document[:start] + self.text + document[end:]

    def apply_to_buffer(self, buffer: LiveBuffer) -> None:
        if self.is_insert:
            buffer.insert_at(self.text, self.start)
        else:
            buffer.replace_range(self.text, self.start, self.end)


def _offset(lines: list[str], pos: Position) -> int:
    return sum(len(line) + 1 for line in lines[: pos.line]) + pos.ch


def get_heading_level(line: str = "") -> Optional[int]:
    """Return the number of leading ``#`` of a markdown heading, else None."""
    match = _HEADING.match(line)
    return len(match.group(1)) if match else None


def find_section(lines: list[str], heading: str) -> tuple[Optional[int], Optional[int]]:
    """Locate the section owned by ``heading``.

    Returns ``(start, end)`` line indices, ``end`` being exclusive. ``start`` is
    None when the heading is absent and ``end`` is None when the section runs
    to the end of the document. A heading without ``#`` never ends a section.
    """
    level = get_heading_level(heading)
    start: Optional[int] = None
    for i, line in enumerate(lines):
        if line.strip() == heading:
            start = i
        elif start is not None:
            current = get_heading_level(line)
            if current is not None and level is not None and current <= level:
                return start, i
    return start, None


def plan_section_edit(document: str, heading: str, section: str) -> TextEdit:
    """Plan replacing (or appending) ``heading``'s section with ``section``."""
    lines = document.split("\n")
    end_of_document = Position(len(lines) - 1, len(lines[-1]))
    start, end = find_section(lines, heading)

    if start is None:
        return TextEdit(end_of_document, end_of_document, f"\n\n{section}")

    if end is None:
        return TextEdit(Position(start, 0), end_of_document, section)
    return TextEdit(Position(start, 0), Position(end, 0), f"{section}\n")


def merge_section(document: str, heading: str, section: str) -> str:
    return plan_section_edit(document, heading, section).apply(document)


def merge_properties(document: str, properties: str) -> str:
    """Put ``properties`` at the top of ``document``, replacing a leading block."""
    lines = document.split("\n")
    markers = [i for i, line in enumerate(lines) if line == PROPERTIES_DELIMITER]
    if len(markers) > 1 and markers[0] == 0:
        lines = lines[markers[1] + 1 :]
    return "\n".join([properties, *lines])


async def update_section(
    store: DocumentStore[Doc], doc: Doc, heading: str, section: str
) -> None:
    """Replace or append the section under ``heading`` in ``doc``.

    An open live buffer is edited in place so the editor keeps its undo
    history; otherwise the stored text is rewritten.
    """
    document = await store.read(doc)
    edit = plan_section_edit(document, heading, section)

    buffer = store.get_live_buffer(doc)
    if buffer is not None:
        logger.debug("Merging section %r into open buffer for %s", heading, doc)
        edit.apply_to_buffer(buffer)
        return

    logger.debug("Merging section %r into %s", heading, doc)
    await store.write(doc, edit.apply(document))


async def update_properties(store: DocumentStore[Doc], doc: Doc, properties: str) -> None:
    """Replace or insert the leading properties block of ``doc``.

    Always writes to storage: per-pin notes are not expected to be open.
    """
    document = await store.read(doc)
    logger.debug("Merging properties into %s", doc)
    await store.write(doc, merge_properties(document, properties))
