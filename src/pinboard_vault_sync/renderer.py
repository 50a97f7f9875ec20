"""Markdown rendering of pins for daily-note sections and per-pin properties."""

import json
import re
from typing import Sequence

from pinboard_vault_sync.models import Post
from pinboard_vault_sync.sections import PROPERTIES_DELIMITER
from pinboard_vault_sync.settings import Settings

TAG_MARKER = "#"
TAG_SEPARATOR = "-"
NEWLINE_SEPARATOR = "\n  "

_TAG_UNSAFE = re.compile(r"[\s:]+")


def _one_line(text: str) -> str:
    # A pasted "## ..." line would end the section on the next merge
    return " ".join(line.strip() for line in text.splitlines() if line.strip())


class PinRenderer:
    """Formats posts according to the user's settings."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def render_tags(self, post: Post, omit_marker: bool = False) -> list[str]:
        """Return the post's tags as vault tags, e.g. ``#pinboard/work-stuff``."""
        marker = "" if omit_marker else TAG_MARKER
        prefix = self.settings.tag_prefix
        return [
            f"{marker}{prefix}{_TAG_UNSAFE.sub(TAG_SEPARATOR, name).lower()}"
            for name in post.tag_names
            if name
        ]

    def render_pin(self, post: Post) -> str:
        separator = NEWLINE_SEPARATOR if self.settings.newline_separator else " "
        tags = " ".join(self.render_tags(post))
        line = (
            f"- [{_one_line(post.description)}]({post.href})"
            f"{separator}{_one_line(post.extended)}{separator}{tags}"
        )
        return line.rstrip()

    def render_pin_properties(self, post: Post) -> str:
        """Render a leading properties block for a per-pin note.

        Free-text values are written as JSON strings, which are valid YAML
        scalars and keep the block to one line per key.
        """
        tags = self.render_tags(post, omit_marker=True)
        if self.settings.pin_note_tag:
            tags.insert(0, self.settings.pin_note_tag)

        lines = [
            PROPERTIES_DELIMITER,
            f"href: {post.href}",
            f"tags: {', '.join(tags)}",
            f"description: {json.dumps(post.description)}",
            f"extended: {json.dumps(post.extended)}",
            f"time: {post.time.isoformat() if post.time else ''}",
            f"toread: {json.dumps(post.toread)}",
            f"shared: {json.dumps(post.shared)}",
            PROPERTIES_DELIMITER,
        ]
        return "\n".join(lines)

    def render(self, posts: Sequence[Post]) -> str:
        """Render the section heading followed by one line per post."""
        return "\n".join([self.settings.section_heading, *map(self.render_pin, posts)])
