"""Tests for section and properties merges."""

from typing import Optional

import pytest

from pinboard_vault_sync.sections import (
    Position,
    find_section,
    get_heading_level,
    merge_properties,
    merge_section,
    plan_section_edit,
    update_properties,
    update_section,
)

HEADING = "## Pinboard"
SECTION = "## Pinboard\n- [One](https://one.example)\n- [Two](https://two.example)"


class FakeBuffer:
    """Editor buffer that applies edits to its own text."""

    def __init__(self, text: str):
        self.text = text
        self.calls: list[tuple] = []

    def _offset(self, pos: Position) -> int:
        lines = self.text.split("\n")
        return sum(len(line) + 1 for line in lines[: pos.line]) + pos.ch

    def replace_range(self, text: str, from_pos: Position, to_pos: Position) -> None:
        self.calls.append(("replace_range", text, from_pos, to_pos))
        start, end = self._offset(from_pos), self._offset(to_pos)
        self.text = self.text[:start] + text + self.text[end:]

    def insert_at(self, text: str, pos: Position) -> None:
        self.calls.append(("insert_at", text, pos))
        offset = self._offset(pos)
        self.text = self.text[:offset] + text + self.text[offset:]


class MemoryStore:
    """In-memory DocumentStore."""

    def __init__(self, documents: dict[str, str], buffers: Optional[dict] = None):
        self.documents = documents
        self.buffers = buffers or {}
        self.writes: list[str] = []

    async def read(self, doc: str) -> str:
        return self.documents[doc]

    async def write(self, doc: str, text: str) -> None:
        self.writes.append(doc)
        self.documents[doc] = text

    def get_live_buffer(self, doc: str):
        return self.buffers.get(doc)


class TestHeadingLevel:
    """Test heading detection."""

    @pytest.mark.parametrize(
        "line, level",
        [("# Title", 1), ("## Pinboard", 2), ("###### Deep", 6), ("##\tTabbed", 2)],
    )
    def test_headings(self, line, level):
        assert get_heading_level(line) == level

    @pytest.mark.parametrize("line", ["#nospace", "", "plain text", "## ", "####### seven", " # indented"])
    def test_not_headings(self, line):
        assert get_heading_level(line) is None


class TestFindSection:
    """Test section boundary detection."""

    def test_ends_at_sibling_heading(self):
        lines = ["# Day", HEADING, "- a", "### Sub", "- b", "## Other", "text"]

        assert find_section(lines, HEADING) == (1, 5)

    def test_ends_at_higher_heading(self):
        lines = [HEADING, "- a", "# Top"]

        assert find_section(lines, HEADING) == (0, 2)

    def test_runs_to_end(self):
        lines = ["intro", HEADING, "- a", "#hashtag"]

        assert find_section(lines, HEADING) == (1, None)

    def test_missing(self):
        assert find_section(["# Day", "text"], HEADING) == (None, None)

    def test_matches_trimmed_line(self):
        assert find_section(["  ## Pinboard  ", "- a"], HEADING) == (0, None)


class TestMergeSection:
    """Test heading-section merges on plain text."""

    def test_replaces_only_target_section(self):
        before = "# Day\nIntro\n"
        after = "## Later\nKeep me\n### Sub\nalso kept"
        document = f"{before}{HEADING}\n- [Old](https://old.example)\n### Old sub\n- gone\n{after}"

        result = merge_section(document, HEADING, SECTION)

        assert result == f"{before}{SECTION}\n{after}"

    def test_appends_when_missing(self):
        document = "# Day\n\nSome notes"

        result = merge_section(document, HEADING, SECTION)

        assert result == document + "\n\n" + SECTION

    def test_appends_to_empty_document(self):
        assert merge_section("", HEADING, SECTION) == "\n\n" + SECTION

    @pytest.mark.parametrize(
        "document",
        [
            "",
            "# Day\n\nSome notes",
            f"# Day\n{HEADING}\n- old\n## Other\nx",
            f"# Day\n{HEADING}\n- old\n",
        ],
    )
    def test_idempotent(self, document):
        once = merge_section(document, HEADING, SECTION)
        twice = merge_section(once, HEADING, SECTION)

        assert twice == once

    def test_section_at_end_replaced_through_end(self):
        document = f"# Day\n{HEADING}\n- old\n- older\n"

        assert merge_section(document, HEADING, SECTION) == f"# Day\n{SECTION}"

    def test_plan_for_missing_section_is_insert(self):
        edit = plan_section_edit("a\nbc", HEADING, SECTION)

        assert edit.is_insert
        assert edit.start == Position(1, 2)
        assert edit.text == "\n\n" + SECTION


class TestUpdateSection:
    """Test update_section against storage and live buffers."""

    @pytest.mark.asyncio
    async def test_writes_to_storage_without_buffer(self):
        store = MemoryStore({"day.md": f"# Day\n{HEADING}\n- old\n## Other"})

        await update_section(store, "day.md", HEADING, SECTION)

        assert store.documents["day.md"] == f"# Day\n{SECTION}\n## Other"
        assert store.writes == ["day.md"]

    @pytest.mark.asyncio
    async def test_edits_live_buffer_in_place(self):
        document = f"# Day\n{HEADING}\n- old\n## Other"
        buffer = FakeBuffer(document)
        store = MemoryStore({"day.md": document}, {"day.md": buffer})

        await update_section(store, "day.md", HEADING, SECTION)

        assert store.writes == []
        assert buffer.calls == [
            ("replace_range", f"{SECTION}\n", Position(1, 0), Position(3, 0))
        ]
        assert buffer.text == f"# Day\n{SECTION}\n## Other"

    @pytest.mark.asyncio
    async def test_appends_to_live_buffer(self):
        buffer = FakeBuffer("# Day")
        store = MemoryStore({"day.md": "# Day"}, {"day.md": buffer})

        await update_section(store, "day.md", HEADING, SECTION)

        assert buffer.calls == [("insert_at", "\n\n" + SECTION, Position(0, 5))]
        assert buffer.text == "# Day\n\n" + SECTION

    @pytest.mark.asyncio
    async def test_buffer_and_storage_paths_agree(self):
        document = f"intro\n{HEADING}\n- old\n### sub\n- x\n# Next\nend"
        buffer = FakeBuffer(document)
        with_buffer = MemoryStore({"d": document}, {"d": buffer})
        without_buffer = MemoryStore({"d": document})

        await update_section(with_buffer, "d", HEADING, SECTION)
        await update_section(without_buffer, "d", HEADING, SECTION)

        assert buffer.text == without_buffer.documents["d"]


PROPERTIES = "---\nhref: https://example.com\ntags: pinboard\n---"


class TestMergeProperties:
    """Test properties-block merges."""

    def test_replaces_leading_block(self):
        document = "---\nhref: old\n---\n# Body\n\ntext\n---\nafter rule"

        result = merge_properties(document, PROPERTIES)

        assert result == f"{PROPERTIES}\n# Body\n\ntext\n---\nafter rule"

    def test_prepends_when_no_block(self):
        document = "# Body\n---\nnot properties\n---"

        assert merge_properties(document, PROPERTIES) == f"{PROPERTIES}\n{document}"

    def test_prepends_when_only_one_marker(self):
        document = "---\nunterminated"

        assert merge_properties(document, PROPERTIES) == f"{PROPERTIES}\n{document}"

    def test_idempotent(self):
        once = merge_properties("Body", PROPERTIES)

        assert merge_properties(once, PROPERTIES) == once

    @pytest.mark.asyncio
    async def test_update_properties_ignores_live_buffer(self):
        buffer = FakeBuffer("Body")
        store = MemoryStore({"pin.md": "Body"}, {"pin.md": buffer})

        await update_properties(store, "pin.md", PROPERTIES)

        assert store.documents["pin.md"] == f"{PROPERTIES}\nBody"
        assert buffer.calls == []
