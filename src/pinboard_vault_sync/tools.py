"""MCP tools for Pinboard sync and API operations."""

from typing import Any, Callable

from fastmcp import Context  # type: ignore
from pydantic import BaseModel, Field

from pinboard_vault_sync.models import NotePost, Post, SyncReport, Tag
from pinboard_vault_sync.sync import PinboardSync


class SyncPinboardParams(BaseModel):
    """Parameters for running a sync."""

    accept_disclaimer: bool = Field(
        default=False,
        description="Accept that syncing may create or modify many notes",
    )


class ListRecentPinsParams(BaseModel):
    """Parameters for listing recent pins."""

    tags: list[str] = Field(
        default_factory=list, description="Tags to filter by (0-3 tags)", max_length=3
    )
    count: int = Field(
        default=20, ge=0, le=100, description="Number of pins to return"
    )


class RenameTagParams(BaseModel):
    """Parameters for renaming a tag."""

    old: str = Field(min_length=1, description="Current tag name")
    new: str = Field(min_length=1, description="New tag name")


class GetNoteParams(BaseModel):
    """Parameters for fetching one note."""

    note_id: str = Field(min_length=1, description="Pinboard note id")


def sync_pinboard(service: PinboardSync) -> Callable:
    """Create the syncPinboard MCP tool."""

    async def _sync_pinboard(params: SyncPinboardParams, context: Context) -> SyncReport:
        """Sync recent pins into the vault now."""
        if params.accept_disclaimer and not service.settings.has_accepted_disclaimer:
            service.write_settings(has_accepted_disclaimer=True)
        report = await service.try_to_sync()
        if not report.success:
            await context.error(f"Pinboard sync failed: {report.error}")
        return report

    return _sync_pinboard


def list_recent_pins(service: PinboardSync) -> Callable:
    """Create the listRecentPins MCP tool."""

    async def _list_recent_pins(
        params: ListRecentPinsParams, context: Context
    ) -> list[Post]:
        """List the most recent pins."""
        try:
            collection = await service.client().posts.recent(
                tags=params.tags, count=params.count
            )
            return collection.posts
        except Exception as e:
            await context.error(f"Error listing recent pins: {e}")
            raise

    return _list_recent_pins


def list_tags(service: PinboardSync) -> Callable:
    """Create the listTags MCP tool."""

    async def _list_tags(context: Context) -> list[Tag]:
        """List all tags with their usage counts."""
        try:
            return await service.client().tags.get()
        except Exception as e:
            await context.error(f"Error listing tags: {e}")
            raise

    return _list_tags


def rename_tag(service: PinboardSync) -> Callable:
    """Create the renameTag MCP tool."""

    async def _rename_tag(params: RenameTagParams, context: Context) -> Any:
        """Rename a tag across all bookmarks."""
        try:
            return await service.client().tags.rename(params.old, params.new)
        except Exception as e:
            await context.error(f"Error renaming tag: {e}")
            raise

    return _rename_tag


def list_notes(service: PinboardSync) -> Callable:
    """Create the listNotes MCP tool."""

    async def _list_notes(context: Context) -> list[NotePost]:
        """List every note with its text and tags."""
        try:
            return await service.client().note_posts.list()
        except Exception as e:
            await context.error(f"Error listing notes: {e}")
            raise

    return _list_notes


def get_note(service: PinboardSync) -> Callable:
    """Create the getNote MCP tool."""

    async def _get_note(params: GetNoteParams, context: Context) -> NotePost:
        """Fetch one note with its text and tags."""
        try:
            return await service.client().note_posts.get(params.note_id)
        except Exception as e:
            await context.error(f"Error fetching note: {e}")
            raise

    return _get_note
