"""Entry points: an MCP server and a periodic sync daemon."""

import asyncio
import logging
import os
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator

from fastmcp import Context, FastMCP  # type: ignore

from pinboard_vault_sync import tools
from pinboard_vault_sync.settings import SettingsStore
from pinboard_vault_sync.sync import PinboardSync
from pinboard_vault_sync.vault import Vault

SETTINGS_FILE = ".pinboard-sync.json"

# Global service - will be initialized in main()
service: PinboardSync


@asynccontextmanager
async def server_lifespan(server: FastMCP) -> AsyncIterator[dict[str, Any]]:
    """Arm periodic sync once the server loop is running."""
    service.start()
    try:
        yield {}
    finally:
        service.cancel_scheduled_sync()


# Initialize FastMCP server
mcp = FastMCP("Pinboard Vault Sync", lifespan=server_lifespan)


@mcp.tool
async def sync_pinboard(ctx: Context, accept_disclaimer: bool = False) -> dict[str, Any]:
    """Sync recent Pinboard bookmarks into the vault now.

    Args:
        accept_disclaimer: Accept that the sync may create or modify many notes
    """
    params = tools.SyncPinboardParams(accept_disclaimer=accept_disclaimer)
    report = await tools.sync_pinboard(service)(params, ctx)
    return report.model_dump()


@mcp.tool
async def list_recent_pins(
    ctx: Context,
    tags: list[str] | None = None,
    count: int = 20
) -> dict[str, Any]:
    """List the most recent bookmarks.

    Args:
        tags: Tags to filter by (0-3 tags)
        count: Number of bookmarks to return (0-100, default 20)
    """
    params = tools.ListRecentPinsParams(tags=tags or [], count=count)
    posts = await tools.list_recent_pins(service)(params, ctx)

    return {
        "posts": [post.model_dump(mode="json") for post in posts],
        "total": len(posts),
    }


@mcp.tool
async def list_tags(ctx: Context) -> list[dict[str, Any]]:
    """List all tags with their usage counts."""
    tags = await tools.list_tags(service)(ctx)

    return [tag.model_dump() for tag in tags]


@mcp.tool
async def rename_tag(ctx: Context, old: str, new: str) -> Any:
    """Rename a tag on every bookmark.

    Args:
        old: Current tag name
        new: New tag name
    """
    params = tools.RenameTagParams(old=old, new=new)
    return await tools.rename_tag(service)(params, ctx)


@mcp.tool
async def list_notes(ctx: Context) -> list[dict[str, Any]]:
    """List all notes with their text and tags."""
    note_posts = await tools.list_notes(service)(ctx)

    return [note_post.model_dump(mode="json") for note_post in note_posts]


@mcp.tool
async def get_note(ctx: Context, note_id: str) -> dict[str, Any]:
    """Fetch one note with its text and tags.

    Args:
        note_id: Pinboard note id
    """
    params = tools.GetNoteParams(note_id=note_id)
    note_post = await tools.get_note(service)(params, ctx)
    return note_post.model_dump(mode="json")


def configure_logging() -> None:
    logging.basicConfig(
        level=os.getenv("PINBOARD_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def build_service() -> PinboardSync:
    """Build the sync service from the environment and stored settings."""
    vault_dir = os.getenv("PINBOARD_VAULT")
    if not vault_dir:
        print("Error: PINBOARD_VAULT environment variable is required", file=sys.stderr)
        sys.exit(1)

    root = Path(vault_dir).expanduser()
    store = SettingsStore(Path(os.getenv("PINBOARD_SETTINGS") or root / SETTINGS_FILE))
    # PINBOARD_TOKEN is used for this process only, never saved
    token = os.getenv("PINBOARD_TOKEN") or None

    return PinboardSync(Vault(root), store, api_token=token)


def main() -> None:
    """Run the MCP server."""
    global service

    try:
        configure_logging()
        service = build_service()

        # Run the server
        mcp.run()
    except KeyboardInterrupt:
        print("\nServer stopped", file=sys.stderr)
    except Exception as e:
        print(f"Error starting server: {e}", file=sys.stderr)
        sys.exit(1)


async def _run_forever(sync_service: PinboardSync) -> None:
    sync_service.start()
    if not sync_service.scheduler.armed:
        print(
            "Error: periodic sync is disabled; set is_sync_enabled and "
            "has_accepted_disclaimer in the settings file",
            file=sys.stderr,
        )
        sys.exit(1)
    try:
        await asyncio.Event().wait()
    finally:
        sync_service.cancel_scheduled_sync()
        await sync_service.vault.close()


def run_daemon() -> None:
    """Sync on the configured interval until interrupted."""
    try:
        configure_logging()
        asyncio.run(_run_forever(build_service()))
    except KeyboardInterrupt:
        print("\nSync stopped", file=sys.stderr)


if __name__ == "__main__":
    main()
