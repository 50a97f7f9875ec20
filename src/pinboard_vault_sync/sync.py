"""Periodic sync of recent pins into the vault."""

import asyncio
import logging
import sys
import time
from collections import defaultdict
from enum import Enum
from typing import Any, Callable, Optional, Sequence

import pendulum

from pinboard_vault_sync.client import PinboardClient
from pinboard_vault_sync.errors import PinboardError, SyncError
from pinboard_vault_sync.models import Post, PostCollection, SyncReport
from pinboard_vault_sync.renderer import PinRenderer
from pinboard_vault_sync.scheduler import Scheduler, next_sync_delay
from pinboard_vault_sync.sections import update_properties, update_section
from pinboard_vault_sync.settings import (
    SchedulerEffect,
    Settings,
    SettingsStore,
    update_settings,
)
from pinboard_vault_sync.vault import Timezone, Vault, localize

logger = logging.getLogger(__name__)

DISCLAIMER = (
    "Enabling sync will backfill your recent Pinboard into your vault. This "
    "means potentially creating or modifying hundreds of notes. Make sure to "
    "test the sync in a test vault before continuing."
)


class SyncState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    DISTRIBUTING = "distributing"
    PERSISTING = "persisting"
    SCHEDULED = "scheduled"
    REPORTED = "reported"


def print_notice(message: str) -> None:
    print(message, file=sys.stderr)


def group_by_day(
    posts: Sequence[Post], tz: Timezone = None
) -> dict[pendulum.DateTime, list[Post]]:
    """Group timestamped posts by the start of their local calendar day.

    Days and the posts within them keep fetch order.
    """
    days: dict[pendulum.DateTime, list[Post]] = defaultdict(list)
    for post in posts:
        if post.time is None:
            continue
        days[localize(post.time, tz).start_of("day")].append(post)
    return dict(days)


class PinboardSync:
    """Fetches recent pins and merges them into daily notes and per-pin notes.

    Only one timer is ever armed and it is re-armed after a run settles.
    Manual runs share a lock with timer runs, so at most one is in flight.

    ``api_token`` overrides the stored token for this process only and is
    never written to the settings file.
    """

    def __init__(
        self,
        vault: Vault,
        store: SettingsStore,
        settings: Optional[Settings] = None,
        client_factory: Callable[[str], PinboardClient] = PinboardClient,
        notify: Callable[[str], None] = print_notice,
        scheduler: Optional[Scheduler] = None,
        clock: Callable[[], float] = time.time,
        api_token: Optional[str] = None,
    ):
        self.vault = vault
        self.store = store
        self.settings = settings if settings is not None else store.load()
        self.client_factory = client_factory
        self.notify = notify
        self.scheduler = scheduler or Scheduler()
        self.clock = clock
        self.api_token = api_token
        self.state = SyncState.IDLE
        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None

    def client(self) -> PinboardClient:
        return self.client_factory(self.api_token or self.settings.api_token)

    def start(self) -> None:
        """Arm the first timer when sync is enabled and accepted."""
        if self.settings.has_accepted_disclaimer and self.settings.is_sync_enabled:
            self.schedule_next_sync()

    def write_settings(self, **diff: Any) -> Settings:
        """Apply a settings change, reschedule as needed, and persist it."""
        self.settings, effects = update_settings(self.settings, diff)
        for effect in effects:
            if effect is SchedulerEffect.ARM:
                self.try_to_schedule_sync()
            else:
                self.cancel_scheduled_sync()
        self.store.save(self.settings)
        return self.settings

    async def try_to_sync(self) -> SyncReport:
        if not self.settings.has_accepted_disclaimer:
            self.notify(DISCLAIMER)
            return SyncReport(success=False, error="Sync disclaimer has not been accepted")
        return await self.sync()

    def try_to_schedule_sync(self) -> None:
        if not self.settings.has_accepted_disclaimer:
            self.notify(DISCLAIMER)
            return
        self.schedule_next_sync()

    async def fetch_posts(self) -> PostCollection:
        try:
            return await self.client().posts.recent(count=self.settings.recent_count)
        except PinboardError as e:
            raise SyncError(f"Unable to fetch recent pins: {e}") from e

    async def sync(self) -> SyncReport:
        """Run one sync. Failures are logged and reported, never raised.

        A call made while another run is in flight is refused.
        """
        if self._lock.locked():
            logger.info("Sync requested while another run is in flight, skipping")
            return SyncReport(success=False, error="Sync already running")
        async with self._lock:
            return await self._run()

    async def _run(self) -> SyncReport:
        self.state = SyncState.FETCHING
        try:
            collection = await self.fetch_posts()

            self.state = SyncState.DISTRIBUTING
            daily_notes: list[str] = []
            pin_notes: list[str] = []
            if self.settings.daily_notes_enabled:
                daily_notes = await self.sync_daily_notes(collection.posts)
            if self.settings.one_note_per_pin:
                pin_notes = await self.sync_pin_notes(collection.posts)

            self.state = SyncState.PERSISTING
            latest_sync_time = int(self.clock())
            self.write_settings(latest_sync_time=latest_sync_time)
        except Exception as e:
            self.state = SyncState.REPORTED
            logger.exception("Pinboard sync failed")
            self.notify("[Pinboard Sync] failed")
            self.state = SyncState.IDLE
            return SyncReport(success=False, error=str(e))

        self.notify("[Pinboard Sync] complete")
        self.schedule_next_sync()
        return SyncReport(
            success=True,
            posts=len(collection.posts),
            daily_notes=daily_notes,
            pin_notes=pin_notes,
            latest_sync_time=latest_sync_time,
        )

    async def sync_daily_notes(self, posts: Sequence[Post]) -> list[str]:
        renderer = PinRenderer(self.settings)
        days = group_by_day(posts, self.vault.tz)
        return list(
            await asyncio.gather(
                *(self._merge_day(day, pins, renderer) for day, pins in days.items())
            )
        )

    async def _merge_day(
        self, day: pendulum.DateTime, pins: list[Post], renderer: PinRenderer
    ) -> str:
        folder, fmt = self.settings.daily_note_folder, self.settings.daily_note_format
        note = await self.vault.get_daily_note(day, folder, fmt)
        if note is None:
            note = await self.vault.create_daily_note(day, folder, fmt)
        await update_section(
            self.vault, note, self.settings.section_heading, renderer.render(pins)
        )
        return note

    async def sync_pin_notes(self, posts: Sequence[Post]) -> list[str]:
        renderer = PinRenderer(self.settings)
        notes: dict[str, Post] = {}
        for post in posts:
            note = self.vault.pin_note_path(
                post, self.settings.pin_note_path, self.settings.pin_note_format
            )
            # posts arrive newest first; the newest pin owns a shared path
            notes.setdefault(note, post)
        await asyncio.gather(
            *(self._merge_pin(note, post, renderer) for note, post in notes.items())
        )
        return list(notes)

    async def _merge_pin(self, note: str, post: Post, renderer: PinRenderer) -> None:
        await self.vault.touch(note)
        await update_properties(self.vault, note, renderer.render_pin_properties(post))

    def cancel_scheduled_sync(self) -> None:
        self.scheduler.cancel()
        if self.state is SyncState.SCHEDULED:
            self.state = SyncState.IDLE

    def schedule_next_sync(self, after_failure: bool = False) -> None:
        """Arm the timer for the next run.

        After a failure the latest sync time is stale, so the next attempt
        waits a full interval instead.
        """
        self.cancel_scheduled_sync()
        if not self.settings.is_sync_enabled or not self.settings.sync_interval:
            logger.info("Scheduling skipped, sync is disabled or has no interval")
            self.state = SyncState.IDLE
            return

        interval = self.settings.sync_interval
        if after_failure:
            delay = float(interval)
        else:
            delay = next_sync_delay(self.settings.latest_sync_time, interval, self.clock())

        logger.info("Next sync scheduled in %.0fs", delay)
        self.scheduler.arm(delay, self._on_timer)
        self.state = SyncState.SCHEDULED

    def _on_timer(self) -> None:
        self._task = asyncio.ensure_future(self.run_scheduled())

    async def run_scheduled(self) -> SyncReport:
        report = await self.sync()
        # a refused run leaves rescheduling to the run still in flight
        if not report.success and not self._lock.locked():
            self.schedule_next_sync(after_failure=True)
        return report
