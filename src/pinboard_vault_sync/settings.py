"""User settings, their persistence, and the side effects of changing them."""

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_SECTION_HEADING = "## Pinboard"
DEFAULT_SYNC_FREQUENCY_SECONDS = 30 * 60
DEFAULT_TAG_PREFIX = "pinboard/"
DEFAULT_PIN_TOKEN = "Username:SecretTokenCode"
DEFAULT_RECENT_COUNT = 20
DEFAULT_PIN_NOTE_PATH = "pinboard"
DEFAULT_PIN_NOTE_TAG = "pinboard"
DEFAULT_PIN_NOTE_FORMAT = "YYYY-MM-DD/[{description}]"
DEFAULT_DAILY_NOTE_FORMAT = "YYYY-MM-DD"


class Settings(BaseModel):
    """Persisted configuration for the sync."""

    api_token: str = Field(default=DEFAULT_PIN_TOKEN, description="user:secret")
    has_accepted_disclaimer: bool = False
    latest_sync_time: int = Field(default=0, description="Unix time of last success")

    is_sync_enabled: bool = False
    sync_interval: int = Field(default=DEFAULT_SYNC_FREQUENCY_SECONDS, ge=0)
    section_heading: str = DEFAULT_SECTION_HEADING
    tag_prefix: str = DEFAULT_TAG_PREFIX
    newline_separator: bool = False
    recent_count: int = Field(default=DEFAULT_RECENT_COUNT, ge=0, le=100)

    daily_notes_enabled: bool = True
    daily_note_folder: str = ""
    daily_note_format: str = DEFAULT_DAILY_NOTE_FORMAT

    one_note_per_pin: bool = False
    pin_note_path: str = DEFAULT_PIN_NOTE_PATH
    pin_note_tag: str = DEFAULT_PIN_NOTE_TAG
    pin_note_format: str = DEFAULT_PIN_NOTE_FORMAT


class SchedulerEffect(str, Enum):
    """What the scheduler must do after a settings change."""

    ARM = "arm"
    CANCEL = "cancel"


def update_settings(
    settings: Settings, diff: dict[str, Any]
) -> tuple[Settings, list[SchedulerEffect]]:
    """Apply ``diff`` and describe the scheduling it requires.

    Toggling sync arms or cancels the timer; changing the interval while sync
    is enabled re-arms it. Unknown keys raise ``ValueError``.
    """
    unknown = sorted(set(diff) - set(Settings.model_fields))
    if unknown:
        raise ValueError(f"Unknown settings: {', '.join(unknown)}")
    new_settings = settings.model_validate({**settings.model_dump(), **diff})
    effects: list[SchedulerEffect] = []
    if "is_sync_enabled" in diff:
        effects.append(
            SchedulerEffect.ARM if diff["is_sync_enabled"] else SchedulerEffect.CANCEL
        )
    elif "sync_interval" in diff and new_settings.is_sync_enabled:
        effects.append(SchedulerEffect.ARM)
    return new_settings, effects


class SettingsStore:
    """Stores settings as a JSON file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Settings:
        """Load stored settings merged over the defaults."""
        data: dict[str, Any] = {}
        if self.path.exists():
            data = json.loads(self.path.read_text(encoding="utf-8"))
        settings = Settings.model_validate(data)
        if not settings.has_accepted_disclaimer:
            # Quitting before accepting the disclaimer must not leave sync enabled
            settings = settings.model_copy(update={"is_sync_enabled": False})
        logger.debug("Loaded settings from %s", self.path)
        return settings

    def save(self, settings: Settings) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(settings.model_dump_json(indent=2), encoding="utf-8")
