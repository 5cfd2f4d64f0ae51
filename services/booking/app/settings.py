from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class BookingSettings(BaseSettings):
    model_config = SettingsConfigDict(extra="forbid")

    database_url: str
    log_level: str = "info"

    # SELECT ... FOR UPDATE on resolved rooms before the overlap re-check.
    lock_rooms_for_update: bool = True
    release_rooms_on_cancel: bool = False
    enforce_status_transitions: bool = False

    default_page_size: int = 50
    max_page_size: int = 100


SETTINGS = BookingSettings()
