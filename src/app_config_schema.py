"""Dataclass schema objects used by runtime configuration loading."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

DEFAULT_CONFIG_FILE = "config.toml"


class AppConfigurationError(Exception):
    """Raised when application configuration fails."""


@dataclass(frozen=True)
class TimerSettings:
    """Phase cycle definition loaded from `[timer]`.

    ``phases`` keeps the raw table entries; malformed entries are not a
    configuration error and are resolved to the default cycle later.
    """
    infinite_mode: bool = False
    phases: tuple[Mapping[str, Any], ...] = ()


@dataclass(frozen=True)
class SchedulerSettings:
    """Tick cadence values loaded from `[scheduler]`."""
    interval_seconds: float = 1.0
    normal_tolerance_seconds: float = 0.1
    power_saving_tolerance_seconds: float = 0.05
    periodic_sync_seconds: float = 60.0


@dataclass(frozen=True)
class LeaseSettings:
    """Background grant timings loaded from `[lease]`."""
    enabled: bool = True
    settle_seconds: float = 1.5
    confirm_seconds: float = 0.5
    max_session_seconds: float = 3600.0
    teardown_seconds: float = 1.0


@dataclass(frozen=True)
class StoreSettings:
    """Locations of the persisted phase state and the shared snapshot."""
    state_file: str = ""
    shared_file: str = ""


@dataclass(frozen=True)
class SyncSettings:
    refresh_threshold_seconds: int = 60


@dataclass(frozen=True)
class ActionSettings:
    duplicate_window_seconds: float = 1.0


@dataclass(frozen=True)
class UIServerSettings:
    """Websocket display server values loaded from `[ui_server]`."""
    enabled: bool = True
    host: str = "127.0.0.1"
    port: int = 8765


@dataclass(frozen=True)
class AppConfig:
    """Top-level immutable app configuration assembled from all sections."""
    timer: TimerSettings
    scheduler: SchedulerSettings
    lease: LeaseSettings
    store: StoreSettings
    sync: SyncSettings
    actions: ActionSettings
    ui_server: UIServerSettings
    source_file: str = field(default="")
