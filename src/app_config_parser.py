"""Typed parser for config.toml sections into immutable app settings."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

from app_config_schema import (
    ActionSettings,
    AppConfig,
    AppConfigurationError,
    LeaseSettings,
    SchedulerSettings,
    StoreSettings,
    SyncSettings,
    TimerSettings,
    UIServerSettings,
)

DEFAULT_STATE_FILE = "state/timer_state.json"
DEFAULT_SHARED_FILE = "state/shared_timer_state.json"


def parse_app_config(
    raw: Mapping[str, Any],
    *,
    base_dir: Path,
    source_file: str,
) -> AppConfig:
    """Parse raw TOML mappings into strongly typed application settings."""
    return AppConfig(
        timer=_parse_timer_settings(_section(raw, "timer")),
        scheduler=_parse_scheduler_settings(_section(raw, "scheduler")),
        lease=_parse_lease_settings(_section(raw, "lease")),
        store=_parse_store_settings(_section(raw, "store"), base_dir=base_dir),
        sync=_parse_sync_settings(_section(raw, "sync")),
        actions=_parse_action_settings(_section(raw, "actions")),
        ui_server=_parse_ui_server_settings(_section(raw, "ui_server")),
        source_file=source_file,
    )


def _parse_timer_settings(section: Mapping[str, Any]) -> TimerSettings:
    raw_phases = section.get("phases", [])
    if not isinstance(raw_phases, list):
        raise AppConfigurationError("timer.phases must be an array of tables.")
    return TimerSettings(
        infinite_mode=_as_bool(section.get("infinite_mode", False), "timer.infinite_mode"),
        phases=tuple(raw_phases),
    )


def _parse_scheduler_settings(section: Mapping[str, Any]) -> SchedulerSettings:
    settings = SchedulerSettings(
        interval_seconds=_as_float(
            section.get("interval_seconds", 1.0),
            "scheduler.interval_seconds",
        ),
        normal_tolerance_seconds=_as_float(
            section.get("normal_tolerance_seconds", 0.1),
            "scheduler.normal_tolerance_seconds",
        ),
        power_saving_tolerance_seconds=_as_float(
            section.get("power_saving_tolerance_seconds", 0.05),
            "scheduler.power_saving_tolerance_seconds",
        ),
        periodic_sync_seconds=_as_float(
            section.get("periodic_sync_seconds", 60.0),
            "scheduler.periodic_sync_seconds",
        ),
    )
    if settings.interval_seconds <= 0:
        raise AppConfigurationError("scheduler.interval_seconds must be positive.")
    if settings.periodic_sync_seconds <= 0:
        raise AppConfigurationError("scheduler.periodic_sync_seconds must be positive.")
    return settings


def _parse_lease_settings(section: Mapping[str, Any]) -> LeaseSettings:
    settings = LeaseSettings(
        enabled=_as_bool(section.get("enabled", True), "lease.enabled"),
        settle_seconds=_as_float(section.get("settle_seconds", 1.5), "lease.settle_seconds"),
        confirm_seconds=_as_float(
            section.get("confirm_seconds", 0.5),
            "lease.confirm_seconds",
        ),
        max_session_seconds=_as_float(
            section.get("max_session_seconds", 3600.0),
            "lease.max_session_seconds",
        ),
        teardown_seconds=_as_float(
            section.get("teardown_seconds", 1.0),
            "lease.teardown_seconds",
        ),
    )
    for name in ("settle_seconds", "confirm_seconds", "teardown_seconds"):
        if getattr(settings, name) < 0:
            raise AppConfigurationError(f"lease.{name} cannot be negative.")
    if settings.max_session_seconds <= 0:
        raise AppConfigurationError("lease.max_session_seconds must be positive.")
    return settings


def _parse_store_settings(section: Mapping[str, Any], *, base_dir: Path) -> StoreSettings:
    state_file = _as_str(section.get("state_file", DEFAULT_STATE_FILE), "store.state_file")
    shared_file = _as_str(
        section.get("shared_file", DEFAULT_SHARED_FILE),
        "store.shared_file",
    )
    if not state_file:
        raise AppConfigurationError("store.state_file is required.")
    if not shared_file:
        raise AppConfigurationError("store.shared_file is required.")
    return StoreSettings(
        state_file=_resolve_path(base_dir, state_file),
        shared_file=_resolve_path(base_dir, shared_file),
    )


def _parse_sync_settings(section: Mapping[str, Any]) -> SyncSettings:
    threshold = _as_int(
        section.get("refresh_threshold_seconds", 60),
        "sync.refresh_threshold_seconds",
    )
    if threshold <= 0:
        raise AppConfigurationError("sync.refresh_threshold_seconds must be positive.")
    return SyncSettings(refresh_threshold_seconds=threshold)


def _parse_action_settings(section: Mapping[str, Any]) -> ActionSettings:
    window = _as_float(
        section.get("duplicate_window_seconds", 1.0),
        "actions.duplicate_window_seconds",
    )
    if window < 0:
        raise AppConfigurationError("actions.duplicate_window_seconds cannot be negative.")
    return ActionSettings(duplicate_window_seconds=window)


def _parse_ui_server_settings(section: Mapping[str, Any]) -> UIServerSettings:
    return UIServerSettings(
        enabled=_as_bool(section.get("enabled", True), "ui_server.enabled"),
        host=_as_str(section.get("host", "127.0.0.1"), "ui_server.host"),
        port=_as_int(section.get("port", 8765), "ui_server.port"),
    )


def _section(root: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    raw = root.get(name, {})
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise AppConfigurationError(f"[{name}] must be a table.")
    return raw


def _as_str(value: Any, field: str) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    raise AppConfigurationError(f"{field} must be a string.")


def _as_bool(value: Any, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes", "on"):
            return True
        if lowered in ("false", "0", "no", "off"):
            return False
    raise AppConfigurationError(f"{field} must be a boolean.")


def _as_int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise AppConfigurationError(f"{field} must be an integer.")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError as error:
            raise AppConfigurationError(f"{field} must be an integer.") from error
    raise AppConfigurationError(f"{field} must be an integer.")


def _as_float(value: Any, field: str) -> float:
    if isinstance(value, bool):
        raise AppConfigurationError(f"{field} must be a float.")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError as error:
            raise AppConfigurationError(f"{field} must be a float.") from error
    raise AppConfigurationError(f"{field} must be a float.")


def _resolve_path(base_dir: Path, raw: str) -> str:
    if not raw:
        return ""
    path = Path(raw).expanduser()
    if not path.is_absolute():
        path = (base_dir / path).resolve()
    return str(path)
