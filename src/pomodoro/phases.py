"""Phase definitions and tolerant loading of the configured phase cycle."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Mapping, Optional, Sequence

from .constants import (
    DEFAULT_LONG_BREAK_SECONDS,
    DEFAULT_SHORT_BREAK_SECONDS,
    DEFAULT_WORK_SECONDS,
    PHASE_LONG_BREAK,
    PHASE_NAMES,
    PHASE_SHORT_BREAK,
    PHASE_TYPE_LONG_BREAK,
    PHASE_TYPE_SHORT_BREAK,
    PHASE_TYPE_UNKNOWN,
    PHASE_TYPE_WORK,
    PHASE_WORK,
)


@dataclass(frozen=True)
class Phase:
    """One named, timed segment of the cycle."""
    duration: int
    name: str
    adjusted_duration: Optional[int] = None

    @property
    def is_work(self) -> bool:
        return self.name == PHASE_WORK

    def with_adjusted_duration(self, seconds: Optional[int]) -> "Phase":
        return replace(self, adjusted_duration=seconds)


DEFAULT_PHASES: tuple[Phase, ...] = (
    Phase(duration=DEFAULT_WORK_SECONDS, name=PHASE_WORK),
    Phase(duration=DEFAULT_SHORT_BREAK_SECONDS, name=PHASE_SHORT_BREAK),
    Phase(duration=DEFAULT_WORK_SECONDS, name=PHASE_WORK),
    Phase(duration=DEFAULT_LONG_BREAK_SECONDS, name=PHASE_LONG_BREAK),
)


class PhaseDefinitionError(ValueError):
    """Raised for a malformed phase entry; callers fall back to the defaults."""


def load_phases(
    entries: Optional[Sequence[Mapping[str, Any]]],
    *,
    logger: Optional[logging.Logger] = None,
) -> tuple[Phase, ...]:
    """Build the phase cycle from config entries, substituting the default cycle."""
    log = logger or logging.getLogger("pomodoro.phases")
    if not entries:
        return DEFAULT_PHASES

    try:
        phases = tuple(_parse_phase(entry, index) for index, entry in enumerate(entries))
    except PhaseDefinitionError as error:
        log.warning("Invalid phase definitions, using default cycle: %s", error)
        return DEFAULT_PHASES

    return phases


def phase_type(name: str) -> str:
    """Map a phase name to the published phase category."""
    if name == PHASE_WORK:
        return PHASE_TYPE_WORK
    normalized = name.lower()
    if "long" in normalized:
        return PHASE_TYPE_LONG_BREAK
    if "short" in normalized:
        return PHASE_TYPE_SHORT_BREAK
    return PHASE_TYPE_UNKNOWN


def _parse_phase(entry: Any, index: int) -> Phase:
    if not isinstance(entry, Mapping):
        raise PhaseDefinitionError(f"phases[{index}] must be a table")

    name = entry.get("name")
    if not isinstance(name, str) or name.strip() not in PHASE_NAMES:
        allowed = ", ".join(sorted(PHASE_NAMES))
        raise PhaseDefinitionError(f"phases[{index}].name must be one of: {allowed}")

    if "duration_seconds" in entry:
        seconds = entry["duration_seconds"]
    elif "duration_minutes" in entry:
        minutes = entry["duration_minutes"]
        if isinstance(minutes, bool) or not isinstance(minutes, (int, float)):
            raise PhaseDefinitionError(f"phases[{index}].duration_minutes must be a number")
        seconds = int(round(minutes * 60))
    else:
        raise PhaseDefinitionError(f"phases[{index}] needs duration_seconds or duration_minutes")

    if isinstance(seconds, bool) or not isinstance(seconds, int) or seconds <= 0:
        raise PhaseDefinitionError(f"phases[{index}] duration must be a positive integer")

    return Phase(duration=seconds, name=name.strip())
