"""Phase cycle state machine and its key-value persistence schema."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Literal, Optional, Sequence

from .constants import (
    KEY_COMPLETED_CYCLES,
    KEY_CURRENT_PHASE_INDEX,
    KEY_CURRENT_PHASE_NAME,
    KEY_HAS_SKIPPED_IN_CURRENT_CYCLE,
    KEY_PHASE_COMPLETION_STATUS,
    PHASE_STATUSES,
    STATUS_CURRENT,
    STATUS_NORMAL_COMPLETED,
    STATUS_NOT_STARTED,
    STATUS_SKIPPED,
)
from .contracts import KeyValueStore
from .phases import DEFAULT_PHASES, Phase

PhaseStatus = Literal["notStarted", "current", "normalCompleted", "skipped"]


@dataclass(frozen=True)
class SequenceView:
    """Immutable copy of the sequence state handed to publishers."""
    phases: tuple[Phase, ...]
    current_index: int
    statuses: tuple[PhaseStatus, ...]
    completed_cycles: int
    has_skipped_in_current_cycle: bool

    @property
    def current_phase(self) -> Phase:
        return self.phases[self.current_index]

    @property
    def next_phase(self) -> Phase:
        return self.phases[(self.current_index + 1) % len(self.phases)]


class PhaseSequenceState:
    """Ordered phase cycle with per-phase completion bookkeeping.

    Exactly one status is ``current`` and it sits at ``current_index``.
    ``completed_cycles`` only grows, and only when a cycle wraps with no skips.
    """

    def __init__(
        self,
        phases: Sequence[Phase] = DEFAULT_PHASES,
        *,
        logger: Optional[logging.Logger] = None,
    ):
        if not phases:
            phases = DEFAULT_PHASES
        self._phases: list[Phase] = list(phases)
        self._logger = logger or logging.getLogger("pomodoro.sequence")
        self._current_index = 0
        self._completed_cycles = 0
        self._has_skipped = False
        self._statuses: list[PhaseStatus] = []
        self._reset_statuses()

    @property
    def phases(self) -> tuple[Phase, ...]:
        return tuple(self._phases)

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def current_phase(self) -> Phase:
        return self._phases[self._current_index]

    @property
    def next_phase(self) -> Phase:
        return self._phases[(self._current_index + 1) % len(self._phases)]

    @property
    def statuses(self) -> tuple[PhaseStatus, ...]:
        return tuple(self._statuses)

    @property
    def completed_cycles(self) -> int:
        return self._completed_cycles

    @property
    def has_skipped_in_current_cycle(self) -> bool:
        return self._has_skipped

    def is_work_phase(self) -> bool:
        return self.current_phase.is_work

    def view(self) -> SequenceView:
        return SequenceView(
            phases=self.phases,
            current_index=self._current_index,
            statuses=self.statuses,
            completed_cycles=self._completed_cycles,
            has_skipped_in_current_cycle=self._has_skipped,
        )

    def advance(self, skipped: bool = False) -> bool:
        """Finish the current phase and move on; returns True when a cycle wrapped."""
        self._statuses[self._current_index] = STATUS_SKIPPED if skipped else STATUS_NORMAL_COMPLETED
        self._has_skipped = self._has_skipped or skipped
        self._current_index = (self._current_index + 1) % len(self._phases)

        if self._current_index != 0:
            self._statuses[self._current_index] = STATUS_CURRENT
            return False

        if not self._has_skipped:
            self._completed_cycles += 1
            self._logger.info("Cycle completed: completed_cycles=%d", self._completed_cycles)
        else:
            self._logger.info("Cycle finished with skips, no credit")
        self._has_skipped = False
        self._reset_statuses()
        return True

    def skip(self) -> bool:
        return self.advance(skipped=True)

    def reset(self) -> None:
        """Return to the first phase; the historical cycle count is kept."""
        self._current_index = 0
        self._has_skipped = False
        self._reset_statuses()

    def jump_to(self, index: int) -> None:
        """Make ``index`` the current phase within the running cycle.

        Earlier phases that were not completed normally count as skipped;
        later phases are marked not started.
        """
        if not 0 <= index < len(self._phases):
            raise IndexError(f"phase index out of range: {index}")

        for position in range(len(self._phases)):
            if position < index:
                if self._statuses[position] != STATUS_NORMAL_COMPLETED:
                    self._statuses[position] = STATUS_SKIPPED
                    self._has_skipped = True
            else:
                self._statuses[position] = STATUS_NOT_STARTED
        self._current_index = index
        self._statuses[index] = STATUS_CURRENT
        self._phases[index] = self._phases[index].with_adjusted_duration(None)

    def record_adjusted_duration(self, seconds: Optional[int]) -> None:
        self._phases[self._current_index] = self.current_phase.with_adjusted_duration(seconds)

    def index_of(self, name: str) -> Optional[int]:
        for index, phase in enumerate(self._phases):
            if phase.name == name:
                return index
        return None

    def save(self, store: KeyValueStore) -> None:
        """Persist the logical schema; store errors propagate to the caller."""
        store.set_many(
            {
                KEY_CURRENT_PHASE_INDEX: self._current_index,
                KEY_COMPLETED_CYCLES: self._completed_cycles,
                KEY_HAS_SKIPPED_IN_CURRENT_CYCLE: self._has_skipped,
                KEY_PHASE_COMPLETION_STATUS: json.dumps(self._statuses),
                KEY_CURRENT_PHASE_NAME: self.current_phase.name,
            }
        )

    def load(self, store: KeyValueStore) -> bool:
        """Restore from ``store``; resets the cycle and returns False on bad data."""
        index = store.get(KEY_CURRENT_PHASE_INDEX)
        if isinstance(index, bool) or not isinstance(index, int):
            self._logger.info("No persisted phase state, starting a fresh cycle")
            self.reset()
            return False
        if not 0 <= index < len(self._phases):
            self._logger.warning("Persisted phase index %s out of range, resetting cycle", index)
            self.reset()
            return False

        saved_statuses = _decode_statuses(store.get(KEY_PHASE_COMPLETION_STATUS))
        cycles = store.get(KEY_COMPLETED_CYCLES, 0)
        has_skipped = store.get(KEY_HAS_SKIPPED_IN_CURRENT_CYCLE, False)

        self._current_index = index
        self._completed_cycles = cycles if isinstance(cycles, int) and cycles >= 0 else 0
        self._statuses = [STATUS_NOT_STARTED] * len(self._phases)
        for position in range(index):
            saved = saved_statuses[position] if position < len(saved_statuses) else None
            self._statuses[position] = STATUS_SKIPPED if saved == STATUS_SKIPPED else STATUS_NORMAL_COMPLETED
        self._statuses[index] = STATUS_CURRENT
        self._has_skipped = bool(has_skipped) or STATUS_SKIPPED in self._statuses
        self._logger.info(
            "Restored phase state: index=%d cycles=%d",
            self._current_index,
            self._completed_cycles,
        )
        return True

    def _reset_statuses(self) -> None:
        self._statuses = [STATUS_NOT_STARTED] * len(self._phases)
        self._statuses[self._current_index] = STATUS_CURRENT
        self._phases = [phase.with_adjusted_duration(None) for phase in self._phases]


def _decode_statuses(raw: object) -> list[str]:
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return []
    if not isinstance(raw, list):
        return []
    return [item if item in PHASE_STATUSES else STATUS_NOT_STARTED for item in raw]
