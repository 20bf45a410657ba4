"""Phase, status, mode, action, and reason constants used by the timer core."""

from __future__ import annotations

# Phase names
PHASE_WORK = "Work"
PHASE_SHORT_BREAK = "Short Break"
PHASE_LONG_BREAK = "Long Break"

PHASE_NAMES: frozenset[str] = frozenset({PHASE_WORK, PHASE_SHORT_BREAK, PHASE_LONG_BREAK})

DEFAULT_WORK_SECONDS = 25 * 60
DEFAULT_SHORT_BREAK_SECONDS = 5 * 60
DEFAULT_LONG_BREAK_SECONDS = 15 * 60

# Per-phase completion status
STATUS_NOT_STARTED = "notStarted"
STATUS_CURRENT = "current"
STATUS_NORMAL_COMPLETED = "normalCompleted"
STATUS_SKIPPED = "skipped"

PHASE_STATUSES: frozenset[str] = frozenset(
    {STATUS_NOT_STARTED, STATUS_CURRENT, STATUS_NORMAL_COMPLETED, STATUS_SKIPPED}
)

# Timer run modes
MODE_COUNTDOWN = "countdown"
MODE_COUNT_UP = "count_up"

# Published display modes
DISPLAY_FLOW = "flow"
DISPLAY_COUNTDOWN = "countdown"
DISPLAY_PAUSED = "paused"
DISPLAY_IDLE = "idle"

DISPLAY_MODES: frozenset[str] = frozenset(
    {DISPLAY_FLOW, DISPLAY_COUNTDOWN, DISPLAY_PAUSED, DISPLAY_IDLE}
)

# Published phase categories
PHASE_TYPE_WORK = "work"
PHASE_TYPE_SHORT_BREAK = "shortBreak"
PHASE_TYPE_LONG_BREAK = "longBreak"
PHASE_TYPE_UNKNOWN = "unknown"

PHASE_TYPES: frozenset[str] = frozenset(
    {PHASE_TYPE_WORK, PHASE_TYPE_SHORT_BREAK, PHASE_TYPE_LONG_BREAK, PHASE_TYPE_UNKNOWN}
)

# Scheduler cadence
CADENCE_NORMAL = "normal"
CADENCE_POWER_SAVING = "power_saving"

DEFAULT_TICK_INTERVAL_SECONDS = 1.0
DEFAULT_NORMAL_TOLERANCE_SECONDS = 0.1
DEFAULT_POWER_SAVING_TOLERANCE_SECONDS = 0.05
DEFAULT_PERIODIC_SYNC_SECONDS = 60.0

# Background lease timings
DEFAULT_LEASE_SETTLE_SECONDS = 1.5
DEFAULT_LEASE_CONFIRM_SECONDS = 0.5

# Shared snapshot publishing
DEFAULT_REFRESH_THRESHOLD_SECONDS = 60
SHARED_STATE_KEY = "TimerState"

# Persisted key-value schema
KEY_CURRENT_PHASE_INDEX = "currentPhaseIndex"
KEY_COMPLETED_CYCLES = "completedCycles"
KEY_HAS_SKIPPED_IN_CURRENT_CYCLE = "hasSkippedInCurrentCycle"
KEY_PHASE_COMPLETION_STATUS = "phaseCompletionStatus"
KEY_CURRENT_PHASE_NAME = "currentPhaseName"

# External actions
ACTION_START = "start"
ACTION_PAUSE = "pause"
ACTION_TOGGLE = "toggle"
ACTION_SKIP = "skip"
ACTION_RESET_PHASE = "reset_phase"
ACTION_RESET_CYCLE = "reset_cycle"
ACTION_START_PHASE = "start_phase"
ACTION_RESUME_SIGNAL = "resume_signal"
ACTION_STOP_FLOW = "stop_flow"

# Action result reasons
REASON_STARTED = "started"
REASON_PAUSED = "paused"
REASON_SKIPPED = "skipped"
REASON_RESET = "reset"
REASON_FLOW_STOPPED = "flow_stopped"
REASON_ALREADY_RUNNING = "already_running"
REASON_NOT_RUNNING = "not_running"
REASON_NOT_IN_FLOW = "not_in_flow"
REASON_INVALID_PHASE = "invalid_phase"

ALERT_TITLE = "Great job!"
