"""Display-surface websocket event and command constants."""

from __future__ import annotations

# Outbound websocket event types
EVENT_HELLO = "hello"
EVENT_SNAPSHOT = "snapshot"
EVENT_REFRESH = "refresh"
EVENT_ALERT = "alert"
EVENT_ACTION_RESULT = "action_result"
EVENT_ERROR = "error"

# Inbound websocket message type carrying an action name
COMMAND_MESSAGE_TYPE = "command"

# Action names accepted from deep links, alert responses, and display surfaces
COMMAND_OPEN = "open"
COMMAND_START = "start"
COMMAND_PAUSE = "pause"
COMMAND_TOGGLE = "toggle"
COMMAND_SKIP_PHASE = "skipPhase"
COMMAND_RESET_PHASE = "resetPhase"
COMMAND_RESET_CYCLE = "resetCycle"
COMMAND_START_WORK = "startWork"
COMMAND_START_BREAK = "startBreak"
COMMAND_START_LONG_BREAK = "startLongBreak"
COMMAND_START_NEXT_PHASE = "START_NEXT_PHASE"
COMMAND_STOP_FLOW = "stopFlow"
COMMAND_DISPLAY_DIMMED = "displayDimmed"
COMMAND_DISPLAY_ACTIVE = "displayActive"

COMMANDS: frozenset[str] = frozenset(
    {
        COMMAND_OPEN,
        COMMAND_START,
        COMMAND_PAUSE,
        COMMAND_TOGGLE,
        COMMAND_SKIP_PHASE,
        COMMAND_RESET_PHASE,
        COMMAND_RESET_CYCLE,
        COMMAND_START_WORK,
        COMMAND_START_BREAK,
        COMMAND_START_LONG_BREAK,
        COMMAND_START_NEXT_PHASE,
        COMMAND_STOP_FLOW,
        COMMAND_DISPLAY_DIMMED,
        COMMAND_DISPLAY_ACTIVE,
    }
)

STICKY_EVENT_TYPES: frozenset[str] = frozenset(
    {
        EVENT_SNAPSHOT,
        EVENT_ALERT,
        EVENT_ERROR,
    }
)

STICKY_EVENT_ORDER: tuple[str, ...] = (
    EVENT_SNAPSHOT,
    EVENT_ALERT,
    EVENT_ERROR,
)
