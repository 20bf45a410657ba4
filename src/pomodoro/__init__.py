from .contracts import GrantError, StoreError
from .lease import BackgroundLeaseManager
from .phases import DEFAULT_PHASES, Phase, PhaseDefinitionError, load_phases
from .publisher import StateSyncPublisher
from .scheduler import CadencePolicy, RunLoopScheduler
from .sequence import PhaseSequenceState, SequenceView
from .service import PhaseAction, PhaseActionResult, PhaseTimerService
from .snapshot import (
    SharedSnapshot,
    SnapshotDecodeError,
    TimerStatus,
    decode_snapshot,
    encode_snapshot,
    placeholder_snapshot,
    read_snapshot_or_placeholder,
)
from .timeline import PhaseTimeline, TimelineReading, TimerRun

__all__ = [
    "BackgroundLeaseManager",
    "CadencePolicy",
    "DEFAULT_PHASES",
    "GrantError",
    "Phase",
    "PhaseAction",
    "PhaseActionResult",
    "PhaseDefinitionError",
    "PhaseSequenceState",
    "PhaseTimeline",
    "PhaseTimerService",
    "RunLoopScheduler",
    "SequenceView",
    "SharedSnapshot",
    "SnapshotDecodeError",
    "StateSyncPublisher",
    "StoreError",
    "TimelineReading",
    "TimerRun",
    "TimerStatus",
    "decode_snapshot",
    "encode_snapshot",
    "load_phases",
    "placeholder_snapshot",
    "read_snapshot_or_placeholder",
]
