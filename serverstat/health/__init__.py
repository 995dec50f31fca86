"""Health subsystem — probe engine, recorder, store, scheduler."""

from .cycle import run_cycle
from .engine import StatusRecord, dispatch, normalize_url, probe
from .recorder import CycleReport, PersistOutcome, StatusRecorder
from .scheduler import ProbeScheduler, SchedulerState
from .store import (
    PostgresStatusStore,
    SqliteStatusStore,
    StatusStore,
    StoreError,
    open_store,
)
