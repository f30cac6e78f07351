from .lock import PendingRun, RunLock, RunLockBusy
from .monitor import ProgressMonitor, reconcile_snapshot
from .orchestrator import ExecutionOrchestrator

__all__ = [
    "PendingRun",
    "RunLock",
    "RunLockBusy",
    "ProgressMonitor",
    "reconcile_snapshot",
    "ExecutionOrchestrator",
]
