from .models import ChildProcess, ChildStatus, SessionState, WatchState, WatchTarget
from .supervisor import WatchSupervisor

__all__ = [
    "ChildProcess",
    "ChildStatus",
    "SessionState",
    "WatchState",
    "WatchSupervisor",
    "WatchTarget",
]
