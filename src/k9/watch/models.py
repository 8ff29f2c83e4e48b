from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


class SessionState(str, Enum):
    IDLE = "idle"
    LAUNCHING = "launching"
    RUNNING = "running"
    RESTARTING = "restarting"
    STOPPED = "stopped"


class ChildStatus(str, Enum):
    RUNNING = "running"
    EXITED_OK = "exited_ok"
    EXITED_ERROR = "exited_error"
    KILLED = "killed"


@dataclass(frozen=True)
class WatchTarget:
    """The sketch a watch session relaunches, fixed for the whole session."""
    sketch_path: Path
    extra_args: tuple[str, ...] = ()


@dataclass
class ChildProcess:
    """One launched sketch process as tracked by the supervisor."""
    handle: Any
    pid: int
    started_at: float
    status: ChildStatus = ChildStatus.RUNNING
    exit_code: int | None = None

    def mark_exited(self, code: int) -> None:
        self.exit_code = code
        if code == 0:
            self.status = ChildStatus.EXITED_OK
        elif code < 0:
            # Negative return codes are POSIX signal deaths.
            self.status = ChildStatus.KILLED
        else:
            self.status = ChildStatus.EXITED_ERROR


@dataclass
class WatchState:
    """Mutable session state; only the supervisor's control loop writes it."""
    target: WatchTarget
    last_modified: float = 0.0
    child: ChildProcess | None = None
    history: list[ChildProcess] = field(default_factory=list)
