"""Exceptions raised by k9."""
from __future__ import annotations

from pathlib import Path


class K9Error(Exception):
    """Base class for every error k9 reports to the operator."""


class SketchNotFound(K9Error):
    def __init__(self, path: Path):
        super().__init__(f"Couldn't find: {path}")
        self.path = path


class RuntimeUnavailable(K9Error):
    """The interpreter or bundled runtime jar needed to launch a sketch is missing."""


class LaunchFailed(K9Error):
    """The child process could not be started for a reason other than a missing runtime."""


class TerminationTimeout(K9Error):
    """A child ignored the graceful stop request for longer than the grace period."""

    def __init__(self, pid: int, timeout: float):
        super().__init__(f"Process {pid} still alive {timeout:.1f}s after graceful stop")
        self.pid = pid
        self.timeout = timeout


class SketchExists(K9Error):
    def __init__(self, path: Path):
        super().__init__(f"{path} already exists, not overwriting")
        self.path = path


class UnsupportedPlatform(K9Error):
    pass
