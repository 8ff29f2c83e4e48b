# tests/watch/test_supervisor_process.py
import os
import sys
import time

import pytest

from k9.launcher import ProcessLauncher
from k9.watch import SessionState, WatchSupervisor, WatchTarget
from k9.watch.notifier import PollingNotifier

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="POSIX signal semantics")

SLEEPER = [sys.executable, "-c", "import time; time.sleep(60)"]


def test_real_child_is_restarted_on_change_and_reaped(sketch):
    """Touching the sketch should replace the running process with a new one"""
    os.utime(sketch, (1000.0, 1000.0))
    launcher = ProcessLauncher()
    sup = WatchSupervisor(
        WatchTarget(sketch_path=sketch),
        lambda target: SLEEPER,
        launcher,
        PollingNotifier(sketch),
        debounce_seconds=0.01,
        grace_period=5.0,
    ).start()
    first = sup.child.handle

    try:
        os.utime(sketch, (2000.0, 2000.0))
        sup.step()
        for _ in range(50):
            if sup.restarts:
                break
            time.sleep(0.02)
            sup.step()

        assert sup.restarts == 1
        assert first.poll() is not None
        second = sup.child.handle
        assert second.pid != first.pid
        assert second.poll() is None
    finally:
        sup.stop()

    assert sup.state is SessionState.STOPPED
    assert second.poll() is not None
