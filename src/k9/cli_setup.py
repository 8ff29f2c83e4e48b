"""Setup command implementation: host detection and runtime checks."""
from __future__ import annotations

import re
import shutil
import sys
from dataclasses import dataclass
from pathlib import Path

from .config import K9Config
from .errors import UnsupportedPlatform

WIN_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (r"bccwin", r"cygwin", r"djgpp", r"ming", r"msys", r"mswin", r"wince", r"win32")
]


def host_os(platform: str | None = None) -> str:
    """
    Classify the host as mac, linux, unix or windows.

    Raises:
        UnsupportedPlatform: for anything else
    """
    detected = platform if platform is not None else sys.platform
    if re.search(r"mac|darwin", detected, re.IGNORECASE):
        return "mac"
    if re.search(r"linux", detected, re.IGNORECASE):
        return "linux"
    if re.search(r"solaris|sunos|bsd", detected, re.IGNORECASE):
        return "unix"
    if any(p.search(detected) for p in WIN_PATTERNS):
        return "windows"
    raise UnsupportedPlatform(f"unknown os: {detected!r}")


@dataclass
class SetupReport:
    os: str
    config_file: Path | None
    k9_root: Path
    java: str | None
    jruby: str | None
    jruby_complete: Path
    jruby_complete_present: bool
    runners_present: bool
    sketchbook_path: Path
    use_jruby: bool

    @property
    def can_run(self) -> bool:
        if not self.runners_present:
            return False
        if self.use_jruby and self.jruby:
            return True
        return bool(self.java and self.jruby_complete_present)


def check_setup(config: K9Config) -> SetupReport:
    runners = [config.runner_script(name) for name in ("run.rb", "live.rb")]
    return SetupReport(
        os=host_os(),
        config_file=config.source,
        k9_root=config.k9_root,
        java=shutil.which("java"),
        jruby=shutil.which("jruby"),
        jruby_complete=config.jruby_complete,
        jruby_complete_present=config.jruby_complete.exists(),
        runners_present=all(r.exists() for r in runners),
        sketchbook_path=config.sketchbook_path,
        use_jruby=config.use_jruby,
    )


def format_setup_report(report: SetupReport) -> str:
    def mark(ok: object) -> str:
        return "[OK]" if ok else "[MISSING]"

    lines = [
        f"Host OS:         {report.os}",
        f"Config file:     {report.config_file or 'none (using defaults)'}",
        f"K9 root:         {report.k9_root} {mark(report.runners_present)}",
        f"java:            {report.java or '-'} {mark(report.java)}",
        f"jruby:           {report.jruby or '-'} {mark(report.jruby)}",
        f"jruby-complete:  {report.jruby_complete} {mark(report.jruby_complete_present)}",
        f"Sketchbook:      {report.sketchbook_path}",
        f"Default runtime: {'installed jruby' if report.use_jruby else 'jruby-complete'}",
        "",
        "Ready to run sketches." if report.can_run else "Cannot run sketches yet, see [MISSING] above.",
    ]
    return "\n".join(lines)
