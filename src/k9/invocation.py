"""
Parsed command-line invocation and the typed commands it decodes into.

The CLI layer fills an Invocation from whatever the user typed; decode()
turns it into exactly one of the command dataclasses below, applying the
config-file defaults once so nothing downstream re-reads flags.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Union

from .config import K9Config
from .errors import K9Error

SKETCH_MODES = {"p2d": "P2D", "p3d": "P3D", "fx2d": "FX2D"}


class InvocationError(K9Error, ValueError):
    pass


class Action(str, Enum):
    RUN = "run"
    WATCH = "watch"
    LIVE = "live"
    CREATE = "create"
    SETUP = "setup"
    HELP = "help"
    VERSION = "version"


@dataclass(frozen=True)
class Flags:
    wrap: bool = False
    inner: bool = False
    emacs: bool = False
    jruby: bool = False
    nojruby: bool = False


@dataclass(frozen=True)
class Invocation:
    action: Action
    path: str | None = None
    args: tuple[str, ...] = ()
    flags: Flags = field(default_factory=Flags)


@dataclass(frozen=True)
class RunSketch:
    mode: Action  # RUN, WATCH or LIVE
    sketch: Path
    args: tuple[str, ...]
    nojruby: bool

    @property
    def starter(self) -> str:
        # The watch loop lives in this process, so watch launches the plain runner.
        return "live.rb" if self.mode is Action.LIVE else "run.rb"


@dataclass(frozen=True)
class CreateSketch:
    name: str
    width: int
    height: int
    template: str
    mode: str | None = None


@dataclass(frozen=True)
class Setup:
    choice: str


@dataclass(frozen=True)
class ShowHelp:
    pass


@dataclass(frozen=True)
class ShowVersion:
    pass


Command = Union[RunSketch, CreateSketch, Setup, ShowHelp, ShowVersion]


def default_sketch_path() -> str:
    """A sketch named after the current directory, e.g. fred/ -> fred.rb."""
    return f"{Path.cwd().name}.rb"


def _use_bundled_jar(flags: Flags, config: K9Config) -> bool:
    if flags.nojruby:
        return True
    if flags.jruby:
        return False
    return not config.use_jruby


def _template(flags: Flags, config: K9Config) -> str:
    if flags.inner:
        return "inner"
    if flags.wrap:
        return "class"
    if flags.emacs:
        return "emacs"
    return config.template


def _size(args: tuple[str, ...], config: K9Config) -> tuple[int, int, str | None]:
    mode = None
    numbers = list(args)
    if numbers and numbers[-1].lower() in SKETCH_MODES:
        mode = SKETCH_MODES[numbers.pop().lower()]

    if not numbers:
        return config.width, config.height, mode
    if len(numbers) != 2:
        raise InvocationError("create expects both WIDTH and HEIGHT, e.g. `k9 create fred 640 480`")
    try:
        width, height = int(numbers[0]), int(numbers[1])
    except ValueError:
        raise InvocationError(f"Sketch size must be integers, got {numbers[0]!r} x {numbers[1]!r}") from None
    if width <= 0 or height <= 0:
        raise InvocationError("Sketch size must be positive")
    return width, height, mode


def _setup_choice(raw: str | None) -> str:
    # Loose matching, so `k9 setup unpack_sample` still works.
    raw = (raw or "check").lower()
    if "unpack_sample" in raw:
        return "unpack_samples"
    if "install" in raw:
        return "install"
    if "check" in raw:
        return "check"
    raise InvocationError(f"Unknown setup choice '{raw}'. Use check, install or unpack_samples.")


def decode(invocation: Invocation, config: K9Config | None = None) -> Command:
    """
    Turn an invocation into its command.

    help, version and setup need no config; run/watch/live and create do,
    because the config supplies their defaults.
    """
    action = invocation.action
    if action is Action.SETUP:
        return Setup(choice=_setup_choice(invocation.path))
    if action is Action.VERSION:
        return ShowVersion()
    if action is Action.HELP:
        return ShowHelp()
    if config is None:
        raise InvocationError(f"`{action.value}` needs a loaded config")

    if action in (Action.RUN, Action.WATCH, Action.LIVE):
        return RunSketch(
            mode=action,
            sketch=Path(invocation.path or default_sketch_path()),
            args=tuple(invocation.args),
            nojruby=_use_bundled_jar(invocation.flags, config),
        )
    if not invocation.path:
        raise InvocationError("create needs a sketch name, e.g. `k9 create fred 640 480`")
    width, height, mode = _size(invocation.args, config)
    return CreateSketch(
        name=invocation.path,
        width=width,
        height=height,
        template=_template(invocation.flags, config),
        mode=mode,
    )
