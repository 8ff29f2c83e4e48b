from __future__ import annotations

import logging
from typing import NoReturn

import typer

from . import __version__
from .cli_setup import check_setup, format_setup_report
from .config import ConfigError, K9Config, load_config
from .creators import create_sketch
from .errors import K9Error
from .invocation import Action, Command, Flags, Invocation, InvocationError, ShowHelp, ShowVersion, decode
from .runner import spin_up

HELP = """\
k9 is a little shim between Processing and JRuby that helps you create
sketches of code art.

\b
Examples:
  k9 run rp_samples/samples/contributed/jwishy.rb
  k9 watch some_new_sketch.rb
  k9 create some_new_sketch 640 480 p3d
  k9 create some_new_sketch 640 480 --wrap
  k9 setup check

Set JRUBY: 'false' in ~/.jruby_art/config.yml to use jruby-complete by default.
"""

app = typer.Typer(add_completion=False, no_args_is_help=True, help=HELP)

PASSTHROUGH = {"allow_extra_args": True, "ignore_unknown_options": True}


def _respond(command: Command, ctx: typer.Context | None = None) -> None:
    if isinstance(command, ShowVersion):
        typer.echo(f"k9 version {__version__}")
    elif isinstance(command, ShowHelp) and ctx is not None:
        typer.echo(ctx.find_root().get_help())


def _version_callback(value: bool) -> None:
    if value:
        _respond(decode(Invocation(Action.VERSION)))
        raise typer.Exit()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", help="Log supervisor activity"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log errors"),
    version: bool = typer.Option(
        False, "--version", "-v", callback=_version_callback, is_eager=True, help="Show version and exit"
    ),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.ERROR if quiet else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_config() -> K9Config:
    try:
        return load_config()
    except ConfigError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _fail(exc: Exception) -> NoReturn:
    typer.secho(str(exc), fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


def _exit_status(code: int) -> int:
    # Signal deaths come back negative from subprocess; report them shell-style.
    return code if code >= 0 else 128 - code


def _run(action: Action, sketch: str | None, args: list[str] | None, jruby: bool, nojruby: bool) -> None:
    config = _load_config()
    invocation = Invocation(
        action=action,
        path=sketch,
        args=tuple(args or ()),
        flags=Flags(jruby=jruby, nojruby=nojruby),
    )
    try:
        code = spin_up(decode(invocation, config), config)
    except K9Error as exc:
        _fail(exc)
    if code != 0:
        typer.secho(f"Sketch exited with status {code}", fg=typer.colors.YELLOW, err=True)
    raise typer.Exit(code=_exit_status(code))


@app.command("run", context_settings=PASSTHROUGH)
def run_cmd(
    sketch: str | None = typer.Argument(None, help="Sketch file (default: <current dir>.rb)"),
    args: list[str] | None = typer.Argument(None, help="Arguments passed through to the sketch"),
    jruby: bool = typer.Option(False, "--jruby", help="Use the installed jruby even if config says otherwise"),
    nojruby: bool = typer.Option(False, "--nojruby", help="Use jruby-complete in place of an installed jruby"),
) -> None:
    """Run sketch once."""
    _run(Action.RUN, sketch, args, jruby, nojruby)


@app.command("watch", context_settings=PASSTHROUGH)
def watch_cmd(
    sketch: str | None = typer.Argument(None, help="Sketch file (default: <current dir>.rb)"),
    args: list[str] | None = typer.Argument(None, help="Arguments passed through to the sketch"),
    jruby: bool = typer.Option(False, "--jruby", help="Use the installed jruby even if config says otherwise"),
    nojruby: bool = typer.Option(False, "--nojruby", help="Use jruby-complete in place of an installed jruby"),
) -> None:
    """Watch for changes on the file and relaunch it on the fly."""
    _run(Action.WATCH, sketch, args, jruby, nojruby)


@app.command("live", context_settings=PASSTHROUGH)
def live_cmd(
    sketch: str | None = typer.Argument(None, help="Sketch file (default: <current dir>.rb)"),
    args: list[str] | None = typer.Argument(None, help="Arguments passed through to the sketch"),
    jruby: bool = typer.Option(False, "--jruby", help="Use the installed jruby even if config says otherwise"),
    nojruby: bool = typer.Option(False, "--nojruby", help="Use jruby-complete in place of an installed jruby"),
) -> None:
    """Run sketch and open a pry console bound to $app."""
    _run(Action.LIVE, sketch, args, jruby, nojruby)


@app.command("create")
def create_cmd(
    name: str = typer.Argument(..., help="Sketch name"),
    size: list[str] | None = typer.Argument(None, help="[WIDTH HEIGHT] [p2d|p3d|fx2d]"),
    wrap: bool = typer.Option(False, "--wrap", help="Class wrapped sketch"),
    inner: bool = typer.Option(False, "--inner", help="Inner class including Processing::Proxy"),
    emacs: bool = typer.Option(False, "--emacs", help="Class sketch runnable straight from an editor"),
) -> None:
    """Create a new sketch."""
    config = _load_config()
    invocation = Invocation(
        action=Action.CREATE,
        path=name,
        args=tuple(size or ()),
        flags=Flags(wrap=wrap, inner=inner, emacs=emacs),
    )
    try:
        path = create_sketch(decode(invocation, config))
    except InvocationError as exc:
        raise typer.BadParameter(str(exc)) from exc
    except K9Error as exc:
        _fail(exc)
    typer.secho(f"Created {path}", fg=typer.colors.GREEN)


@app.command("setup")
def setup_cmd(
    choice: str = typer.Argument("check", help="check | install | unpack_samples"),
) -> None:
    """Check the runtime setup."""
    try:
        cmd = decode(Invocation(action=Action.SETUP, path=choice))
    except InvocationError as exc:
        raise typer.BadParameter(str(exc)) from exc
    config = _load_config()
    if cmd.choice != "check":
        typer.secho(
            f"k9 does not download runtimes or samples. Put jruby-complete.jar in "
            f"{config.jruby_complete.parent} or install jruby, then run `k9 setup check`.",
            fg=typer.colors.YELLOW,
            err=True,
        )
        raise typer.Exit(code=1)

    try:
        report = check_setup(config)
    except K9Error as exc:
        _fail(exc)
    typer.echo(format_setup_report(report))
    if not report.can_run:
        raise typer.Exit(code=1)


@app.command("version")
def version_cmd() -> None:
    """Show version."""
    _respond(decode(Invocation(action=Action.VERSION)))


@app.command("help")
def help_cmd(ctx: typer.Context) -> None:
    """Show this message."""
    _respond(decode(Invocation(action=Action.HELP)), ctx)


if __name__ == "__main__":
    app()
