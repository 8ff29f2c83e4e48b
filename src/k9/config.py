from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .errors import K9Error

TEMPLATES = {"bare", "class", "emacs", "inner"}
NOTIFIERS = {"poll", "events"}


class ConfigError(K9Error, ValueError):
    pass


@dataclass(frozen=True)
class K9Config:
    k9_root: Path
    sketchbook_path: Path
    use_jruby: bool = True
    java_args: tuple[str, ...] = ()
    template: str = "bare"
    width: int = 200
    height: int = 200
    watch_directory: bool = False
    notifier: str = "poll"
    poll_interval: float = 0.5
    debounce_seconds: float = 0.25
    grace_period: float = 5.0
    source: Path | None = None

    @property
    def jruby_complete(self) -> Path:
        return self.k9_root / "lib" / "ruby" / "jruby-complete.jar"

    def runner_script(self, starter: str) -> Path:
        return self.k9_root / "lib" / "jruby_art" / "runners" / starter


def get_config_dir() -> Path:
    env_val = os.getenv("JRUBY_ART_HOME")
    if env_val:
        return Path(env_val)
    return Path.home() / ".jruby_art"


def get_config_path() -> Path:
    env_val = os.getenv("K9_CONFIG")
    if env_val:
        return Path(env_val)
    return get_config_dir() / "config.yml"


def _expect_bool(data: dict[str, Any], key: str, default: bool) -> bool:
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    # The Ruby tooling writes these as quoted strings ('true'/'false').
    if isinstance(value, str) and value.strip().lower() in {"true", "false"}:
        return value.strip().lower() == "true"
    raise ConfigError(f"Config '{key}' must be true or false, got {value!r}.")


def _expect_number(data: dict[str, Any], key: str, default: float, *, integer: bool = False) -> float:
    value = data.get(key)
    if value is None:
        return default
    try:
        number = int(value) if integer else float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Config '{key}' must be a number, got {value!r}.") from None
    if number <= 0:
        raise ConfigError(f"Config '{key}' must be positive.")
    return number


def _expect_choice(data: dict[str, Any], key: str, default: str, choices: set[str]) -> str:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, str) or value.strip() not in choices:
        raise ConfigError(f"Config '{key}' must be one of: {', '.join(sorted(choices))}.")
    return value.strip()


def _java_args(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(value.split())
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return tuple(value)
    raise ConfigError("Config 'java_args' must be a string or a list of strings.")


def _path(data: dict[str, Any], key: str, default: Path) -> Path:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"Config '{key}' must be a non-empty string.")
    return Path(value.strip()).expanduser()


def load_config(path: Path | None = None) -> K9Config:
    """
    Load ~/.jruby_art/config.yml (or the file named by K9_CONFIG).

    A missing file is not an error: every key has a default so that
    `k9 run` works on a fresh machine with an installed jruby.
    """
    path = path or get_config_path()
    raw: Any = {}
    if path.exists():
        try:
            raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Config file {path} is not valid YAML: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {path} must contain a mapping.")

    default_root = Path(os.getenv("K9_ROOT") or get_config_dir())

    return K9Config(
        k9_root=_path(raw, "K9_ROOT", default_root),
        sketchbook_path=_path(raw, "sketchbook_path", Path.home() / "sketchbook"),
        use_jruby=_expect_bool(raw, "JRUBY", True),
        java_args=_java_args(raw.get("java_args")),
        template=_expect_choice(raw, "template", "bare", TEMPLATES),
        width=int(_expect_number(raw, "width", 200, integer=True)),
        height=int(_expect_number(raw, "height", 200, integer=True)),
        watch_directory=_expect_bool(raw, "watch_directory", False),
        notifier=_expect_choice(raw, "notifier", "poll", NOTIFIERS),
        poll_interval=_expect_number(raw, "poll_interval", 0.5),
        debounce_seconds=_expect_number(raw, "debounce_seconds", 0.25),
        grace_period=_expect_number(raw, "grace_period", 5.0),
        source=path if path.exists() else None,
    )
