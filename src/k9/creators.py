"""Sketch templates for `k9 create`; existing files are never overwritten."""
from __future__ import annotations

import logging
import re
from pathlib import Path

from .errors import SketchExists
from .invocation import CreateSketch

log = logging.getLogger(__name__)


def snake_case(name: str) -> str:
    """fred, Fred, FredSketch, fred-sketch -> fred, fred, fred_sketch, fred_sketch."""
    stem = Path(name).stem
    stem = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", stem)
    stem = re.sub(r"[^A-Za-z0-9]+", "_", stem)
    return stem.strip("_").lower()


def camel_case(name: str) -> str:
    return "".join(part.capitalize() for part in snake_case(name).split("_"))


def title(name: str) -> str:
    return " ".join(part.capitalize() for part in snake_case(name).split("_"))


def _size_call(cmd: CreateSketch) -> str:
    if cmd.mode:
        return f"size {cmd.width}, {cmd.height}, {cmd.mode}"
    return f"size {cmd.width}, {cmd.height}"


def _indent(text: str, spaces: int = 2) -> str:
    pad = " " * spaces
    return "\n".join(pad + line if line else line for line in text.splitlines())


def _methods(cmd: CreateSketch) -> str:
    return f"""def settings
  {_size_call(cmd)}
  # pixel_density(2) # here for hi-dpi displays only
  # smooth # here
end

def setup
  sketch_title '{title(cmd.name)}'
end

def draw

end"""


def get_bare_template(cmd: CreateSketch) -> str:
    """Top-level methods; the runner wraps them in a sketch class."""
    return f"""# frozen_string_literal: true

{_methods(cmd)}
"""


def get_class_template(cmd: CreateSketch) -> str:
    return f"""# frozen_string_literal: true

require 'jruby_art'

class {camel_case(cmd.name)} < Processing::App
{_indent(_methods(cmd))}
end
"""


def get_emacs_template(cmd: CreateSketch) -> str:
    """Class sketch that runs directly under jruby, e.g. from an editor."""
    return f"""# frozen_string_literal: true

require 'jruby_art'
require 'jruby_art/app'

Processing::App::SKETCH_PATH = __FILE__.freeze

class {camel_case(cmd.name)} < Processing::App
{_indent(_methods(cmd))}
end

{camel_case(cmd.name)}.new
"""


def get_inner_template(cmd: CreateSketch) -> str:
    """A helper class with access to the sketch's drawing methods."""
    return f"""# frozen_string_literal: true

# Include Processing::Proxy to reach the enclosing sketch's methods
class {camel_case(cmd.name)}
  include Processing::Proxy
end
"""


TEMPLATES = {
    "bare": get_bare_template,
    "class": get_class_template,
    "emacs": get_emacs_template,
    "inner": get_inner_template,
}


def create_sketch(cmd: CreateSketch, directory: Path | None = None) -> Path:
    """
    Write <snake_name>.rb for cmd into directory (default: cwd).

    Raises:
        SketchExists: the file is already there; it is never overwritten
    """
    directory = directory or Path.cwd()
    path = directory / f"{snake_case(cmd.name)}.rb"
    if path.exists():
        raise SketchExists(path)

    path.write_text(TEMPLATES[cmd.template](cmd), encoding="utf-8")
    log.info(f"Created {cmd.template} sketch {path}")
    return path
