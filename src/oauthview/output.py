"""Terminal output for the oauthview CLI.

Results (authorize URLs, intercepted outcomes, token status, profile
tables) are written to stdout and nothing else is. Status lines, warnings,
errors and hints go to stderr, so ``oauthview --json intercept URL | jq``
always sees clean JSON.

When ``--json`` or ``--plain`` is not given the format follows the
terminal: Rich rendering on an interactive stdout, tab-separated plain
text when piped. Colour is off under ``NO_COLOR``, ``TERM=dumb`` or
``--no-color``.

Commands call the module-level helpers (:func:`format_result`,
:func:`error`, ...), which forward to the :class:`OutputManager` installed
by the root callback with :func:`set_output`.
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import Any, NamedTuple, Optional

from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table


class OutputFormat(str, Enum):
    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


class _Level(NamedTuple):
    prefix: str
    style: str
    quiet_hides: bool
    verbose_only: bool = False


_LEVELS: dict[str, _Level] = {
    "info": _Level("", "", quiet_hides=True),
    "success": _Level("", "green", quiet_hides=True),
    "suggest": _Level("→ ", "dim", quiet_hides=True),
    "warning": _Level("Warning: ", "yellow", quiet_hides=False),
    "error": _Level("Error: ", "bold red", quiet_hides=False),
    "debug": _Level("[debug] ", "dim", quiet_hides=False, verbose_only=True),
}


def _to_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


class OutputManager:
    """Holds the output preferences for one CLI invocation.

    Args:
        format: ``AUTO`` picks ``RICH`` for a colour-capable TTY and
            ``PLAIN`` otherwise.
        no_color: Force colour off.
        quiet: Hide info, success and suggestion lines.
        verbose: Show debug lines.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose

        if format == OutputFormat.AUTO:
            format = OutputFormat.RICH if _is_tty() and not self._no_color else OutputFormat.PLAIN
        self._format = format

        self._data_console = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=format == OutputFormat.RICH,
        )
        self._diag_console = Console(file=sys.stderr, stderr=True, no_color=self._no_color)

    @property
    def format(self) -> OutputFormat:
        return self._format

    @property
    def is_quiet(self) -> bool:
        return self._quiet

    @property
    def is_verbose(self) -> bool:
        return self._verbose

    # stdout

    def format_result(self, data: Any) -> None:
        """Write one command result to stdout in the active format."""
        if self._format == OutputFormat.JSON:
            self.print_data(_to_json(data))
        elif self._format == OutputFormat.PLAIN:
            for line in _plain_lines(data):
                self.print_data(line)
        elif isinstance(data, (dict, list)):
            self._data_console.print(Syntax(_to_json(data), "json", theme="monokai", word_wrap=True))
        else:
            self._data_console.print(str(data))

    def print_data(self, text: str) -> None:
        print(text, file=sys.stdout, flush=True)

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Write rows to stdout: a Rich table, JSON records, or TSV."""
        if self._format == OutputFormat.JSON:
            self.print_data(_to_json([dict(zip(headers, row)) for row in rows]))
            return
        if self._format == OutputFormat.PLAIN:
            for row in [headers, *rows]:
                self.print_data("\t".join(row))
            return
        table = Table(*headers, title=title, header_style="bold cyan")
        for row in rows:
            table.add_row(*row)
        self._data_console.print(table)

    # stderr

    def info(self, message: str) -> None:
        self._emit("info", message)

    def success(self, message: str) -> None:
        self._emit("success", message)

    def warning(self, message: str) -> None:
        self._emit("warning", message)

    def error(self, message: str) -> None:
        self._emit("error", message)

    def suggest(self, message: str) -> None:
        """A next step the user may want to run."""
        self._emit("suggest", message)

    def debug(self, message: str) -> None:
        self._emit("debug", message)

    def _emit(self, level_name: str, message: str) -> None:
        level = _LEVELS[level_name]
        if level.quiet_hides and self._quiet:
            return
        if level.verbose_only and not self._verbose:
            return
        text = f"{level.prefix}{message}"
        if self._no_color:
            print(text, file=sys.stderr, flush=True)
        elif level.style:
            self._diag_console.print(text, style=level.style, markup=False, highlight=False)
        else:
            self._diag_console.print(text, markup=False, highlight=False)


def _plain_lines(data: Any) -> list[str]:
    if isinstance(data, dict):
        return [f"{key}\t{'' if value is None else value}" for key, value in data.items()]
    if isinstance(data, list):
        return [
            "\t".join(str(v) for v in item.values()) if isinstance(item, dict) else str(item)
            for item in data
        ]
    return [str(data)]


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """``NO_COLOR`` (set to anything) or ``TERM=dumb`` turns colour off."""
    return "NO_COLOR" in os.environ or os.environ.get("TERM") == "dumb"


# Process-wide manager, installed by the root CLI callback.

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    global _output
    _output = None


def format_result(data: Any) -> None:
    get_output().format_result(data)


def print_data(text: str) -> None:
    get_output().print_data(text)


def print_table(headers: list[str], rows: list[list[str]], title: Optional[str] = None) -> None:
    get_output().print_table(headers, rows, title)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def warning(message: str) -> None:
    get_output().warning(message)


def error(message: str) -> None:
    get_output().error(message)


def suggest(message: str) -> None:
    get_output().suggest(message)


def debug(message: str) -> None:
    get_output().debug(message)
