"""Terminal output for the twitchauth CLI.

Data and diagnostics never share a stream, so ``TOKEN=$(twitchauth token)``
captures the token and nothing else:

* **stdout** -- the access token, the authorization URL, and records such as
  ``status`` or ``config show``, in the active :class:`OutputFormat`.
* **stderr** -- progress, errors and next-step hints. ``--quiet`` silences
  everything here except errors. Log records share this console through the
  handler installed by :func:`~twitchauth.app.main_callback`.

Colour is off for ``--no-color``, any ``NO_COLOR`` value, and ``TERM=dumb``.
"""

from __future__ import annotations

import json
import os
import sys
from collections.abc import Mapping
from enum import Enum
from typing import Any, Optional

from rich.console import Console
from rich.table import Table


class OutputFormat(str, Enum):
    """How records are written to stdout. ``AUTO`` picks ``RICH`` on a colour TTY."""

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    return "NO_COLOR" in os.environ or os.environ.get("TERM") == "dumb"


def _flatten(record: Mapping[str, Any], prefix: str = "") -> list[tuple[str, str]]:
    """Turn a nested record into ``(dotted.key, text)`` rows.

    Dotted keys match what ``twitchauth config set`` accepts, and lists are
    comma-joined the way ``config set scopes`` reads them back.
    """
    rows: list[tuple[str, str]] = []
    for key, value in record.items():
        name = f"{prefix}{key}"
        if isinstance(value, Mapping):
            rows.extend(_flatten(value, prefix=f"{name}."))
        elif isinstance(value, (list, tuple)):
            rows.append((name, ",".join(str(item) for item in value)))
        elif value is None:
            rows.append((name, ""))
        else:
            rows.append((name, str(value)))
    return rows


class OutputManager:
    """Routes CLI output to stdout or stderr in the selected format.

    Args:
        format: Record format for stdout. ``AUTO`` resolves to ``RICH`` when
            stdout is a TTY and colour is enabled, ``PLAIN`` otherwise.
        no_color: Disable colour and Rich markup.
        quiet: Drop informational stderr messages (errors still print).
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        if format == OutputFormat.AUTO:
            rich_ok = _is_tty() and not self._no_color
            format = OutputFormat.RICH if rich_ok else OutputFormat.PLAIN
        self._format = format
        self._stdout = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=format == OutputFormat.RICH,
        )
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    @property
    def stderr_console(self) -> Console:
        """The diagnostics console, shared with the Rich logging handler."""
        return self._stderr

    # --- stdout ---

    def print_data(self, text: str) -> None:
        """Write *text* verbatim to stdout (tokens, URLs)."""
        print(text, file=sys.stdout, flush=True)

    def print_record(self, record: Mapping[str, Any], title: Optional[str] = None) -> None:
        """Write one record to stdout.

        JSON keeps the record's nesting and value types. Plain prints one
        ``key<TAB>value`` line per field. Rich draws a two-column table
        under *title*.
        """
        if self._format == OutputFormat.JSON:
            self.print_data(json.dumps(record, indent=2, ensure_ascii=False, default=str))
            return
        rows = _flatten(record)
        if self._format == OutputFormat.PLAIN:
            for key, value in rows:
                self.print_data(f"{key}\t{value}")
            return
        table = Table(title=title, show_header=False, box=None, pad_edge=False)
        table.add_column(style="bold cyan")
        table.add_column()
        for key, value in rows:
            table.add_row(key, value)
        self._stdout.print(table)

    # --- stderr ---

    def _diagnostic(self, message: str, style: Optional[str] = None, label: str = "") -> None:
        if self._no_color:
            print(f"{label}{message}", file=sys.stderr, flush=True)
        elif label:
            self._stderr.print(f"[{style}]{label}[/{style}]{message}")
        elif style:
            self._stderr.print(f"[{style}]{message}[/{style}]")
        else:
            self._stderr.print(message)

    def info(self, message: str) -> None:
        if not self._quiet:
            self._diagnostic(message)

    def success(self, message: str) -> None:
        if not self._quiet:
            self._diagnostic(message, "green")

    def suggest(self, message: str) -> None:
        """Print a next step such as ``twitchauth login``."""
        if not self._quiet:
            self._diagnostic(f"→ {message}", "dim")

    def error(self, message: str) -> None:
        """Print an error. Shown even with ``--quiet``."""
        self._diagnostic(message, "bold red", label="Error: ")


_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed :class:`OutputManager`, creating a default one."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    """Forget the installed manager; tests call this between CLI runs."""
    global _output
    _output = None


def print_data(text: str) -> None:
    get_output().print_data(text)


def print_record(record: Mapping[str, Any], title: Optional[str] = None) -> None:
    get_output().print_record(record, title)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def suggest(message: str) -> None:
    get_output().suggest(message)


def error(message: str) -> None:
    get_output().error(message)
