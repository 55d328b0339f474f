"""
PELens Console
===============

Thin layer over :class:`rich.console.Console` giving the command-line
front end one palette for its banner, section rules, status lines, tables
and progress spinner.

Status lines are built from :class:`rich.text.Text` rather than markup
strings: paths and names decoded from an image may contain square
brackets, which markup would swallow.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.status import Status
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

_PELENS_THEME = Theme(
    {
        "pelens.banner": "bold bright_cyan",
        "pelens.section": "bold bright_magenta",
        "pelens.success": "bold green",
        "pelens.warning": "bold yellow",
        "pelens.error": "bold red",
        "pelens.info": "bold bright_blue",
        "pelens.dim": "dim white",
        "pelens.address": "bright_cyan",
    }
)

TABLE_BORDER = "bright_cyan"
TABLE_HEADER = "bold bright_magenta"


class PELensConsole:
    """Themed console.

    Args:
        quiet: Discard all output.
        record: Keep rendered output for :meth:`export_text`.
    """

    def __init__(self, *, quiet: bool = False, record: bool = False) -> None:
        self._console = Console(
            theme=_PELENS_THEME,
            quiet=quiet,
            record=record,
            highlight=False,
        )

    @property
    def rich(self) -> Console:
        return self._console

    def banner(self, version: str) -> None:
        title = Text.assemble(
            ("PELens", "pelens.banner"),
            "  ",
            (f"Portable Executable structure analyzer v{version}", "pelens.dim"),
        )
        self._console.print(Panel(title, border_style=TABLE_BORDER, expand=False))

    def section(self, title: str) -> None:
        self._console.rule(Text(f"  {title}  "), style="pelens.section", characters="─")

    # ------------------------------------------------------------------ #
    #  Status lines
    # ------------------------------------------------------------------ #

    def _status_line(self, tag: str, style: str, message: str) -> None:
        # one physical line: error descriptions are matched verbatim
        self._console.print(Text.assemble((tag, style), message), soft_wrap=True)

    def success(self, message: str) -> None:
        self._status_line("[✔] SUCCESS: ", "pelens.success", message)

    def warning(self, message: str) -> None:
        self._status_line("[⚠] WARNING: ", "pelens.warning", message)

    def error(self, message: str) -> None:
        self._status_line("[✘] ERROR: ", "pelens.error", message)

    def info(self, message: str) -> None:
        self._status_line("[ℹ] INFO: ", "pelens.info", message)

    # ------------------------------------------------------------------ #
    #  Tables and progress
    # ------------------------------------------------------------------ #

    def table(
        self,
        title: str,
        columns: Sequence[str],
        rows: Sequence[Sequence[Any]],
        *,
        caption: str | None = None,
        justify: Sequence[str] | None = None,
    ) -> None:
        """Print a table of plain-text cells.

        Args:
            title: Shown above the table.
            columns: Header labels.
            rows: Row tuples; every cell is converted with ``str()``.
            caption: Shown below the table.
            justify: Per-column ``"left"`` / ``"right"`` / ``"center"``;
                columns without an entry are left-justified.
        """
        alignments = list(justify or ())
        tbl = Table(
            title=Text(title, style="bold"),
            caption=caption,
            border_style=TABLE_BORDER,
            header_style=TABLE_HEADER,
            padding=(0, 1),
        )
        for index, label in enumerate(columns):
            tbl.add_column(
                label,
                justify=alignments[index] if index < len(alignments) else "left",  # type: ignore[arg-type]
            )
        for row in rows:
            tbl.add_row(*(Text(str(cell)) for cell in row))
        self._console.print(tbl)

    @contextmanager
    def status(self, message: str) -> Iterator[Status]:
        """Show a spinner with *message* while the block runs."""
        with self._console.status(
            Text(message, style="pelens.info"),
            spinner="dots",
            spinner_style=TABLE_BORDER,
        ) as spinner:
            yield spinner

    # ------------------------------------------------------------------ #
    #  Plumbing
    # ------------------------------------------------------------------ #

    def print(self, *args: Any, **kwargs: Any) -> None:
        self._console.print(*args, **kwargs)

    def blank(self, count: int = 1) -> None:
        for _ in range(count):
            self._console.print()

    def divider(self, style: str = "dim") -> None:
        self._console.rule(style=style)

    def export_text(self) -> str:
        """Recorded output as plain text; requires ``record=True``."""
        return self._console.export_text()
