"""
PELens Console Output
======================

Rich terminal rendering of an :class:`~pelens.core.models.AnalysisResult`:
an overview panel followed by the section, export and import tables.
Addresses are shown in hexadecimal; ordinal-only entries are flagged with
a check mark.
"""

from __future__ import annotations

from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from shared.console import TABLE_BORDER, TABLE_HEADER, PELensConsole

from pelens.core.models import AnalysisResult, ExportEntry, ImportLibrary, Section

_CHECK = "[bright_green]✔[/bright_green]"


def _hex(value: int, width: int = 8) -> str:
    return f"0x{value:0{width}X}"


class PELensConsoleOutput:
    """Rich terminal display for PE analysis results.

    Usage::

        output = PELensConsoleOutput()
        output.display(result)
    """

    def __init__(self, console: PELensConsole | None = None) -> None:
        self._console: PELensConsole = console or PELensConsole()

    def display(self, result: AnalysisResult) -> None:
        """Display the complete analysis result."""
        self.display_header(result)
        self.display_sections(result.sections)
        self.display_exports(result.exports)
        self.display_imports(result.imports)
        self._console.divider()

    def display_header(self, result: AnalysisResult) -> None:
        lines = Text()
        lines.append("File:          ", style="bold")
        lines.append(f"{result.path}\n")
        lines.append("Size:          ", style="bold")
        lines.append(f"{result.size:,} bytes ({result.size / 1024:.1f} KiB)\n")
        lines.append("Format:        ", style="bold")
        lines.append(f"{'PE32+' if result.is_x64 else 'PE32'} ({result.bits}-bit)\n")
        lines.append("Machine:       ", style="bold")
        lines.append(f"{result.architecture} ({_hex(result.machine, 4)})\n")
        lines.append("Sections:      ", style="bold")
        lines.append(f"{len(result.sections)}\n")
        lines.append("Exports:       ", style="bold")
        lines.append(f"{result.export_count}\n")
        lines.append("Imports:       ", style="bold")
        lines.append(
            f"{result.import_function_count} function(s) from "
            f"{len(result.imports)} librar{'y' if len(result.imports) == 1 else 'ies'}"
        )

        self._console.rich.print(
            Panel(
                lines,
                title="[bold bright_cyan]Binary Information[/bold bright_cyan]",
                border_style=TABLE_BORDER,
                padding=(1, 2),
            )
        )
        self._console.blank()

    def display_sections(self, sections: tuple[Section, ...]) -> None:
        self._console.section("Sections")
        if not sections:
            self._console.info("No sections declared.")
            return

        self._console.table(
            f"Section Table ({len(sections)})",
            ["#", "Name", "Raw Pointer", "Virtual Address", "Virtual End"],
            [
                (
                    i,
                    sec.name,
                    _hex(sec.raw_pointer),
                    _hex(sec.virtual_address),
                    _hex(sec.virtual_end),
                )
                for i, sec in enumerate(sections, 1)
            ],
            justify=["right", "left", "right", "right", "right"],
        )
        self._console.blank()

    def display_exports(self, exports: tuple[ExportEntry, ...]) -> None:
        self._console.section("Exports")
        if not exports:
            self._console.info("No export table.")
            return

        tbl = self._new_table()
        tbl.add_column("Ordinal", justify="right")
        tbl.add_column("Address", justify="right", style="pelens.address")
        tbl.add_column("Name")

        for exp in exports:
            tbl.add_row(
                str(exp.ordinal),
                _hex(exp.address),
                Text(exp.name) if exp.is_named else Text("(ordinal only)", style="dim"),
            )
        self._console.print(tbl)
        self._console.blank()

    def display_imports(self, imports: tuple[ImportLibrary, ...]) -> None:
        self._console.section("Imports")
        if not imports:
            self._console.info("No import table.")
            return

        for lib in imports:
            tbl = self._new_table(title=f"{lib.dll_name} ({len(lib.functions)})")
            tbl.add_column("By Ordinal", justify="center", width=10)
            tbl.add_column("Ordinal", justify="right")
            tbl.add_column("Hint", justify="right")
            tbl.add_column("Name")

            for fn in lib.functions:
                if fn.is_ordinal:
                    tbl.add_row(_CHECK, str(fn.ordinal), "", "")
                else:
                    tbl.add_row("", "", _hex(fn.hint, 4), Text(fn.name))
            self._console.print(tbl)
        self._console.blank()

    @staticmethod
    def _new_table(title: str = "") -> Table:
        return Table(
            title=Text(title, style="bold") if title else None,
            border_style=TABLE_BORDER,
            header_style=TABLE_HEADER,
            padding=(0, 1),
        )
