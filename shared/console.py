"""
PEInfo Console Interface
=========================

Themed :class:`rich.console.Console` shared by the command line and the
result renderer, with helpers for section rules, status lines and
key/value tables.  Status messages are printed literally: text taken
from the image (section and module names) never acts as Rich markup.

References:
    - Rich library: https://github.com/Textualize/rich
"""

from __future__ import annotations

from typing import Any, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.theme import Theme

_PEINFO_THEME = Theme(
    {
        "peinfo.section": "bold bright_magenta",
        "peinfo.success": "bold green",
        "peinfo.warning": "bold yellow",
        "peinfo.error": "bold red",
        "peinfo.info": "bold bright_blue",
        "peinfo.key": "bold bright_cyan",
        "peinfo.address": "bright_green",
    }
)


class PEInfoConsole:
    """Unified console for PEInfo output.

    Usage::

        con = PEInfoConsole()
        con.section("Sections")
        con.error("Cannot decode image: bad PE signature")
    """

    def __init__(self, *, width: int | None = None) -> None:
        """*width* fixes the line width; ``None`` lets Rich detect the terminal."""
        self._console = Console(theme=_PEINFO_THEME, highlight=False, width=width)

    @property
    def rich(self) -> Console:
        """Direct access to the underlying Rich Console instance."""
        return self._console

    # ------------------------------------------------------------------ #
    #  Headers and messages
    # ------------------------------------------------------------------ #

    def section(self, title: str) -> None:
        """Print a section rule."""
        self._console.rule(f"  {escape(title)}  ", style="peinfo.section", characters="─")
        self._console.print()

    def _status(self, style: str, label: str, message: str) -> None:
        self._console.print(f"[{style}]{escape(label)}[/{style}] {escape(message)}")

    def success(self, message: str) -> None:
        self._status("peinfo.success", "[✔] SUCCESS:", message)

    def warning(self, message: str) -> None:
        self._status("peinfo.warning", "[⚠] WARNING:", message)

    def error(self, message: str) -> None:
        self._status("peinfo.error", "[✘] ERROR:", message)

    def info(self, message: str) -> None:
        self._status("peinfo.info", "[ℹ] INFO:", message)

    # ------------------------------------------------------------------ #
    #  Tables
    # ------------------------------------------------------------------ #

    def kv_table(self, title: str, pairs: Sequence[tuple[str, Any]]) -> None:
        """Render a two-column key/value table without a header row.

        *title* is Rich markup; values are printed literally.
        """
        tbl = Table(
            title=title,
            show_header=False,
            border_style="bright_cyan",
            padding=(0, 1),
        )
        tbl.add_column("Field", style="peinfo.key")
        tbl.add_column("Value")
        for key, value in pairs:
            tbl.add_row(key, escape(str(value)))
        self._console.print(tbl)

    def blank(self, count: int = 1) -> None:
        for _ in range(count):
            self._console.print()
