"""
PEInfo Console Output
======================

Rich-powered terminal display for :class:`AnalysisResult`: a header
panel, the data-directory and section tables, the import and export
listings, and any diagnostics collected during the run.

References:
    - Rich library: https://github.com/Textualize/rich
"""

from __future__ import annotations

from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from shared.console import PEInfoConsole

from peinfo.core.models import (
    AnalysisResult,
    DataDirectory,
    Diagnostic,
    DirectoryEntry,
    ExportTable,
    ImportedModule,
    ImportKind,
    PEHeaders,
    Section,
)


def _hex(value: int, width: int = 8) -> str:
    return f"0x{value:0{width}x}"


def _table(title: str = "") -> Table:
    return Table(
        title=title,
        border_style="bright_cyan",
        header_style="bold bright_magenta",
        padding=(0, 1),
    )


class PEInfoConsoleOutput:
    """Rich terminal display for PEInfo analysis results.

    Usage::

        output = PEInfoConsoleOutput()
        output.display(result)
    """

    def __init__(self, console: PEInfoConsole | None = None) -> None:
        self._console: PEInfoConsole = console or PEInfoConsole()

    def display(self, result: AnalysisResult) -> None:
        """Display every populated part of *result*."""
        self._console.section("PEInfo -- Portable Executable Inspector")
        self.display_header(result)

        if result.headers.data_directories:
            self.display_directories(result.headers.data_directories)

        if result.sections is not None:
            self.display_sections(result.sections, result.headers)

        if result.imports is not None:
            self.display_imports(result.imports)

        if result.exports is not None:
            self.display_exports(result.exports)

        if result.diagnostics:
            self.display_diagnostics(result.diagnostics)

    # ------------------------------------------------------------------ #
    #  Header
    # ------------------------------------------------------------------ #

    def display_header(self, result: AnalysisResult) -> None:
        headers: PEHeaders = result.headers
        ih = headers.image_header
        kind = headers.bitness.label if headers.bitness else "unknown image"

        lines: list[str] = [
            f"[bold]File:[/bold]            {escape(result.path)}",
            f"[bold]Size:[/bold]            {result.size:,} bytes",
            f"[bold]PE header:[/bold]       @0x{headers.pe_offset:x}",
            f"[bold]Format:[/bold]          {kind} ({ih.machine_name})",
            f"[bold]Sections:[/bold]        {ih.number_of_sections}",
        ]
        if ih.timestamp is not None:
            lines.append(
                f"[bold]Timestamp:[/bold]       {ih.timestamp:%Y-%m-%d %H:%M:%S} UTC"
            )
        if ih.characteristic_flags:
            lines.append(
                f"[bold]Characteristics:[/bold] {', '.join(ih.characteristic_flags)}"
            )

        oh = headers.optional_header
        if oh is not None:
            base = headers.image_base
            export_dir = headers.directory(DirectoryEntry.EXPORT)
            import_dir = headers.directory(DirectoryEntry.IMPORT)
            lines += [
                f"[bold]Subsystem:[/bold]       {oh.subsystem_name}",
                f"[bold]ImageBase:[/bold]       {base:x}",
                f"[bold]ImageSize:[/bold]       {oh.size_of_image:x}",
                f"[bold]SectionAlign:[/bold]    {oh.section_alignment:x}",
                f"[bold]FileAlign:[/bold]       {oh.file_alignment:x}",
                f"[bold]EntryPointRVA:[/bold]   {ih.entry_point_rva:x} "
                f"({headers.entry_point_va:x})",
                f"[bold]ExportTableRVA:[/bold]  {export_dir.rva:x} "
                f"({export_dir.rva + base:x}), size {export_dir.size:x}",
                f"[bold]ImportTableRVA:[/bold]  {import_dir.rva:x} "
                f"({import_dir.rva + base:x}), size {import_dir.size:x}",
            ]

        panel = Panel(
            "\n".join(lines),
            title="[bold bright_cyan]Image Header[/bold bright_cyan]",
            border_style="bright_cyan",
            padding=(1, 2),
        )
        self._console.rich.print(panel)
        self._console.blank()

    def display_directories(self, directories: list[DataDirectory]) -> None:
        tbl = _table("Data Directories")
        tbl.add_column("#", style="dim", justify="right")
        tbl.add_column("Entry", style="bold")
        tbl.add_column("RVA", justify="right")
        tbl.add_column("Size", justify="right")

        for d in directories:
            if d.is_empty:
                continue
            tbl.add_row(str(d.index), d.entry.name, _hex(d.rva), f"{d.size:#x}")

        self._console.rich.print(tbl)
        self._console.blank()

    # ------------------------------------------------------------------ #
    #  Sections
    # ------------------------------------------------------------------ #

    def display_sections(self, sections: list[Section], headers: PEHeaders) -> None:
        """Section table, marking where the import/export tables live."""
        self._console.section("Sections")

        import_rva = export_rva = None
        if headers.data_directories:
            import_rva = headers.directory(DirectoryEntry.IMPORT).rva
            export_rva = headers.directory(DirectoryEntry.EXPORT).rva

        tbl = _table()
        tbl.add_column("#", style="dim", justify="right")
        tbl.add_column("Name", style="bold", min_width=8)
        tbl.add_column("VirtualSize", justify="right")
        tbl.add_column("RVA", justify="right")
        tbl.add_column("VA", justify="right", style="peinfo.address")
        tbl.add_column("PhysicalSize", justify="right")
        tbl.add_column("PhysicalOffset", justify="right")
        tbl.add_column("Flags")
        tbl.add_column("Tables")

        for sec in sections:
            here: list[str] = []
            if import_rva is not None and sec.contains(import_rva):
                here.append("import table here")
            if export_rva is not None and sec.contains(export_rva):
                here.append("export table here")
            tbl.add_row(
                str(sec.index),
                escape(sec.name) if sec.name else "<unnamed>",
                f"{sec.virtual_size:x}",
                f"{sec.virtual_address:x}",
                f"{sec.virtual_address + headers.image_base:x}",
                f"{sec.size_of_raw_data:x}",
                f"{sec.pointer_to_raw_data:x}",
                sec.flags,
                ", ".join(here),
            )

        self._console.rich.print(tbl)
        self._console.blank()

    # ------------------------------------------------------------------ #
    #  Imports / exports
    # ------------------------------------------------------------------ #

    def display_imports(self, modules: list[ImportedModule]) -> None:
        self._console.section("Import Table")
        if not modules:
            self._console.info("Import table is empty.")
            return

        for module in modules:
            desc = module.descriptor
            tbl = _table(
                f"{escape(module.name)}  [dim](ImpFlags {desc.import_flags:08x}, "
                f"NameRVA {desc.name_rva:08x}, ImpTabRVA {desc.import_table_rva:08x})[/dim]"
            )
            tbl.add_column("Address", justify="right", style="peinfo.address")
            tbl.add_column("Symbol", style="bold")
            tbl.add_column("Hint", justify="right", style="dim")

            for sym in module.symbols:
                if sym.kind is ImportKind.ORDINAL:
                    tbl.add_row(_hex(sym.address), f"ordinal #{sym.ordinal}", "")
                else:
                    tbl.add_row(_hex(sym.address), escape(sym.name or ""), str(sym.hint))

            self._console.rich.print(tbl)
            self._console.blank()

    def display_exports(self, table: ExportTable) -> None:
        self._console.section("Export Table")
        d = table.directory
        self._console.kv_table(
            f"Export Directory ({escape(table.module_name)})",
            [
                ("Flags", f"{d.flags:08x}"),
                ("MajVer", f"{d.major_version:04x}"),
                ("MinVer", f"{d.minor_version:04x}"),
                ("NameRVA", f"{d.name_rva:08x} ({table.module_name})"),
                ("OrdinalBase", f"{d.ordinal_base:08x}"),
                ("NumEATEntries", f"{d.number_of_functions:08x}"),
                ("NumNamePtrs", f"{d.number_of_names:08x}"),
                ("AddressTableRVA", f"{d.address_table_rva:08x}"),
                ("NamePtrTableRVA", f"{d.name_pointer_table_rva:08x}"),
                ("OrdinalTableRVA", f"{d.ordinal_table_rva:08x}"),
            ],
        )
        if not table.entries:
            return

        tbl = _table()
        tbl.add_column("Address", justify="right", style="peinfo.address")
        tbl.add_column("Ordinal", justify="right")
        tbl.add_column("Name", style="bold")
        tbl.add_column("Forwarder", style="dim")
        for entry in table.entries:
            tbl.add_row(
                _hex(entry.address),
                str(entry.ordinal),
                escape(entry.name),
                escape(entry.forwarder or ""),
            )
        self._console.rich.print(tbl)
        self._console.blank()

    def display_diagnostics(self, diagnostics: list[Diagnostic]) -> None:
        self._console.section("Diagnostics")
        for diag in diagnostics:
            self._console.warning(f"{diag.kind}: {diag.message}")
