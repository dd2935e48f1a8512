"""
PEInfo Analysis Engine
=======================

Two layers sit on top of the decoders:

* :class:`PEAnalysis` -- the per-run analysis context.  It owns one
  :class:`~peinfo.parsers.reader.RawReader` and the state decoded so
  far (headers, section table, resolver) and exposes the individual
  operations: :meth:`~PEAnalysis.decode_header`,
  :meth:`~PEAnalysis.list_sections`, :meth:`~PEAnalysis.locate`,
  :meth:`~PEAnalysis.list_imports` and :meth:`~PEAnalysis.list_exports`.
  Errors propagate unchanged.
* :class:`PEInfoEngine` -- opens the input, runs the header decode and
  the requested operations, and folds table-scoped failures into
  :class:`~peinfo.core.models.Diagnostic` entries.  Structural errors
  (:class:`TruncatedInput`, :class:`InvalidMagic`) abort the run.

Analysis Pipeline:
    1. Read the PE header pointer and decode the headers
    2. Read the section table (once, on first use)
    3. Resolve each requested directory RVA to its section
    4. Read that section in full and walk the table in memory
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional

from shared.config import PEInfoConfig
from shared.logger import PEInfoLogger

from peinfo.core.errors import (
    InputTooLarge,
    PEInfoError,
    TableError,
    TableNotPresent,
    UnsupportedExportLayout,
    UnsupportedImage,
)
from peinfo.core.models import (
    AnalysisResult,
    Bitness,
    DataDirectory,
    Diagnostic,
    DirectoryEntry,
    ExportTable,
    ImportedModule,
    Location,
    Operation,
    PEHeaders,
    Section,
)
from peinfo.parsers.exports import walk_exports
from peinfo.parsers.headers import decode_headers
from peinfo.parsers.imports import walk_imports
from peinfo.parsers.reader import RawReader, SectionBlob, open_reader
from peinfo.parsers.sections import RvaResolver, read_section_table


# Order in which requested operations run and appear in the result
_OPERATION_ORDER: tuple[Operation, ...] = (
    Operation.SECTIONS,
    Operation.IMPORTS,
    Operation.EXPORTS,
)


# ---------------------------------------------------------------------------
# Per-run analysis context
# ---------------------------------------------------------------------------

class PEAnalysis:
    """Analysis context for one input.

    The header is decoded on first use; the section table is read at
    most once.  Nothing is shared between instances.

    Usage::

        with open_reader(path) as reader:
            analysis = PEAnalysis(reader)
            headers = analysis.decode_header()
            modules = analysis.list_imports()
    """

    def __init__(self, reader: RawReader, logger: PEInfoLogger | None = None) -> None:
        self._reader = reader
        self._logger = logger or PEInfoLogger("analysis")
        self._headers: Optional[PEHeaders] = None
        self._sections: Optional[list[Section]] = None
        self._resolver: Optional[RvaResolver] = None

    @property
    def reader(self) -> RawReader:
        return self._reader

    # ------------------------------------------------------------------ #
    #  Header
    # ------------------------------------------------------------------ #

    def decode_header(self) -> PEHeaders:
        """Decode (once) and return the PE headers.

        Raises:
            TruncatedInput: The file ends inside the headers.
            InvalidMagic: The PE signature is wrong.
        """
        if self._headers is None:
            headers = decode_headers(self._reader)
            ih = headers.image_header
            if headers.bitness is None:
                self._logger.warning(
                    "Unknown optional header magic 0x%x", ih.optional_magic,
                    magic=ih.optional_magic,
                )
            else:
                self._logger.debug(
                    "%s header @0x%x (%s), %d section(s), image base 0x%x",
                    headers.bitness.label,
                    headers.pe_offset,
                    ih.machine_name,
                    ih.number_of_sections,
                    headers.image_base,
                )
            self._headers = headers
        return self._headers

    @property
    def headers(self) -> PEHeaders:
        return self.decode_header()

    def _require_supported(self, operation: str) -> PEHeaders:
        headers = self.decode_header()
        if not headers.is_supported:
            raise UnsupportedImage(headers.image_header.optional_magic, operation=operation)
        return headers

    # ------------------------------------------------------------------ #
    #  Sections and RVA resolution
    # ------------------------------------------------------------------ #

    def list_sections(self) -> list[Section]:
        """Return the section table in file order.

        Raises:
            UnsupportedImage: The optional-header magic is unknown.
            TruncatedInput: The file ends inside the section table.
        """
        headers = self._require_supported("list sections")
        if self._sections is None:
            self._sections = read_section_table(self._reader, headers)
            self._resolver = RvaResolver(self._sections)
            self._logger.debug("Read %d section header(s)", len(self._sections))
        return list(self._sections)

    @property
    def resolver(self) -> RvaResolver:
        if self._resolver is None:
            self.list_sections()
        return self._resolver  # type: ignore[return-value]

    def locate(self, rva: int) -> Optional[Location]:
        """Translate *rva* to a file location; ``None`` when no section maps it."""
        return self.resolver.locate(rva)

    def _load_directory(
        self, entry: DirectoryEntry, table: str
    ) -> tuple[PEHeaders, DataDirectory, SectionBlob]:
        """Resolve a data directory and read its containing section."""
        headers = self._require_supported(f"list {table}s")
        directory = headers.directory(entry)
        location = self.locate(directory.rva)
        if location is None:
            raise TableNotPresent(table, directory.rva)

        self._logger.debug(
            "%s directory RVA 0x%x -> file offset 0x%x (section #%d)",
            table, directory.rva, location.file_offset, location.section_index,
            rva=directory.rva,
        )
        blob = self.resolver.read_section(self._reader, location)
        return headers, directory, blob

    # ------------------------------------------------------------------ #
    #  Directory walkers
    # ------------------------------------------------------------------ #

    def list_imports(self) -> list[ImportedModule]:
        """Decode the import directory.

        Raises:
            TableNotPresent: The import directory RVA is not mapped.
            UnsupportedImage: The optional-header magic is unknown.
            TruncatedInput: A descriptor, thunk or name runs off its section.
        """
        with self._logger.operation("imports"):
            headers, directory, blob = self._load_directory(DirectoryEntry.IMPORT, "import")
            bitness: Bitness = headers.bitness  # type: ignore[assignment]
            modules = walk_imports(blob, directory.rva, bitness, headers.image_base)
            self._logger.debug(
                "Decoded %d import module(s), %d symbol(s)",
                len(modules), sum(len(m.symbols) for m in modules),
            )
            return modules

    def list_exports(self) -> ExportTable:
        """Decode the export directory.

        Raises:
            TableNotPresent: The export directory RVA is not mapped.
            UnsupportedExportLayout: Function and name counts differ.
            UnsupportedImage: The optional-header magic is unknown.
            TruncatedInput: A table or name runs off its section.
        """
        with self._logger.operation("exports"):
            headers, directory, blob = self._load_directory(DirectoryEntry.EXPORT, "export")
            table = walk_exports(blob, directory.rva, headers.image_base, directory.size)
            self._logger.debug(
                "Decoded %d export(s) from %s", len(table.entries), table.module_name
            )
            return table


# ---------------------------------------------------------------------------
# PEInfoEngine
# ---------------------------------------------------------------------------

class PEInfoEngine:
    """Runs a complete analysis and returns an :class:`AnalysisResult`.

    Usage::

        engine = PEInfoEngine()
        result = engine.analyze("kernel32.dll", [Operation.EXPORTS])
        for entry in result.exports.entries:
            print(hex(entry.address), entry.name)
    """

    def __init__(
        self,
        config: PEInfoConfig | None = None,
        logger: PEInfoLogger | None = None,
    ) -> None:
        """Initialise the engine.

        Args:
            config: Configuration.  Defaults are used if not provided.
            logger: Logger instance.  A new one is created if not provided.
        """
        self._config: PEInfoConfig = config or PEInfoConfig()
        self._logger: PEInfoLogger = logger or PEInfoLogger("engine")

    def default_operations(self) -> list[Operation]:
        """Operations enabled in the ``[peinfo]`` config section."""
        cfg = self._config.peinfo
        enabled = {
            Operation.SECTIONS: cfg.list_sections,
            Operation.IMPORTS: cfg.list_imports,
            Operation.EXPORTS: cfg.list_exports,
        }
        return [op for op in _OPERATION_ORDER if enabled[op]]

    def analyze(
        self,
        file_path: str | Path,
        operations: Iterable[Operation] | None = None,
    ) -> AnalysisResult:
        """Analyse the PE image at *file_path*.

        Args:
            file_path: Path to the image.
            operations: Operations to run after the header decode;
                ``None`` uses :meth:`default_operations`.

        Raises:
            FileNotFoundError: The path does not exist.
            InputTooLarge: The file exceeds ``max_file_size``.
            StructuralError: The image cannot be decoded.
        """
        path = Path(file_path)
        size = path.stat().st_size
        limit = self._config.peinfo.max_file_size
        if size > limit:
            raise InputTooLarge(size, limit)

        self._logger.info("Analysing %s (%d bytes)", path, size)
        with self._logger.timed(f"analysis of {path.name}"):
            with open_reader(path) as reader:
                return self._run(reader, str(path), operations)

    def analyze_data(
        self,
        data: bytes,
        operations: Iterable[Operation] | None = None,
        file_path: str = "<memory>",
    ) -> AnalysisResult:
        """Analyse an in-memory image; same semantics as :meth:`analyze`."""
        return self._run(RawReader.from_bytes(data), file_path, operations)

    # ------------------------------------------------------------------ #
    #  Pipeline implementation
    # ------------------------------------------------------------------ #

    def _run(
        self,
        reader: RawReader,
        display_path: str,
        operations: Iterable[Operation] | None,
    ) -> AnalysisResult:
        requested = set(self.default_operations() if operations is None else operations)
        analysis = PEAnalysis(reader, self._logger)

        headers = analysis.decode_header()
        result = AnalysisResult(path=display_path, size=reader.size, headers=headers)

        if not headers.is_supported:
            # every requested operation would fail the same way; report once
            skipped = [op.value for op in _OPERATION_ORDER if op in requested]
            self._record(result, UnsupportedImage(
                headers.image_header.optional_magic,
                operation=f"list {', '.join(skipped)}" if skipped else None,
            ))
            requested.clear()

        for op in _OPERATION_ORDER:
            if op not in requested:
                continue
            try:
                if op is Operation.SECTIONS:
                    result.sections = analysis.list_sections()
                elif op is Operation.IMPORTS:
                    result.imports = analysis.list_imports()
                else:
                    result.exports = analysis.list_exports()
            except UnsupportedExportLayout as exc:
                result.exports = ExportTable(
                    directory=exc.directory, module_name=exc.module_name
                )
                self._record(result, exc)
            except (TableError, UnsupportedImage) as exc:
                self._record(result, exc)

        self._logger.info(
            "%s: %s, %d import(s), %d export(s), %d diagnostic(s)",
            display_path,
            headers.bitness.label if headers.bitness else "unknown image",
            result.import_count,
            result.export_count,
            len(result.diagnostics),
        )
        return result

    def _record(self, result: AnalysisResult, exc: PEInfoError) -> None:
        """Append *exc* to the result's diagnostics and log it."""
        result.diagnostics.append(Diagnostic(
            kind=exc.kind,
            message=exc.message,
            table=getattr(exc, "table", "") or "",
            rva=exc.context.get("rva"),
        ))
        self._logger.warning("%s", exc.message, kind=exc.kind)
