"""
PELens Analysis Engine
=======================

Orchestrates the PE decoding pipeline and assembles one immutable
:class:`~pelens.core.models.AnalysisResult` per file.

Analysis Pipeline:
    1. Map the file read-only (bounds-checked byte source)
    2. Validate DOS / NT headers, select PE32 or PE32+
    3. Decode the section table (RVA translation table)
    4. Decode the export directory (if present)
    5. Decode the import directory (if present)

The first failure aborts the run and propagates unchanged; a result is
either complete or not produced at all.  The engine keeps no state between
calls, so one instance may serve concurrent analyses.
"""

from __future__ import annotations

import asyncio
from functools import lru_cache
from pathlib import Path

from shared.config import PELensConfig
from shared.logger import PELensLogger

from pelens.core.errors import PEAnalysisError
from pelens.core.models import AnalysisResult
from pelens.parsers.byte_source import ByteSource, open_byte_source
from pelens.parsers.exports import decode_exports
from pelens.parsers.headers import decode_headers, machine_name
from pelens.parsers.imports import decode_imports
from pelens.parsers.sections import decode_sections


class PEAnalyzer:
    """Runs the full PE structure analysis.

    Usage::

        analyzer = PEAnalyzer()
        result = analyzer.analyze("C:/Windows/System32/kernel32.dll")
        print(result.is_x64, len(result.exports))

    Or from an event loop::

        result = await analyzer.analyze_async(path)
    """

    def __init__(
        self,
        config: PELensConfig | None = None,
        logger: PELensLogger | None = None,
    ) -> None:
        """Initialise the analyzer.

        Args:
            config: PELens configuration.  Defaults are used if not provided.
            logger: Logger instance.  Without one, analyzers share the
                ``engine`` logger built for the most recent log level.
        """
        self._config: PELensConfig = config or PELensConfig()
        self._logger: PELensLogger = logger or _default_logger(
            self._config.global_settings.log_level.upper()
        )

    @property
    def config(self) -> PELensConfig:
        return self._config

    @property
    def logger(self) -> PELensLogger:
        return self._logger

    # ------------------------------------------------------------------ #
    #  Entry points
    # ------------------------------------------------------------------ #

    def analyze(self, path: str | Path) -> AnalysisResult:
        """Analyse the PE file at *path*.

        Raises:
            PEAnalysisError: Any failure, with the subclass naming its kind.
        """
        file_path = str(path)
        self._logger.info("Analyzing %s", file_path)
        try:
            with open_byte_source(
                file_path, max_size=self._config.analyzer.max_file_size
            ) as src:
                result = self._run_pipeline(src, file_path)
        except PEAnalysisError as exc:
            self._logger.error("Analysis of %s failed: %s", file_path, exc.describe())
            raise
        self._log_summary(result)
        return result

    def analyze_bytes(self, data: bytes, path: str = "<memory>") -> AnalysisResult:
        """Analyse an in-memory PE image with the same semantics as :meth:`analyze`."""
        try:
            result = self._run_pipeline(ByteSource(data), path)
        except PEAnalysisError as exc:
            self._logger.error("Analysis of %s failed: %s", path, exc.describe())
            raise
        self._log_summary(result)
        return result

    async def analyze_async(self, path: str | Path) -> AnalysisResult:
        """Run :meth:`analyze` in the default executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.analyze, path)

    # ------------------------------------------------------------------ #
    #  Pipeline
    # ------------------------------------------------------------------ #

    def _run_pipeline(self, src: ByteSource, path: str) -> AnalysisResult:
        limits = self._config.analyzer

        with self._logger.timed("header decode"):
            headers = decode_headers(src)
        self._logger.debug(
            "%s image, machine 0x%x, %d section(s) at offset 0x%x",
            "PE32+" if headers.is_x64 else "PE32",
            headers.machine,
            headers.number_of_sections,
            headers.section_table_offset,
        )

        with self._logger.timed("section table decode"):
            sections = decode_sections(src, headers)

        with self._logger.timed("export table decode"):
            exports = decode_exports(
                src, headers, sections, max_name_length=limits.max_name_length
            )

        with self._logger.timed("import table decode"):
            imports = decode_imports(
                src,
                headers,
                sections,
                max_descriptors=limits.max_import_descriptors,
                max_thunks=limits.max_thunks_per_library,
                max_name_length=limits.max_name_length,
            )

        return AnalysisResult(
            path=path,
            size=src.size,
            is_x64=headers.is_x64,
            machine=headers.machine,
            architecture=machine_name(headers.machine),
            sections=sections.sections,
            exports=exports,
            imports=imports,
        )

    def _log_summary(self, result: AnalysisResult) -> None:
        self._logger.info(
            "%s: %d section(s), %d export(s), %d import(s) from %d librar%s",
            result.path,
            len(result.sections),
            result.export_count,
            result.import_function_count,
            len(result.imports),
            "y" if len(result.imports) == 1 else "ies",
        )


# ========================= Module-level convenience ========================

@lru_cache(maxsize=1)
def _default_logger(log_level: str) -> PELensLogger:
    return PELensLogger("engine", log_level=log_level)


def analyze(path: str | Path, config: PELensConfig | None = None) -> AnalysisResult:
    """Analyse the PE file at *path* with a fresh :class:`PEAnalyzer`."""
    return PEAnalyzer(config=config).analyze(path)
