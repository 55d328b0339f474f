"""
PELens -- Portable Executable Structure Analyzer
=================================================

Decodes the structural layout of Windows PE images (``.exe`` / ``.dll``):
architecture, section table, export table and import table.  All decoding
is done with :mod:`struct` over a bounds-checked, read-only view of the
file, so truncated or hostile input fails with a typed error instead of
producing a partial result.

Capabilities:
    - PE32 and PE32+ header validation
    - Section table decoding and RVA to file-offset translation
    - Export table decoding (named and ordinal-only exports)
    - Import table decoding (by-name and by-ordinal thunks)
    - Rich console rendering and JSON reports

References:
    - Microsoft. (2024). PE Format. Microsoft Learn.
    - Pietrek, M. (1994). Peering Inside the PE.
"""

__version__ = "1.0.0"

from pelens.core.engine import PEAnalyzer, analyze
from pelens.core.errors import (
    CorruptDirectory,
    FileAccessError,
    InvalidFormat,
    OutOfBounds,
    PEAnalysisError,
    Truncated,
    UnmappedAddress,
    UnsupportedArchitecture,
)
from pelens.core.models import (
    AnalysisResult,
    ExportEntry,
    ImportFunction,
    ImportLibrary,
    Section,
)

__all__ = [
    "analyze",
    "PEAnalyzer",
    "AnalysisResult",
    "Section",
    "ExportEntry",
    "ImportLibrary",
    "ImportFunction",
    "PEAnalysisError",
    "FileAccessError",
    "InvalidFormat",
    "UnsupportedArchitecture",
    "Truncated",
    "OutOfBounds",
    "UnmappedAddress",
    "CorruptDirectory",
]
