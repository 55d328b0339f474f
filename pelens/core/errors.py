"""
PELens Error Taxonomy
======================

Every failure the engine can report is a subclass of
:class:`PEAnalysisError`.  Errors are raised where they are detected and
propagate unchanged to the caller of :func:`pelens.core.engine.analyze`;
nothing is recovered internally, so a result is either complete or absent.

Each class exposes a ``kind`` string (the taxonomy name) which the command
boundary prints together with the message.
"""

from __future__ import annotations


class PEAnalysisError(Exception):
    """Base class for all PE analysis failures."""

    kind: str = "PEAnalysisError"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def describe(self) -> str:
        """Return the human-readable ``"<kind>: <message>"`` description."""
        return f"{self.kind}: {self.message}"


class FileAccessError(PEAnalysisError):
    """The path is missing, unreadable, or exceeds the configured size limit."""

    kind = "FileAccessError"


class InvalidFormat(PEAnalysisError):
    """The MZ or PE signature is missing."""

    kind = "InvalidFormat"


class UnsupportedArchitecture(PEAnalysisError):
    """The optional-header magic is neither PE32 nor PE32+."""

    kind = "UnsupportedArchitecture"


class Truncated(PEAnalysisError):
    """A structure extends past the end of the file."""

    kind = "Truncated"


class OutOfBounds(Truncated):
    """A single fixed-size read extends past the end of the buffer.

    Raised by the byte source; a subclass of :class:`Truncated` because an
    out-of-range read always means the file is shorter than its headers
    claim.
    """

    kind = "OutOfBounds"

    def __init__(self, offset: int, length: int, size: int) -> None:
        super().__init__(
            f"read of {length} byte(s) at offset 0x{offset:x} exceeds "
            f"buffer size 0x{size:x}"
        )
        self.offset = offset
        self.length = length
        self.size = size


class UnmappedAddress(PEAnalysisError):
    """No section contains the requested RVA."""

    kind = "UnmappedAddress"

    def __init__(self, rva: int) -> None:
        super().__init__(f"RVA 0x{rva:x} is not mapped by any section")
        self.rva = rva


class CorruptDirectory(PEAnalysisError):
    """An export or import directory walk cannot be trusted."""

    kind = "CorruptDirectory"
