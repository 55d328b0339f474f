"""
PELens Configuration
=====================

Dataclass-backed settings read from TOML.  A configuration file has two
tables, both optional::

    [global]
    log_level = "DEBUG"
    log_file = "pelens.log"

    [analyzer]
    max_import_descriptors = 1024

Keys that a table does not declare are ignored, and every missing key
keeps its dataclass default.  The analyzer limits bound the work done on
hostile input (file size, unterminated table walks, string scans) and can
be tuned here without touching the decoders.

References:
    - TOML v1.0.0. https://toml.io/en/v1.0.0
"""

from __future__ import annotations

import sys
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, TypeVar

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib  # type: ignore[no-redef]

_T = TypeVar("_T")

# config.toml next to the pelens and shared packages
_DEFAULT_CONFIG_PATH: Path = Path(__file__).resolve().parent.parent / "config.toml"


@dataclass(slots=True)
class AnalyzerConfig:
    """Limits applied by the PE decoders.

    Exceeding a table or name limit is reported as ``CorruptDirectory``;
    an oversized file is refused with ``FileAccessError``.
    """

    max_file_size: int = 268_435_456  # 256 MiB
    max_import_descriptors: int = 4096
    max_thunks_per_library: int = 65_536
    max_name_length: int = 4096


@dataclass(slots=True)
class GlobalConfig:
    """Log verbosity and destination, and the version stamped on reports."""

    log_level: str = "WARNING"
    log_file: str = ""
    log_json: bool = False
    version: str = "1.0.0"


def _from_table(cls: type[_T], table: dict[str, Any]) -> _T:
    known = {f.name for f in fields(cls)}  # type: ignore[arg-type]
    return cls(**{key: value for key, value in table.items() if key in known})


@dataclass(slots=True)
class PELensConfig:
    """Complete PELens configuration.

    Usage:
        >>> PELensConfig.load().analyzer.max_import_descriptors
        4096
    """

    global_settings: GlobalConfig = field(default_factory=GlobalConfig)
    analyzer: AnalyzerConfig = field(default_factory=AnalyzerConfig)

    @classmethod
    def load(cls, path: str | Path | None = None) -> PELensConfig:
        """Read a TOML configuration file.

        Without *path*, ``config.toml`` in the project root is read if it
        exists, and built-in defaults are used if it does not.

        Raises:
            FileNotFoundError: An explicit *path* does not exist.
            tomllib.TOMLDecodeError: The file is not valid TOML (a
                :class:`ValueError`).
        """
        if path is None:
            if not _DEFAULT_CONFIG_PATH.exists():
                return cls()
            source = _DEFAULT_CONFIG_PATH
        else:
            source = Path(path)
            if not source.exists():
                raise FileNotFoundError(f"Configuration file not found: {source}")

        with source.open("rb") as fh:
            document: dict[str, Any] = tomllib.load(fh)

        return cls(
            global_settings=_from_table(GlobalConfig, document.get("global", {})),
            analyzer=_from_table(AnalyzerConfig, document.get("analyzer", {})),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def get_config(path: str | Path | None = None) -> PELensConfig:
    """Return the configuration at *path*, or the shared default one.

    The default configuration is loaded once; an explicit *path* is read
    on every call and does not replace it.
    """
    if path is not None:
        return PELensConfig.load(path)
    if not hasattr(get_config, "_cached"):
        get_config._cached = PELensConfig.load()  # type: ignore[attr-defined]
    return get_config._cached  # type: ignore[attr-defined]
