"""
Shared fixtures: synthetic PE images on disk and a quiet analyzer.
"""

from pathlib import Path
from typing import Callable

import pytest

from pelens.core.engine import PEAnalyzer
from shared.config import PELensConfig
from shared.logger import PELensLogger

from tests.builder import minimal_image, sample_builder


@pytest.fixture
def quiet_logger() -> PELensLogger:
    return PELensLogger("test", log_level="CRITICAL", console_output=False)


@pytest.fixture
def analyzer(quiet_logger: PELensLogger) -> PEAnalyzer:
    return PEAnalyzer(config=PELensConfig(), logger=quiet_logger)


@pytest.fixture
def write_image(tmp_path: Path) -> Callable[..., Path]:
    def _write(data: bytes, name: str = "image.dll") -> Path:
        path = tmp_path / name
        path.write_bytes(data)
        return path
    return _write


@pytest.fixture
def pe32_bytes() -> bytes:
    return sample_builder().build()


@pytest.fixture
def pe64_bytes() -> bytes:
    return sample_builder(x64=True).build()


@pytest.fixture
def pe32_path(write_image: Callable[..., Path], pe32_bytes: bytes) -> Path:
    return write_image(pe32_bytes, "sample32.dll")


@pytest.fixture
def pe64_path(write_image: Callable[..., Path], pe64_bytes: bytes) -> Path:
    return write_image(pe64_bytes, "sample64.dll")


@pytest.fixture
def minimal_path(write_image: Callable[..., Path]) -> Path:
    return write_image(minimal_image(), "minimal.exe")
