"""
Tests for the ``pelens`` command-line interface.
"""

import json

import pytest
from click.testing import CliRunner

from pelens import __version__
from pelens.cli import pelens_cli


def _run(*args: str):
    return CliRunner().invoke(pelens_cli, [str(a) for a in args])


def test_json_output(pe64_path):
    result = _run(pe64_path, "--json")
    assert result.exit_code == 0, result.output
    report = json.loads(result.stdout)
    assert report["result"]["isX64"] is True
    assert report["result"]["path"] == str(pe64_path)
    assert [lib["dllName"] for lib in report["result"]["imports"]] == [
        "KERNEL32.dll",
        "USER32.dll",
    ]


def test_table_output(pe32_path):
    result = _run(pe32_path)
    assert result.exit_code == 0, result.output
    assert "Binary Information" in result.output
    assert "Gamma" in result.output


def test_report_file(pe32_path, tmp_path):
    target = tmp_path / "report.json"
    result = _run(pe32_path, "--output", target)
    assert result.exit_code == 0, result.output
    assert "JSON report saved" in result.output
    assert json.loads(target.read_text("utf-8"))["summary"]["export_count"] == 3


def test_invalid_format(write_image):
    result = _run(write_image(b"not a pe file at all"))
    assert result.exit_code == 1
    assert "InvalidFormat: missing MZ signature" in result.output


def test_missing_file(tmp_path):
    result = _run(tmp_path / "absent.dll")
    assert result.exit_code == 1
    assert "FileAccessError" in result.output


@pytest.mark.parametrize("flags", [(), ("--json",)])
def test_error_description_is_one_unwrapped_line(tmp_path, flags):
    target = tmp_path / ("nested_directory_" * 4) / ("deeper_directory_" * 4) / "absent.dll"
    assert len(str(target)) > 120
    result = _run(target, *flags)
    assert result.exit_code == 1
    expected = f"FileAccessError: cannot open {target}: "
    assert any(expected in line for line in result.output.splitlines()), result.output


def test_json_mode_error_is_bare_description(tmp_path):
    target = tmp_path / "absent.dll"
    result = _run(target, "--json")
    assert result.exit_code == 1
    lines = result.output.splitlines()
    assert f"FileAccessError: cannot open {target}: No such file or directory" in lines
    assert not any("ERROR: FileAccessError" in line for line in lines)


def test_config_limits(pe32_path, tmp_path):
    config = tmp_path / "pelens.toml"
    config.write_text("[analyzer]\nmax_file_size = 16\n", encoding="utf-8")
    result = _run(pe32_path, "--config", config)
    assert result.exit_code == 1
    assert "FileAccessError" in result.output


def test_malformed_config(pe32_path, tmp_path):
    config = tmp_path / "pelens.toml"
    config.write_text("[analyzer\n", encoding="utf-8")
    result = _run(pe32_path, "--config", config)
    assert result.exit_code == 2
    assert "--config" in result.output


def test_version():
    result = _run("--version")
    assert result.exit_code == 0
    assert __version__ in result.output
