"""Tests for the command-line entry point.

Tests cover:
- Argument parsing
- Exit codes for success, unreadable input and interruption
- JSON output written to a file
"""

import json
from pathlib import Path

import pytest

import main


def test_parse_arguments() -> None:
    args = main.parse_arguments(["--input", "invoice.pdf", "--no-remote", "--compare", "-q"])

    assert args.input == "invoice.pdf"
    assert args.output is None
    assert args.no_remote is True
    assert args.compare is True
    assert args.quiet is True
    assert args.mime_type is None


def test_input_is_required() -> None:
    with pytest.raises(SystemExit):
        main.parse_arguments([])


def test_extracts_native_pdf_to_file(tmp_path: Path, text_pdf_bytes: bytes) -> None:
    """Test a full run writing the JSON result."""
    source = tmp_path / "invoice.pdf"
    source.write_bytes(text_pdf_bytes)
    target = tmp_path / "out" / "result.json"

    exit_code = main.main(["--input", str(source), "--output", str(target), "--no-remote", "--quiet"])

    assert exit_code == 0
    result = json.loads(target.read_text(encoding="utf-8"))
    assert set(result) == {"extractedText", "invoiceData", "metrics", "extractionMethods"}
    assert result["extractionMethods"] == ["NativeText"]
    assert result["invoiceData"]["invoiceNumber"] == "INV-2024-001"
    assert result["invoiceData"]["amounts"]["total"] == 54.0


def test_missing_input_exits_with_1(tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
    exit_code = main.main(["--input", str(tmp_path / "missing.pdf"), "--no-remote", "--quiet"])

    assert exit_code == 1
    assert "Error:" in capsys.readouterr().err


def test_interrupt_exits_with_130(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    def interrupted(**kwargs):
        raise KeyboardInterrupt

    monkeypatch.setattr(main, "run_extraction", interrupted)

    assert main.main(["--input", str(tmp_path / "any.pdf"), "--quiet"]) == 130
