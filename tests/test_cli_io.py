from __future__ import annotations

import json
from pathlib import Path

import pytest
from docx import Document

from apps.cli.io import (
    build_output_paths,
    existing_output_files,
    write_fallback_report_atomic,
    write_fill_output_atomic,
    write_preview_atomic,
)
from core.orchestrator.pipeline import run_fill
from core.render.models import FillOutput


def _build_output() -> FillOutput:
    document = Document()
    document.add_paragraph("Issued by [Company].")
    return run_fill(document, {"company": "Acme"})


def test_write_fill_output_atomic_cleans_docx_tmp_on_success(tmp_path: Path) -> None:
    output = _build_output()
    paths = build_output_paths(tmp_path)

    write_fill_output_atomic(paths, output)

    assert paths.docx.exists()
    assert list(tmp_path.glob("out.docx.*.tmp")) == []
    report = json.loads(paths.fill_report.read_text(encoding="utf-8"))
    assert report["complete"] is True
    assert report["entries"][0]["strategy"] == "direct"
    assert existing_output_files(paths) == [paths.docx, paths.fill_report, paths.schema]


def test_write_fill_output_atomic_cleans_docx_tmp_on_failure(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    output = _build_output()
    paths = build_output_paths(tmp_path)

    def broken_save(_: str) -> None:
        raise RuntimeError("save failed")

    monkeypatch.setattr(output.document, "save", broken_save)

    with pytest.raises(RuntimeError, match="save failed"):
        write_fill_output_atomic(paths, output)

    assert not paths.docx.exists()
    assert list(tmp_path.glob("out.docx.*.tmp")) == []


def test_fallback_report_carries_error_metadata(tmp_path: Path) -> None:
    paths = build_output_paths(tmp_path / "nested")

    write_fallback_report_atomic(
        paths, error_type="DecodeError", error_message="bad input", stage="load_template"
    )

    report = json.loads(paths.fill_report.read_text(encoding="utf-8"))
    assert report["complete"] is False
    assert report["error"] == {
        "error_type": "DecodeError",
        "error_message": "bad input",
        "stage": "load_template",
    }


def test_write_preview_atomic_wraps_body_in_page(tmp_path: Path) -> None:
    path = tmp_path / "out.preview.html"

    write_preview_atomic(path, "<p>hello</p>", title="SAFE")

    page = path.read_text(encoding="utf-8")
    assert "<title>SAFE</title>" in page
    assert "<body><p>hello</p></body>" in page
    assert ".docfill-current" in page
