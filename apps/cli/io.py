"""CLI I/O helpers for atomic output writing."""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from core.render.models import FillOutput
from core.templates.models import DocumentSchema


@dataclass(frozen=True)
class OutputPaths:
    """Fixed output artifact paths for single run."""

    docx: Path
    fill_report: Path
    schema: Path
    preview: Path


def build_output_paths(out_dir: Path) -> OutputPaths:
    """Build fixed output file paths under out_dir."""

    return OutputPaths(
        docx=out_dir / "out.docx",
        fill_report=out_dir / "out.fill_report.json",
        schema=out_dir / "out.schema.json",
        preview=out_dir / "out.preview.html",
    )


def existing_output_files(paths: OutputPaths) -> list[Path]:
    """Return existing output files among fixed artifact paths."""

    candidates = [paths.docx, paths.fill_report, paths.schema, paths.preview]
    return [path for path in candidates if path.exists()]


def schema_payload(schema: DocumentSchema) -> dict[str, Any]:
    return {
        "placeholders": schema.to_payload(),
        "surface_forms": schema.surface_forms,
    }


def fill_report_payload(output: FillOutput) -> dict[str, Any]:
    payload = output.report.model_dump(mode="json")
    payload["unfilled_keys"] = list(output.unfilled_keys)
    payload["complete"] = output.complete
    return payload


def write_fill_output_atomic(paths: OutputPaths, output: FillOutput) -> None:
    """Write docx, fill report and schema artifacts atomically."""

    paths.docx.parent.mkdir(parents=True, exist_ok=True)
    _atomic_write_docx(paths.docx, output.document)
    _atomic_write_json(paths.fill_report, fill_report_payload(output))
    _atomic_write_json(paths.schema, schema_payload(output.document_schema))


def write_schema_atomic(path: Path, schema: DocumentSchema) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    _atomic_write_json(path, schema_payload(schema))


def write_fallback_report_atomic(
    paths: OutputPaths,
    *,
    error_type: str,
    error_message: str,
    stage: str,
) -> None:
    """Write a fill report carrying only error metadata."""

    payload = {
        "entries": [],
        "summary": {
            "total_answers": 0,
            "replaced_count": 0,
            "not_found_count": 0,
            "unanswered_count": 0,
            "occurrences_replaced": 0,
        },
        "unfilled_keys": [],
        "complete": False,
        "error": {
            "error_type": error_type,
            "error_message": error_message,
            "stage": stage,
        },
    }
    paths.fill_report.parent.mkdir(parents=True, exist_ok=True)
    _atomic_write_json(paths.fill_report, payload)


def write_preview_atomic(path: Path, html_body: str, *, title: str = "docfill preview") -> None:
    """Write a standalone HTML preview page atomically."""

    page = (
        "<!DOCTYPE html>\n"
        '<html><head><meta charset="utf-8">'
        f"<title>{title}</title>"
        "<style>"
        ".docfill-filled{background:#d1fae5;}"
        ".docfill-pending{background:#fef3c7;}"
        ".docfill-current{background:#fde047;outline:2px solid #ca8a04;}"
        "</style></head>"
        f"<body>{html_body}</body></html>\n"
    )
    path.parent.mkdir(parents=True, exist_ok=True)
    _atomic_write_text(path, page)


def _atomic_write_json(path: Path, payload: dict[str, Any]) -> None:
    with tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        dir=path.parent,
        delete=False,
        prefix=f"{path.name}.",
        suffix=".tmp",
    ) as tmp:
        tmp_path = Path(tmp.name)
        json.dump(payload, tmp, ensure_ascii=False, sort_keys=True, separators=(",", ":"))

    tmp_path.replace(path)


def _atomic_write_text(path: Path, text: str) -> None:
    with tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        dir=path.parent,
        delete=False,
        prefix=f"{path.name}.",
        suffix=".tmp",
    ) as tmp:
        tmp_path = Path(tmp.name)
        tmp.write(text)

    tmp_path.replace(path)


def _atomic_write_docx(path: Path, document) -> None:
    fd, raw_tmp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=f"{path.name}.",
        suffix=".tmp",
    )
    os.close(fd)
    tmp_path = Path(raw_tmp_path)

    try:
        document.save(str(tmp_path))
        tmp_path.replace(path)
    except Exception:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)
        raise
