from __future__ import annotations

import io
import zipfile
from pathlib import Path

import pytest
from docx import Document
from docx.oxml import parse_xml
from docx.oxml.ns import nsdecls

from core.utils.docx_xml import (
    build_renditions,
    document_to_bytes,
    get_body_xml,
    open_document,
    replace_body_xml,
)
from core.utils.errors import DecodeError


def test_renditions_cover_paragraphs_tables_and_emphasis() -> None:
    document = Document()
    paragraph = document.add_paragraph()
    paragraph.add_run("Bold").bold = True
    paragraph.add_run(" and A & B")
    table = document.add_table(rows=1, cols=2)
    table.cell(0, 0).paragraphs[0].text = "Cell one"
    table.cell(0, 1).paragraphs[0].text = "[Company]"

    renditions = build_renditions(document)

    assert renditions.plain_text == "Bold and A & B\nCell one\n[Company]"
    assert renditions.markup == (
        "<p><strong>Bold</strong> and A &amp; B</p>"
        "<table><tr><td><p>Cell one</p></td><td><p>[Company]</p></td></tr></table>"
    )


def test_merged_cells_are_rendered_once() -> None:
    document = Document()
    table = document.add_table(rows=1, cols=2)
    merged = table.cell(0, 0).merge(table.cell(0, 1))
    merged.paragraphs[0].text = "merged"

    renditions = build_renditions(document)

    assert renditions.markup.count("<td>") == 1
    assert renditions.plain_text.count("merged") == 1


def test_open_document_accepts_bytes_path_and_stream(tmp_path: Path) -> None:
    document = Document()
    document.add_paragraph("hello")
    data = document_to_bytes(document)
    path = tmp_path / "template.docx"
    path.write_bytes(data)

    assert data[:2] == b"PK"
    for source in (data, path, str(path), io.BytesIO(data)):
        assert open_document(source).paragraphs[0].text == "hello"


def test_open_document_rejects_non_docx_input(tmp_path: Path) -> None:
    text_file = tmp_path / "notes.docx"
    text_file.write_text("not a document", encoding="utf-8")
    archive = io.BytesIO()
    with zipfile.ZipFile(archive, "w") as handle:
        handle.writestr("readme.txt", "zip without a document part")

    with pytest.raises(DecodeError):
        open_document(b"plain bytes")
    with pytest.raises(DecodeError) as exc_info:
        open_document(text_file)
    with pytest.raises(DecodeError):
        open_document(archive.getvalue())

    assert exc_info.value.source == str(text_file)


def test_replace_body_xml_returns_reopened_document() -> None:
    document = Document()
    document.add_paragraph("Issued by [Company]")
    document.add_paragraph("Second paragraph")

    xml = get_body_xml(document).replace("[Company]", "Acme")
    filled = replace_body_xml(document, xml)

    assert [paragraph.text for paragraph in filled.paragraphs] == [
        "Issued by Acme",
        "Second paragraph",
    ]
    assert filled is not document


def test_renditions_include_content_controls_and_insertions() -> None:
    document = Document()
    signed = document.add_paragraph("Signed on ")
    signed._p.append(
        parse_xml(
            f"<w:sdt {nsdecls('w')}><w:sdtPr/><w:sdtContent>"
            "<w:r><w:t>[____]</w:t></w:r></w:sdtContent></w:sdt>"
        )
    )
    amount = document.add_paragraph("Amount: ")
    amount._p.append(
        parse_xml(
            f"<w:ins {nsdecls('w')} w:id=\"1\" w:author=\"A\">"
            "<w:r><w:t>$[____]</w:t></w:r></w:ins>"
        )
    )
    amount._p.append(
        parse_xml(
            f"<w:del {nsdecls('w')} w:id=\"2\" w:author=\"A\">"
            "<w:r><w:delText>[____]</w:delText></w:r></w:del>"
        )
    )

    renditions = build_renditions(document)

    assert renditions.plain_text == "Signed on [____]\nAmount: $[____]"
    assert renditions.markup == "<p>Signed on [____]</p><p>Amount: $[____]</p>"
