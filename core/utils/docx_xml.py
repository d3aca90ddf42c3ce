"""Utilities for docx XML operations.

All XML-level operations on docx content must be implemented here.
Do not spread XML manipulation logic across other modules.
"""

from __future__ import annotations

import html
import zipfile
from collections.abc import Iterator
from dataclasses import dataclass
from io import BytesIO
from itertools import groupby
from pathlib import Path
from typing import IO

from docx import Document
from docx import types as t
from docx.document import Document as DocxDocument
from docx.opc.exceptions import PackageNotFoundError
from docx.oxml import parse_xml
from docx.oxml.ns import qn
from docx.table import _Cell
from docx.text.paragraph import Paragraph
from docx.text.run import Run
from lxml import etree

from core.render.markup import visible_text
from core.utils.errors import DecodeError

DocxSource = bytes | str | Path | IO[bytes]

_W_R = qn("w:r")
_W_TBL = qn("w:tbl")
_BLOCK_TAGS = frozenset({qn("w:p"), _W_TBL})
_ROW_TAGS = frozenset({qn("w:tr")})
_CELL_TAGS = frozenset({qn("w:tc")})
_WRAPPER_TAGS = frozenset({qn("w:sdt"), qn("w:sdtContent"), qn("w:customXml")})
_HIDDEN_RUN_CONTAINERS = frozenset(
    {qn("w:del"), "{http://schemas.openxmlformats.org/markup-compatibility/2006}Fallback"}
)


@dataclass(frozen=True)
class Renditions:
    """Plain-text and HTML renditions built from the same body, in document order."""

    plain_text: str
    markup: str


def open_document(source: DocxSource) -> DocxDocument:
    """Open a docx from bytes, a path, or a binary stream.

    Raises DecodeError when the input is not a readable docx package.
    """

    label = str(source) if isinstance(source, (str, Path)) else None
    stream: str | IO[bytes]
    if isinstance(source, bytes):
        stream = BytesIO(source)
    elif isinstance(source, Path):
        stream = str(source)
    else:
        stream = source

    try:
        return Document(stream)
    except (
        PackageNotFoundError,
        zipfile.BadZipFile,
        KeyError,
        ValueError,
        etree.XMLSyntaxError,
    ) as exc:
        raise DecodeError("Input is not a valid docx document", source=label) from exc


def document_to_bytes(document: DocxDocument) -> bytes:
    buffer = BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def get_body_xml(document: DocxDocument) -> str:
    """Serialize the main document part (`w:document`) to a unicode string."""

    return etree.tostring(document.element, encoding="unicode")


def replace_body_xml(document: DocxDocument, xml: str) -> DocxDocument:
    """Swap the main document part XML and return a freshly reopened document.

    The package (styles, numbering, media, headers) is carried over unchanged.
    """

    document.part._element = parse_xml(xml.encode("utf-8"))
    return Document(BytesIO(document_to_bytes(document)))


def build_renditions(document: DocxDocument) -> Renditions:
    """Build the plain-text and HTML renditions of the document body.

    Plain text is the projection of the same body XML that substitution edits,
    so blanks are numbered over exactly the text a fill will see. The HTML walk
    descends into content controls, custom XML, text boxes and tracked
    insertions for the same reason. Header and footer content is not part of
    either rendition.
    """

    blocks = _iter_children(document.element.body, _BLOCK_TAGS)
    markup = "".join(_block_html(element, document) for element in blocks)
    return Renditions(plain_text=visible_text(get_body_xml(document)), markup=markup)


def _iter_children(element: etree._Element, tags: frozenset[str]) -> Iterator[etree._Element]:
    """Children of `element` with a tag in `tags`, looking through wrapper elements."""

    for child in element.iterchildren():
        if child.tag in tags:
            yield child
        elif child.tag in _WRAPPER_TAGS:
            yield from _iter_children(child, tags)


def _block_html(element: etree._Element, parent: t.ProvidesStoryPart) -> str:
    if element.tag == _W_TBL:
        return _table_html(element, parent)
    return _paragraph_html(Paragraph(element, parent))


def _table_html(tbl: etree._Element, parent: t.ProvidesStoryPart) -> str:
    parts: list[str] = ["<table>"]
    for tr in _iter_children(tbl, _ROW_TAGS):
        parts.append("<tr>")
        # Horizontally merged cells are a single w:tc with a grid span.
        for tc in _iter_children(tr, _CELL_TAGS):
            cell = _Cell(tc, parent)
            blocks = _iter_children(tc, _BLOCK_TAGS)
            parts.append(f"<td>{''.join(_block_html(block, cell) for block in blocks)}</td>")
        parts.append("</tr>")
    parts.append("</table>")
    return "".join(parts)


def _paragraph_html(paragraph: Paragraph) -> str:
    runs = list(_iter_runs(paragraph))
    chunks: list[str] = []
    for (bold, italic), group in groupby(runs, key=_run_emphasis):
        text = "".join(run.text for run in group)
        if not text:
            continue
        rendered = html.escape(text, quote=False).replace("\n", "<br/>")
        if italic:
            rendered = f"<em>{rendered}</em>"
        if bold:
            rendered = f"<strong>{rendered}</strong>"
        chunks.append(rendered)
    return f"<p>{''.join(chunks)}</p>"


def _iter_runs(paragraph: Paragraph) -> Iterator[Run]:
    """Every visible run of the paragraph in document order.

    `Paragraph.runs` only sees direct children, so runs inside hyperlinks,
    inline content controls, simple fields, smart tags and insertions are
    collected from the whole subtree. Deleted runs and compatibility
    fallbacks are skipped.
    """

    for element in paragraph._p.iter(_W_R):
        if any(ancestor.tag in _HIDDEN_RUN_CONTAINERS for ancestor in element.iterancestors()):
            continue
        yield Run(element, paragraph)


def _run_emphasis(run: Run) -> tuple[bool, bool]:
    return bool(run.bold), bool(run.italic)
