"""Placeholder extraction over the plain-text and markup renditions of a document.

Plain text is authoritative: only it creates keys. The markup rendition can
only contribute extra surface spellings of named keys already discovered.
"""

from __future__ import annotations

import logging
import re

from docx.document import Document as DocxDocument

from core.templates.blank_labels import blank_context_windows, label_for_blank
from core.templates.labels import label_for_key
from core.templates.lexicon_loader import load_lexicon
from core.templates.models import DocumentSchema, Lexicon, PlaceholderRecord, blank_index
from core.templates.placeholder_scanner import blank_offsets, scan_candidates
from core.utils.docx_xml import build_renditions
from core.utils.events import log_event

logger = logging.getLogger("docfill.templates")


def extract(plain_text: str, markup_body: str, lexicon: Lexicon | None = None) -> DocumentSchema:
    """Build an ordered placeholder schema from the two renditions.

    Rules:
    - `[...]` with 3+ underscores/hyphens inside is a blank: `blank_<n>`, n in
      document order among blanks only.
    - `[Identifier words]` is a named placeholder, normalized to lowercase
      underscore-joined keys; stop words, numbers and 1-char keys are dropped.
    - Records are ordered by first occurrence in `plain_text`, unlocated keys last.
    """

    active_lexicon = lexicon or load_lexicon()
    stop_words = frozenset(active_lexicon.stop_words)

    discovery: list[str] = []
    surface_forms: dict[str, list[str]] = {}
    for candidate in scan_candidates(plain_text, stop_words):
        forms = surface_forms.get(candidate.key)
        if forms is None:
            forms = []
            surface_forms[candidate.key] = forms
            discovery.append(candidate.key)
        _add_form(forms, candidate.surface)

    for candidate in scan_candidates(markup_body, stop_words):
        if candidate.kind == "blank":
            continue
        forms = surface_forms.get(candidate.key)
        if forms is not None:
            _add_form(forms, candidate.surface)

    blank_starts = blank_offsets(plain_text)
    offsets = {
        key: _first_offset(key, surface_forms[key], plain_text, blank_starts) for key in discovery
    }
    ordered = sorted(
        enumerate(discovery),
        key=lambda item: (offsets[item[1]] is None, offsets[item[1]] or 0, item[0]),
    )

    records: list[PlaceholderRecord] = []
    for position, (_, key) in enumerate(ordered, start=1):
        records.append(
            PlaceholderRecord(
                key=key,
                label=_label_for(key, offsets[key], plain_text, active_lexicon),
                position=position,
            )
        )

    schema = DocumentSchema(
        records=records,
        surface_forms={record.key: surface_forms[record.key] for record in records},
        offsets={record.key: offsets[record.key] for record in records},
    )
    log_event(
        logger,
        logging.DEBUG,
        "placeholders_extracted",
        total=len(records),
        blanks=len(schema.blank_keys()),
        named=len(schema.named_keys()),
    )
    return schema


def parse_document(document: DocxDocument, lexicon: Lexicon | None = None) -> DocumentSchema:
    """Extract a schema straight from a python-docx document."""

    renditions = build_renditions(document)
    return extract(renditions.plain_text, renditions.markup, lexicon=lexicon)


def _add_form(forms: list[str], surface: str) -> None:
    if surface not in forms:
        forms.append(surface)


def _first_offset(
    key: str, forms: list[str], plain_text: str, blank_starts: list[int]
) -> int | None:
    index = blank_index(key)
    if index is not None:
        if index < len(blank_starts):
            return blank_starts[index]
        return None

    found: list[int] = []
    for form in forms:
        match = re.search(re.escape(form), plain_text, re.IGNORECASE)
        if match is not None:
            found.append(match.start())
    return min(found) if found else None


def _label_for(key: str, offset: int | None, plain_text: str, lexicon: Lexicon) -> str:
    index = blank_index(key)
    if index is None:
        return label_for_key(key, lexicon)
    if offset is None:
        return f"Field {index}"

    before, after = blank_context_windows(plain_text, offset)
    return label_for_blank(index, before, after)
