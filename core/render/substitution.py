"""Answer substitution into a markup body (DOCX body XML or HTML rendition)."""

from __future__ import annotations

import html
import logging
import re
from collections.abc import Mapping

from core.render.markup import DOCX_FILL_STYLE, FillStyle, MarkupProjection, TextMatch
from core.render.models import (
    SubstitutionEntry,
    SubstitutionReport,
    SubstitutionResult,
    SubstitutionStrategy,
)
from core.templates.blank_labels import CURRENCY_SIGNS
from core.templates.models import DocumentSchema
from core.templates.placeholder_scanner import BLANK_PLACEHOLDER_RE
from core.utils.errors import UnknownPlaceholderError
from core.utils.events import log_event

logger = logging.getLogger("docfill.render")


def substitute(
    markup_body: str,
    schema: DocumentSchema,
    answers: Mapping[str, str | None],
    *,
    style: FillStyle = DOCX_FILL_STYLE,
) -> SubstitutionResult:
    """Replace every answered placeholder occurrence in `markup_body`.

    Rules:
    - Answers for keys missing from `schema` raise UnknownPlaceholderError.
    - Empty or whitespace-only answers count as unanswered and change nothing.
    - Blanks are filled last-to-first by their position among all blanks.
    - Named keys try, per surface form, a direct match, then a match that
      crosses inline tags; a normalized key pattern is the last resort.
    - A key with no match is reported as `not_found`; this never raises.
    """

    known = set(schema.keys)
    for key in answers:
        if key not in known:
            raise UnknownPlaceholderError(key)

    answered = {key: value for key, value in answers.items() if is_answered(value)}
    entries: list[SubstitutionEntry] = [
        SubstitutionEntry(key=key, status="unanswered", reason="empty_answer")
        for key in schema.keys
        if key in answers and key not in answered
    ]

    body = markup_body
    blank_order = schema.blank_keys()
    replaced_blanks: set[str] = set()
    for key in reversed(blank_order):
        if key not in answered:
            continue
        occurrence = occurrence_index(key, blank_order, replaced_blanks)
        body, entry = _substitute_blank(body, key, occurrence, answered[key], style)
        if entry.status == "replaced":
            replaced_blanks.add(key)
        entries.append(entry)

    for key in schema.named_keys():
        if key not in answered:
            continue
        body, entry = _substitute_named(
            body, key, schema.surface_forms.get(key, []), answered[key], style
        )
        entries.append(entry)

    report = SubstitutionReport.from_entries(_in_schema_order(entries, schema))
    if report.summary.occurrences_replaced:
        body = style.strip(body)

    log_event(
        logger,
        logging.DEBUG,
        "substitution_completed",
        style=style.name,
        replaced=report.summary.replaced_count,
        not_found=report.summary.not_found_count,
        unanswered=report.summary.unanswered_count,
    )
    return SubstitutionResult(body=body, report=report)


def occurrence_index(key: str, blank_order: list[str], replaced: set[str]) -> int:
    """Count blanks before `key` in document order that are not replaced yet."""

    count = 0
    for other in blank_order:
        if other == key:
            break
        if other not in replaced:
            count += 1
    return count


def normalized_key_pattern(key: str) -> re.Pattern[str]:
    """`[key]`, `{{key}}` or `{key}` with space/underscore/hyphen word separators."""

    parts = [re.escape(part) for part in key.split("_") if part]
    body = r"[ _\-]+".join(parts)
    inner = rf"[ \t]*{body}[ \t]*"
    return re.compile(rf"(?:\[{inner}\]|\{{\{{{inner}\}}\}}|\{{{inner}\}})", re.IGNORECASE)


def unlocked_blank_matches(projection: MarkupProjection) -> list[TextMatch]:
    return [match for match in projection.find_pattern(BLANK_PLACEHOLDER_RE) if not match.locked]


def _substitute_blank(
    body: str, key: str, occurrence: int, value: str, style: FillStyle
) -> tuple[str, SubstitutionEntry]:
    projection = MarkupProjection(body, style)
    matches = unlocked_blank_matches(projection)
    if occurrence >= len(matches):
        log_event(
            logger,
            logging.WARNING,
            "placeholder_not_found",
            key=key,
            occurrence=occurrence,
            available=len(matches),
        )
        return body, SubstitutionEntry(key=key, status="not_found", reason="blank_occurrence_missing")

    match = matches[occurrence]
    start = match.start
    if has_currency_prefix(projection, start):
        start -= 1

    replacement = style.wrap(html.escape(value, quote=False))
    body = projection.replace(start, match.end, replacement)
    return body, SubstitutionEntry(
        key=key,
        status="replaced",
        strategy="blank",
        count=1,
        surface_forms=[match.text],
    )


def has_currency_prefix(projection: MarkupProjection, start: int) -> bool:
    if start == 0:
        return False
    previous = start - 1
    return (
        projection.text[previous] in CURRENCY_SIGNS
        and not projection.locked[previous]
        and not projection.synthetic[previous]
    )


def _substitute_named(
    body: str, key: str, forms: list[str], value: str, style: FillStyle
) -> tuple[str, SubstitutionEntry]:
    replacement = style.wrap(html.escape(value, quote=False))
    total = 0
    strategy: SubstitutionStrategy | None = None
    matched_forms: list[str] = []

    for form in forms:
        projection = MarkupProjection(body, style)
        matches = [match for match in projection.find_literal(form) if not match.locked]
        direct = [match for match in matches if match.contiguous]
        chosen = direct or matches
        if not chosen:
            continue
        if strategy is None:
            strategy = "direct" if direct else "tag_tolerant"
        body = projection.replace_many(chosen, replacement)
        total += len(chosen)
        matched_forms.append(form)

    if total == 0:
        projection = MarkupProjection(body, style)
        matches = [
            match
            for match in projection.find_pattern(normalized_key_pattern(key))
            if not match.locked
        ]
        if matches:
            strategy = "normalized_key"
            body = projection.replace_many(matches, replacement)
            total = len(matches)
            matched_forms = sorted({match.text for match in matches})

    if total == 0:
        log_event(
            logger,
            logging.WARNING,
            "placeholder_not_found",
            key=key,
            surface_forms=forms,
        )
        return body, SubstitutionEntry(
            key=key,
            status="not_found",
            surface_forms=list(forms),
            reason="no_surface_form_matched",
        )

    return body, SubstitutionEntry(
        key=key,
        status="replaced",
        strategy=strategy,
        count=total,
        surface_forms=matched_forms,
    )


def _in_schema_order(entries: list[SubstitutionEntry], schema: DocumentSchema) -> list[SubstitutionEntry]:
    rank = {key: index for index, key in enumerate(schema.keys)}
    return sorted(entries, key=lambda entry: rank.get(entry.key, len(rank)))


def is_answered(value: str | None) -> bool:
    return value is not None and bool(value.strip())
