"""Live preview rendering and blank occurrence reconciliation.

The preview body changes after every answer: filled blanks disappear from the
match list and highlight elements are inserted. The reconciler therefore
recomputes the blank-to-key pairing from scratch on every body it is given.
"""

from __future__ import annotations

import html
import logging
from collections.abc import Mapping

from core.render.markup import PREVIEW_FILL_STYLE, FillStyle, MarkupProjection, TextMatch
from core.render.models import BlankPairing, ConsistencyWarning, PreviewOutput
from core.render.substitution import (
    has_currency_prefix,
    is_answered,
    normalized_key_pattern,
    substitute,
    unlocked_blank_matches,
)
from core.templates.models import DocumentSchema
from core.utils.errors import UnknownPlaceholderError
from core.utils.events import log_event

logger = logging.getLogger("docfill.preview")

PENDING_CLASS = "docfill-pending"
CURRENT_CLASS = "docfill-current"
CURRENT_ANCHOR_ID = "current-question-highlight"
_HIGHLIGHT_CLOSE = "</mark>"


class BlankReconciler:
    """Pairs unfilled blank matches in a live body with unanswered blank keys.

    The Ith unfilled match is paired with the Ith unanswered blank key in
    document order. When the two counts disagree the earliest pairs are still
    made, so the first unfilled blank is never left unmapped, and a
    consistency warning is recorded.
    """

    def __init__(
        self,
        schema: DocumentSchema,
        answers: Mapping[str, str | None],
        style: FillStyle = PREVIEW_FILL_STYLE,
    ) -> None:
        self.schema = schema
        self.answers = answers
        self.style = style
        self.matches: list[TextMatch] = []
        self.pairings: list[BlankPairing] = []
        self.warnings: list[ConsistencyWarning] = []
        self._key_by_match: dict[int, str] = {}
        self._pairing_by_key: dict[str, BlankPairing] = {}

    def unanswered_blank_keys(self) -> list[str]:
        return [key for key in self.schema.blank_keys() if not is_answered(self.answers.get(key))]

    def recompute(self, body: str) -> list[BlankPairing]:
        projection = MarkupProjection(body, self.style)
        self.matches = unlocked_blank_matches(projection)
        pending = self.unanswered_blank_keys()

        self.warnings = []
        if len(self.matches) != len(pending):
            warning = ConsistencyWarning(
                unfilled_matches=len(self.matches),
                unanswered_keys=len(pending),
                message=(
                    f"{len(self.matches)} unfilled blank(s) in body but "
                    f"{len(pending)} unanswered blank key(s)"
                ),
            )
            self.warnings.append(warning)
            log_event(
                logger,
                logging.WARNING,
                "occurrence_count_mismatch",
                unfilled_matches=warning.unfilled_matches,
                unanswered_keys=warning.unanswered_keys,
            )

        self.pairings = [
            BlankPairing(key=key, match_index=index, start=match.start, end=match.end)
            for index, (match, key) in enumerate(zip(self.matches, pending, strict=False))
        ]
        self._key_by_match = {pairing.match_index: pairing.key for pairing in self.pairings}
        self._pairing_by_key = {pairing.key: pairing for pairing in self.pairings}
        return self.pairings

    def key_for_match(self, match_index: int) -> str | None:
        return self._key_by_match.get(match_index)

    def match_for_key(self, key: str) -> BlankPairing | None:
        return self._pairing_by_key.get(key)


def render_preview(
    markup_html: str,
    schema: DocumentSchema,
    answers: Mapping[str, str | None],
    current_key: str | None = None,
) -> PreviewOutput:
    """Fill answers visibly and highlight every placeholder still pending.

    Safe to call after every answer; each call starts from `markup_html`.
    """

    if current_key is not None and schema.record(current_key) is None:
        raise UnknownPlaceholderError(current_key)

    result = substitute(markup_html, schema, answers, style=PREVIEW_FILL_STYLE)
    reconciler = BlankReconciler(schema, answers)
    pairings = reconciler.recompute(result.body)

    projection = MarkupProjection(result.body, PREVIEW_FILL_STYLE)
    spans: list[tuple[int, int, str]] = []
    for pairing in pairings:
        start = pairing.start
        if has_currency_prefix(projection, start):
            start -= 1
        spans.append((start, pairing.end, pairing.key))

    pending_named = [key for key in schema.named_keys() if not is_answered(answers.get(key))]
    for key in pending_named:
        spans.extend(_named_spans(projection, key, schema.surface_forms.get(key, [])))

    highlights = _highlight_tags(_drop_overlaps(spans), current_key)
    body = projection.wrap_many(highlights, _HIGHLIGHT_CLOSE)

    pending_keys = [key for key in schema.keys if not is_answered(answers.get(key))]
    return PreviewOutput(
        html=body,
        current_key=current_key,
        pending_keys=pending_keys,
        pairings=pairings,
        warnings=reconciler.warnings,
        report=result.report,
    )


def _named_spans(
    projection: MarkupProjection, key: str, forms: list[str]
) -> list[tuple[int, int, str]]:
    spans: list[tuple[int, int, str]] = []
    for form in forms:
        for match in projection.find_literal(form):
            if not match.locked:
                spans.append((match.start, match.end, key))
    if spans:
        return spans

    for match in projection.find_pattern(normalized_key_pattern(key)):
        if not match.locked:
            spans.append((match.start, match.end, key))
    return spans


def _drop_overlaps(spans: list[tuple[int, int, str]]) -> list[tuple[int, int, str]]:
    kept: list[tuple[int, int, str]] = []
    for span in sorted(spans, key=lambda item: (item[0], -item[1])):
        if kept and span[0] < kept[-1][1]:
            continue
        kept.append(span)
    return kept


def _highlight_tags(
    spans: list[tuple[int, int, str]], current_key: str | None
) -> list[tuple[int, int, str, str]]:
    highlights: list[tuple[int, int, str, str]] = []
    anchored = False
    for start, end, key in spans:
        key_attr = html.escape(key, quote=True)
        if key == current_key:
            open_tag = f'<mark class="{CURRENT_CLASS}" data-key="{key_attr}">'
            first_open = open_tag
            if not anchored:
                first_open = (
                    f'<mark class="{CURRENT_CLASS}" data-key="{key_attr}" id="{CURRENT_ANCHOR_ID}">'
                )
                anchored = True
        else:
            open_tag = f'<mark class="{PENDING_CLASS}" data-key="{key_attr}">'
            first_open = open_tag
        highlights.append((start, end, first_open, open_tag))
    return highlights
