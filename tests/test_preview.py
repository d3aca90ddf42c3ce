from __future__ import annotations

import logging

import pytest

from core.render.preview import (
    CURRENT_ANCHOR_ID,
    BlankReconciler,
    render_preview,
)
from core.templates.placeholder_parser import extract
from core.utils.errors import UnknownPlaceholderError

TEXT = "Amount: $[____]. Cap: $[____]. Company: [Company]."
MARKUP = f"<p>{TEXT}</p>"


def test_preview_highlights_current_and_pending_placeholders() -> None:
    schema = extract(TEXT, MARKUP)

    preview = render_preview(MARKUP, schema, {"blank_0": "$1"}, current_key="blank_1")

    assert '<span class="docfill-filled">$1</span>' in preview.html
    assert (
        '<mark class="docfill-current" data-key="blank_1" '
        f'id="{CURRENT_ANCHOR_ID}">$[____]</mark>'
    ) in preview.html
    assert '<mark class="docfill-pending" data-key="company">[Company]</mark>' in preview.html
    assert preview.pending_keys == ["blank_1", "company"]
    assert preview.current_key == "blank_1"
    assert preview.warnings == []


def test_preview_pairs_remaining_blanks_in_order() -> None:
    schema = extract(TEXT, MARKUP)

    preview = render_preview(MARKUP, schema, {"blank_1": "$2"})

    assert [pairing.key for pairing in preview.pairings] == ["blank_0"]
    assert f'id="{CURRENT_ANCHOR_ID}"' not in preview.html
    assert '<mark class="docfill-pending" data-key="blank_0">$[____]</mark>' in preview.html


def test_preview_is_recomputed_from_source_each_time() -> None:
    schema = extract(TEXT, MARKUP)

    first = render_preview(MARKUP, schema, {"company": "Acme"}, current_key="blank_0")
    second = render_preview(MARKUP, schema, {"company": "Acme"}, current_key="blank_0")

    assert first.html == second.html
    assert "[Company]" not in first.html


def test_preview_with_all_answers_has_no_highlights() -> None:
    schema = extract(TEXT, MARKUP)

    preview = render_preview(
        MARKUP, schema, {"blank_0": "$1", "blank_1": "$2", "company": "Acme"}
    )

    assert "<mark" not in preview.html
    assert preview.pending_keys == []


def test_unknown_current_key_raises() -> None:
    schema = extract(TEXT, MARKUP)

    with pytest.raises(UnknownPlaceholderError):
        render_preview(MARKUP, schema, {}, current_key="investor")


def test_reconciler_forces_first_pairing_on_count_mismatch(
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.WARNING, logger="docfill.preview")
    text = "A [____] B [____]"
    schema = extract(text, f"<p>{text}</p>")
    reconciler = BlankReconciler(schema, {})

    pairings = reconciler.recompute("<p>A [____] B edited</p>")

    assert [(pairing.key, pairing.match_index) for pairing in pairings] == [("blank_0", 0)]
    assert reconciler.key_for_match(0) == "blank_0"
    assert reconciler.match_for_key("blank_1") is None
    assert len(reconciler.warnings) == 1
    warning = reconciler.warnings[0]
    assert warning.kind == "occurrence_count_mismatch"
    assert (warning.unfilled_matches, warning.unanswered_keys) == (1, 2)
    messages = [record.message for record in caplog.records if record.name == "docfill.preview"]
    assert any('"event":"occurrence_count_mismatch"' in message for message in messages)


def test_reconciler_skips_locked_blanks_and_answered_keys() -> None:
    text = "A [____] B [____] C [____]"
    schema = extract(text, f"<p>{text}</p>")
    reconciler = BlankReconciler(schema, {"blank_1": "x"})

    pairings = reconciler.recompute(
        '<p>A [____] B <span class="docfill-filled">x</span> C [____]</p>'
    )

    assert [pairing.key for pairing in pairings] == ["blank_0", "blank_2"]
    assert reconciler.warnings == []
