from __future__ import annotations

import pytest

from core.skills.hints import classify, hint_for, schema_hints
from core.templates.models import PlaceholderRecord
from core.templates.placeholder_parser import extract


def _record(key: str, label: str) -> PlaceholderRecord:
    return PlaceholderRecord(key=key, label=label, position=1)


@pytest.mark.parametrize(
    ("key", "label", "expected"),
    [
        ("effective_date", "Effective Date", ("date", "date")),
        ("signing_day", "Signing Day", ("date", "date")),
        ("blank_0", "Date of Safe", ("date", "date")),
        ("blank_1", "Purchase Amount", ("financial", "number")),
        ("valuation_cap", "Valuation Cap", ("financial", "number")),
        ("blank_2", "Discount Rate", ("financial", "number")),
        ("company_address", "Company Address", ("location", "address")),
        ("city", "City", ("location", "address")),
        ("investor_email", "Investor Email", ("contact", "email")),
        ("phone_number", "Phone Number", ("contact", "tel")),
        ("company", "Company Name", ("entity", "text")),
        ("investor_title", "Investor Title", ("entity", "text")),
        ("jurisdiction", "Jurisdiction", ("general", "text")),
        ("blank_3", "Field 3", ("general", "text")),
    ],
)
def test_classify_by_key_and_label_words(key: str, label: str, expected: tuple[str, str]) -> None:
    assert classify(_record(key, label)) == expected


def test_blank_key_text_does_not_drive_classification() -> None:
    assert classify(_record("blank_0", "Amount")) == ("financial", "number")
    assert classify(_record("blank_0", "Notes")) == ("general", "text")


def test_related_keys_share_root_words_in_schema_order() -> None:
    text = (
        "[Company] [Company Address] [Investor Name] [Investor Email] "
        'Cap $[____] (the "Valuation Cap"). [Valuation Date]'
    )
    schema = extract(text, f"<p>{text}</p>")

    hints = {hint.key: hint for hint in schema_hints(schema)}

    assert hints["company"].related_keys == ["company_address"]
    assert hints["investor_name"].related_keys == ["investor_email"]
    assert hints["blank_0"].related_keys == ["valuation_date"]
    assert hints["valuation_date"].category == "date"


def test_hint_payload_keeps_value_type_string() -> None:
    record = _record("blank_0", "Purchase Amount")
    schema = extract("$[____]", "<p>$[____]</p>")

    payload = hint_for(record, schema).to_payload()

    assert payload == {
        "key": "blank_0",
        "category": "financial",
        "input_type": "number",
        "related_keys": [],
    }
    assert record.value_type == "string"
