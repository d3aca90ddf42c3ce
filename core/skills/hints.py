"""Input hints for placeholder records.

Each record gets a category, an input type a client can use to pick a form
control, and the keys of related placeholders. Classification is pattern based
and deterministic; the record's `value_type` stays "string" whatever the hint.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Literal

from core.templates.models import DocumentSchema, PlaceholderRecord

Category = Literal["date", "financial", "entity", "location", "contact", "general"]
InputType = Literal["text", "number", "date", "email", "address", "tel"]

_WORD_RE = re.compile(r"[a-z]+")

# First matching rule wins.
_RULES: tuple[tuple[frozenset[str], Category, InputType], ...] = (
    (frozenset({"date", "signing"}), "date", "date"),
    (frozenset({"amount", "price", "valuation", "cap", "discount"}), "financial", "number"),
    (frozenset({"address", "street", "city"}), "location", "address"),
    (frozenset({"email"}), "contact", "email"),
    (frozenset({"phone", "telephone"}), "contact", "tel"),
    (frozenset({"company", "entity", "investor", "signer", "signatory"}), "entity", "text"),
)

# Words that never make two placeholders related on their own.
_GENERIC_WORDS = frozenset({"blank", "name", "by", "the", "of"})


@dataclass(frozen=True)
class PlaceholderHint:
    key: str
    category: Category
    input_type: InputType
    related_keys: list[str] = field(default_factory=list)

    def to_payload(self) -> dict[str, object]:
        return {
            "key": self.key,
            "category": self.category,
            "input_type": self.input_type,
            "related_keys": list(self.related_keys),
        }


def record_words(record: PlaceholderRecord) -> frozenset[str]:
    """Lowercase words of the key and label; blanks only have their label."""

    source = record.label if record.is_blank else f"{record.key} {record.label}"
    return frozenset(_WORD_RE.findall(source.lower().replace("_", " ")))


def classify(record: PlaceholderRecord) -> tuple[Category, InputType]:
    words = record_words(record)
    for triggers, category, input_type in _RULES:
        if words & triggers:
            return category, input_type
    return "general", "text"


def related_keys(record: PlaceholderRecord, schema: DocumentSchema) -> list[str]:
    """Other keys sharing a root word with `record`, in schema order."""

    roots = record_words(record) - _GENERIC_WORDS
    related: list[str] = []
    for other in schema.records:
        if other.key == record.key:
            continue
        if roots & (record_words(other) - _GENERIC_WORDS):
            related.append(other.key)
    return related


def hint_for(record: PlaceholderRecord, schema: DocumentSchema) -> PlaceholderHint:
    category, input_type = classify(record)
    return PlaceholderHint(
        key=record.key,
        category=category,
        input_type=input_type,
        related_keys=related_keys(record, schema),
    )


def schema_hints(schema: DocumentSchema) -> list[PlaceholderHint]:
    """Hints for every record, in schema order."""

    return [hint_for(record, schema) for record in schema.records]
