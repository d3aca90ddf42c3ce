"""Data models for placeholder scanning, schemas, and the label lexicon."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

_BLANK_KEY_RE = re.compile(r"blank_(\d+)")

PlaceholderKind = Literal["named", "blank"]


def blank_index(key: str) -> int | None:
    """Return the numeric suffix of a blank key, or None for named keys."""

    match = _BLANK_KEY_RE.fullmatch(key)
    if match is None:
        return None
    return int(match.group(1))


def is_blank_key(key: str) -> bool:
    return blank_index(key) is not None


@dataclass(frozen=True)
class BracketToken:
    """A raw `[...]` span found by the tokenizer, before classification."""

    start: int
    end: int
    surface: str
    inner: str


@dataclass(frozen=True)
class Candidate:
    """A classified placeholder occurrence in plain text."""

    kind: PlaceholderKind
    key: str
    surface: str
    start: int


class PlaceholderRecord(BaseModel):
    """One schema entry consumed by the question flow and the UI."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    key: str
    label: str
    value_type: Literal["string"] = Field(default="string", alias="valueType")
    position: int = Field(ge=1)
    value: str | None = None

    @property
    def is_blank(self) -> bool:
        return is_blank_key(self.key)


class DocumentSchema(BaseModel):
    """Ordered placeholder records plus surface forms and first offsets."""

    model_config = ConfigDict(extra="forbid")

    records: list[PlaceholderRecord] = Field(default_factory=list)
    surface_forms: dict[str, list[str]] = Field(default_factory=dict)
    offsets: dict[str, int | None] = Field(default_factory=dict)

    @property
    def keys(self) -> list[str]:
        return [record.key for record in self.records]

    def record(self, key: str) -> PlaceholderRecord | None:
        for record in self.records:
            if record.key == key:
                return record
        return None

    def blank_keys(self) -> list[str]:
        """Blank keys ordered by their blank counter (document order)."""

        blanks = [key for key in self.keys if is_blank_key(key)]
        return sorted(blanks, key=lambda key: blank_index(key) or 0)

    def named_keys(self) -> list[str]:
        return [key for key in self.keys if not is_blank_key(key)]

    def to_payload(self) -> list[dict[str, Any]]:
        """Serialize records in the UI-facing shape."""

        return [record.model_dump(mode="json", by_alias=True) for record in self.records]


class Lexicon(BaseModel):
    """Label and filtering vocabulary loaded from YAML."""

    model_config = ConfigDict(extra="forbid")

    stop_words: list[str]
    abbreviations: list[str]
    known_labels: dict[str, str] = Field(default_factory=dict)
    section_labels: dict[str, dict[str, str]] = Field(default_factory=dict)
