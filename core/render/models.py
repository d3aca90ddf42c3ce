"""Substitution and preview report models."""

from __future__ import annotations

from typing import Literal

from docx.document import Document as DocxDocument
from pydantic import BaseModel, ConfigDict, Field

from core.templates.models import DocumentSchema

SubstitutionStatus = Literal["replaced", "not_found", "unanswered"]
SubstitutionStrategy = Literal["blank", "direct", "tag_tolerant", "normalized_key"]


class SubstitutionEntry(BaseModel):
    """Outcome for one answered (or blank-answered) key."""

    model_config = ConfigDict(extra="forbid")

    key: str
    status: SubstitutionStatus
    strategy: SubstitutionStrategy | None = None
    count: int = 0
    surface_forms: list[str] = Field(default_factory=list)
    reason: str | None = None


class SubstitutionSummary(BaseModel):
    """Aggregate substitution summary for observability."""

    model_config = ConfigDict(extra="forbid")

    total_answers: int
    replaced_count: int
    not_found_count: int
    unanswered_count: int
    occurrences_replaced: int


class SubstitutionReport(BaseModel):
    """Non-fatal substitution report returned next to the new body."""

    model_config = ConfigDict(extra="forbid")

    entries: list[SubstitutionEntry] = Field(default_factory=list)
    summary: SubstitutionSummary

    @classmethod
    def from_entries(cls, entries: list[SubstitutionEntry]) -> SubstitutionReport:
        return cls(
            entries=entries,
            summary=SubstitutionSummary(
                total_answers=len(entries),
                replaced_count=sum(1 for entry in entries if entry.status == "replaced"),
                not_found_count=sum(1 for entry in entries if entry.status == "not_found"),
                unanswered_count=sum(1 for entry in entries if entry.status == "unanswered"),
                occurrences_replaced=sum(entry.count for entry in entries),
            ),
        )

    @property
    def not_found_keys(self) -> list[str]:
        return [entry.key for entry in self.entries if entry.status == "not_found"]

    @property
    def replaced_keys(self) -> list[str]:
        return [entry.key for entry in self.entries if entry.status == "replaced"]


class SubstitutionResult(BaseModel):
    """Modified markup body plus its report."""

    model_config = ConfigDict(extra="forbid")

    body: str
    report: SubstitutionReport


class ConsistencyWarning(BaseModel):
    """Reconciler warning when unfilled blanks and unanswered keys disagree."""

    model_config = ConfigDict(extra="forbid")

    kind: Literal["occurrence_count_mismatch"] = "occurrence_count_mismatch"
    unfilled_matches: int
    unanswered_keys: int
    message: str


class BlankPairing(BaseModel):
    """One unfilled blank match in the live body paired with a blank key."""

    model_config = ConfigDict(extra="forbid")

    key: str
    match_index: int
    start: int
    end: int


class PreviewOutput(BaseModel):
    """Highlighted HTML preview plus what it was built from."""

    model_config = ConfigDict(extra="forbid")

    html: str
    current_key: str | None = None
    pending_keys: list[str] = Field(default_factory=list)
    pairings: list[BlankPairing] = Field(default_factory=list)
    warnings: list[ConsistencyWarning] = Field(default_factory=list)
    report: SubstitutionReport


class FillOutput(BaseModel):
    """In-memory fill output (no file paths)."""

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="forbid")

    document: DocxDocument
    document_schema: DocumentSchema
    answers: dict[str, str] = Field(default_factory=dict)
    report: SubstitutionReport
    unfilled_keys: list[str] = Field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.unfilled_keys
