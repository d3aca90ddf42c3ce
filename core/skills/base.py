"""Question phraser interface definitions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Protocol

from core.templates.models import PlaceholderRecord

Section = Literal["company", "investor"]


@dataclass(frozen=True)
class QuestionContext:
    """Document text around a placeholder's first occurrence."""

    text_before: str = ""
    text_after: str = ""
    section: Section | None = None

    @property
    def snippet(self) -> str:
        return f"{self.text_before}{self.text_after}"


class QuestionPhraser(Protocol):
    """Protocol for turning a placeholder record into a question."""

    name: str

    def phrase(self, record: PlaceholderRecord, context: QuestionContext) -> str:
        """Return the question to ask for `record`."""
