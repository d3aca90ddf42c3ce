"""Custom exceptions for core logic."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from core.render.models import FillOutput


class DecodeError(Exception):
    """Raised when the input cannot be interpreted as a docx document."""

    def __init__(self, message: str, *, source: str | None = None) -> None:
        super().__init__(message)
        self.source = source


class UnknownPlaceholderError(ValueError):
    """Raised when an answer targets a key missing from the document schema."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Unknown placeholder key: {key}")
        self.key = key


class AnswerAlreadyRecordedError(ValueError):
    """Raised when a session receives a second answer for the same key."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Answer already recorded for placeholder: {key}")
        self.key = key


class UnfilledPlaceholdersError(Exception):
    """Raised when completeness is required and placeholders remain unfilled."""

    def __init__(
        self,
        message: str,
        *,
        unfilled: list[str],
        fill_output: FillOutput | None = None,
    ) -> None:
        super().__init__(message)
        self.unfilled = unfilled
        self.fill_output = fill_output
