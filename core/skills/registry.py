"""Question phraser registry for CLI/API phraser resolution."""

from __future__ import annotations

import os
from collections.abc import Callable

from core.skills.base import QuestionPhraser
from core.skills.questions import (
    DEFAULT_REMOTE_ENDPOINT,
    DEFAULT_TIMEOUT_SECONDS,
    RemoteQuestionPhraser,
    TemplateQuestionPhraser,
)

PhraserFactory = Callable[[], QuestionPhraser]


def _remote_from_env() -> QuestionPhraser:
    return RemoteQuestionPhraser(
        endpoint=os.getenv("DOCFILL_QUESTION_ENDPOINT") or DEFAULT_REMOTE_ENDPOINT,
        token=os.getenv("DOCFILL_HF_TOKEN") or None,
        timeout_seconds=_question_timeout_seconds(),
    )


_SUPPORTED_PHRASERS: dict[str, PhraserFactory] = {
    "remote": _remote_from_env,
    "template": TemplateQuestionPhraser,
}


def create_phraser(name: str) -> QuestionPhraser:
    """Instantiate a supported question phraser by name."""

    try:
        factory = _SUPPORTED_PHRASERS[name]
    except KeyError as exc:
        raise ValueError(f"Unsupported question phraser: {name}") from exc
    return factory()


def list_supported_phrasers() -> list[str]:
    """Return supported phraser names in stable order."""

    return sorted(_SUPPORTED_PHRASERS)


def phraser_from_env() -> QuestionPhraser:
    """Resolve `DOCFILL_QUESTION_PHRASER`, defaulting to the template phraser."""

    raw = (os.getenv("DOCFILL_QUESTION_PHRASER") or "template").strip().lower()
    if raw not in _SUPPORTED_PHRASERS:
        raw = "template"
    return create_phraser(raw)


def _question_timeout_seconds() -> float:
    raw = os.getenv("DOCFILL_QUESTION_TIMEOUT_SECONDS")
    if raw is None:
        return DEFAULT_TIMEOUT_SECONDS
    try:
        parsed = float(raw)
    except ValueError:
        return DEFAULT_TIMEOUT_SECONDS
    return parsed if parsed > 0 else DEFAULT_TIMEOUT_SECONDS
