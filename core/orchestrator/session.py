"""Fill session: one document, its schema, and the answers recorded so far."""

from __future__ import annotations

from collections.abc import Collection, Mapping
from dataclasses import dataclass

from docx.document import Document as DocxDocument

from core.render.models import FillOutput, PreviewOutput
from core.render.preview import render_preview
from core.render.substitution import is_answered, substitute
from core.skills.base import QuestionPhraser
from core.skills.questions import TemplateQuestionPhraser, question_context
from core.templates.models import Lexicon, PlaceholderRecord
from core.templates.placeholder_parser import extract
from core.utils.docx_xml import (
    DocxSource,
    build_renditions,
    document_to_bytes,
    get_body_xml,
    open_document,
    replace_body_xml,
)
from core.utils.errors import AnswerAlreadyRecordedError, UnknownPlaceholderError


@dataclass(frozen=True)
class Question:
    """The next question to put to the user."""

    key: str
    label: str
    text: str
    position: int


@dataclass(frozen=True)
class Progress:
    answered: int
    total: int

    @property
    def complete(self) -> bool:
        return self.answered >= self.total


class FillSession:
    """Owns the renditions, schema and append-only answers for one upload.

    A new upload means a new session; nothing is shared between sessions.
    """

    def __init__(
        self,
        document: DocxDocument,
        *,
        lexicon: Lexicon | None = None,
        phraser: QuestionPhraser | None = None,
    ) -> None:
        self._source_bytes = document_to_bytes(document)
        self.renditions = build_renditions(document)
        self.body_xml = get_body_xml(document)
        self.schema = extract(self.renditions.plain_text, self.renditions.markup, lexicon=lexicon)
        self.phraser = phraser or TemplateQuestionPhraser()
        self._answers: dict[str, str] = {}

    @classmethod
    def from_source(
        cls,
        source: DocxSource,
        *,
        lexicon: Lexicon | None = None,
        phraser: QuestionPhraser | None = None,
    ) -> FillSession:
        return cls(open_document(source), lexicon=lexicon, phraser=phraser)

    @property
    def answers(self) -> dict[str, str]:
        return dict(self._answers)

    def answer(self, key: str, value: str | None) -> PlaceholderRecord:
        """Record one answer; blank values leave the key unanswered."""

        record = self._require_record(key)
        if key in self._answers:
            raise AnswerAlreadyRecordedError(key)
        if value is None or not is_answered(value):
            return record

        self._answers[key] = value
        record.value = value
        return record

    def fill_all(self, mapping: Mapping[str, str | None]) -> list[str]:
        """Record a batch of answers; validates every key before recording any."""

        for key in mapping:
            self._require_record(key)
            if key in self._answers:
                raise AnswerAlreadyRecordedError(key)

        recorded: list[str] = []
        for key in self.schema.keys:
            if key not in mapping:
                continue
            self.answer(key, mapping[key])
            if key in self._answers:
                recorded.append(key)
        return recorded

    def unfilled_keys(self) -> list[str]:
        return [key for key in self.schema.keys if key not in self._answers]

    def next_question(self, skip: Collection[str] = ()) -> Question | None:
        pending = [key for key in self.unfilled_keys() if key not in skip]
        if not pending:
            return None

        record = self._require_record(pending[0])
        context = question_context(self.schema, self.renditions.plain_text, record.key)
        return Question(
            key=record.key,
            label=record.label,
            text=self.phraser.phrase(record, context),
            position=record.position,
        )

    def progress(self) -> Progress:
        return Progress(answered=len(self._answers), total=len(self.schema.records))

    def preview(self, current_key: str | None = None) -> PreviewOutput:
        """Render the HTML preview, highlighting `current_key` or the next pending key."""

        if current_key is None:
            pending = self.unfilled_keys()
            current_key = pending[0] if pending else None
        return render_preview(self.renditions.markup, self.schema, self._answers, current_key)

    def generate(self) -> FillOutput:
        """Substitute all answers into the body XML and rebuild the document."""

        result = substitute(self.body_xml, self.schema, self._answers)
        document = replace_body_xml(open_document(self._source_bytes), result.body)

        missing = set(result.report.not_found_keys)
        unfilled = [
            key for key in self.schema.keys if key not in self._answers or key in missing
        ]
        return FillOutput(
            document=document,
            document_schema=self.schema,
            answers=dict(self._answers),
            report=result.report,
            unfilled_keys=unfilled,
        )

    def _require_record(self, key: str) -> PlaceholderRecord:
        record = self.schema.record(key)
        if record is None:
            raise UnknownPlaceholderError(key)
        return record
