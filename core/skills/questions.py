"""Question phrasing for placeholder records.

The template phraser is deterministic and always available. The remote phraser
asks a text-generation endpoint for a question and falls back to the template
on any failure. Reading the reply stops at an overall deadline, so a slow
server holds the question loop for at most one read timeout past it.
"""

from __future__ import annotations

import json
import logging
import re
import time
from collections.abc import Callable
from typing import Any

import httpx

from core.skills.base import QuestionContext, Section
from core.templates.blank_labels import CONTEXT_WINDOW
from core.templates.models import DocumentSchema, PlaceholderRecord
from core.utils.events import log_event

logger = logging.getLogger("docfill.questions")

DEFAULT_REMOTE_ENDPOINT = "https://api-inference.huggingface.co/models/gpt2"
# Overall deadline for one remote question; also the limit on each connect,
# write and read phase.
DEFAULT_TIMEOUT_SECONDS = 3.0
MIN_GENERATED_LENGTH = 10

_QUESTION_PREFIX_RE = re.compile(r"^question:\s*", re.IGNORECASE)

_KEY_QUESTIONS = {
    "company": "What is the name of the company issuing the SAFE?",
    "company_name": "What is the name of the company issuing the SAFE?",
    "company_entity": "What is the company entity name?",
    "company_type": "What type of company is it? (e.g., LLC, Inc., Corp)",
    "company_by": "Who is signing on behalf of the company? (Enter name for signature line)",
    "company_title": "What is the title of the company signatory? (e.g., CEO, President)",
    "company_address": "What is the company's address?",
    "company_email": "What is the company's email address?",
    "investor": "What is the investor's name?",
    "investor_name": "What is the investor's name?",
    "investor_by": "Who is signing on behalf of the investor? (Enter name for signature line)",
    "investor_title": "What is the investor's title or designation? (e.g., Managing Director, Partner)",
    "investor_address": "What is the investor's address?",
    "investor_email": "What is the investor's email address?",
    "investor_entity": "What is the investor entity name?",
    "investment_amount": "What is the investment amount?",
    "valuation_cap": "What is the valuation cap?",
    "discount": "What is the discount rate? (e.g., 20%)",
    "discount_rate": "What is the discount rate? (e.g., 20%)",
    "effective_date": "What is the effective date?",
    "state_of_incorporation": "What is the state of incorporation?",
    "jurisdiction": "What is the governing law jurisdiction?",
}

_SECTION_QUESTIONS: dict[str, dict[Section | None, str]] = {
    "by": {
        "company": "Who is signing on behalf of the company? (Enter name for signature line)",
        "investor": "Who is signing on behalf of the investor? (Enter name for signature line)",
        None: "Who is signing? (Enter name for signature line)",
    },
    "name": {
        "company": "What is the name of the person signing on behalf of the company?",
        "investor": "What is the name of the person signing on behalf of the investor?",
        None: "What is the name?",
    },
    "title": {
        "company": "What is the title of the company signatory? (e.g., CEO, President)",
        "investor": "What is the investor's title or designation? (e.g., Managing Director, Partner)",
        None: "What is the title? (e.g., CEO, President)",
    },
    "email": {
        "company": "What is the company's email address?",
        "investor": "What is the investor's email address?",
        None: "What is the email address?",
    },
    "address": {
        "company": "What is the company's address?",
        "investor": "What is the investor's address?",
        None: "What is the address?",
    },
}

_LABEL_HINTS = {
    "Discount Rate": " (e.g., 20%)",
}


class TemplateQuestionPhraser:
    """Deterministic, section-aware questions built from keys and labels."""

    name = "template"

    def phrase(self, record: PlaceholderRecord, context: QuestionContext) -> str:
        section_questions = _SECTION_QUESTIONS.get(record.key)
        if section_questions is not None:
            return section_questions[context.section]

        known = _KEY_QUESTIONS.get(record.key)
        if known is not None:
            return known

        if record.is_blank and record.label.startswith("Field "):
            return "What value should be filled in here?"

        hint = _LABEL_HINTS.get(record.label, "")
        return f"What is the {_sentence_label(record.label)}?{hint}"


class RemoteQuestionPhraser:
    """Text-generation phraser with a bounded timeout and template fallback."""

    name = "remote"

    def __init__(
        self,
        endpoint: str = DEFAULT_REMOTE_ENDPOINT,
        *,
        token: str | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        fallback: TemplateQuestionPhraser | None = None,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.endpoint = endpoint
        self.token = token
        self.timeout_seconds = timeout_seconds
        self.fallback = fallback or TemplateQuestionPhraser()
        self._transport = transport
        self._clock = clock

    def phrase(self, record: PlaceholderRecord, context: QuestionContext) -> str:
        template_question = self.fallback.phrase(record, context)

        try:
            generated = self._generate(record, context)
        except httpx.HTTPError as exc:
            self._log_fallback(record.key, type(exc).__name__)
            return template_question
        except ValueError:
            self._log_fallback(record.key, "invalid_payload")
            return template_question

        question = _clean_generated(generated)
        if len(question) <= MIN_GENERATED_LENGTH:
            self._log_fallback(record.key, "generated_text_too_short")
            return template_question
        return question

    def _generate(self, record: PlaceholderRecord, context: QuestionContext) -> str:
        prompt = (
            f'Generate a professional question for filling in "{record.label}" '
            "in a legal document.\n\n"
            f"Context: {context.snippet[:300]}\n"
            "Question:"
        )
        payload = {
            "inputs": prompt,
            "parameters": {
                "max_new_tokens": 30,
                "temperature": 0.7,
                "return_full_text": False,
            },
        }
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}

        deadline = self._clock() + self.timeout_seconds
        body = bytearray()
        with httpx.Client(timeout=self.timeout_seconds, transport=self._transport) as client:
            with client.stream("POST", self.endpoint, json=payload, headers=headers) as response:
                response.raise_for_status()
                # A server that trickles bytes never trips the per-read timeout.
                for chunk in response.iter_bytes():
                    if self._clock() > deadline:
                        raise httpx.ReadTimeout(
                            "Generation deadline exceeded", request=response.request
                        )
                    body.extend(chunk)

        return _generated_text(json.loads(body))

    def _log_fallback(self, key: str, reason: str) -> None:
        log_event(
            logger,
            logging.WARNING,
            "question_phraser_fallback",
            key=key,
            reason=reason,
            endpoint=self.endpoint,
        )


def question_context(schema: DocumentSchema, plain_text: str, key: str) -> QuestionContext:
    """Slice context around `key`'s first occurrence and detect its section.

    The section is whichever of "company"/"investor" was mentioned last before
    the placeholder.
    """

    offset = schema.offsets.get(key)
    if offset is None:
        return QuestionContext()

    before_all = plain_text[:offset].lower()
    company_at = before_all.rfind("company")
    investor_at = before_all.rfind("investor")
    section: Section | None = None
    if company_at > investor_at:
        section = "company"
    elif investor_at > company_at:
        section = "investor"

    return QuestionContext(
        text_before=plain_text[max(0, offset - CONTEXT_WINDOW) : offset],
        text_after=plain_text[offset : offset + CONTEXT_WINDOW],
        section=section,
    )


def _generated_text(data: Any) -> str:
    if isinstance(data, list) and data:
        data = data[0]
    if not isinstance(data, dict):
        raise ValueError("Unexpected text-generation payload")
    text = data.get("generated_text")
    if not isinstance(text, str):
        raise ValueError("Missing generated_text in payload")
    return text


def _clean_generated(text: str) -> str:
    stripped = text.strip()
    if not stripped:
        return ""
    first_line = stripped.splitlines()[0]
    return _QUESTION_PREFIX_RE.sub("", first_line).strip()


def _sentence_label(label: str) -> str:
    words = []
    for word in label.split():
        words.append(word if word.isupper() and len(word) > 1 else word.lower())
    return " ".join(words)
