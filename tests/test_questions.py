from __future__ import annotations

import json
import logging
from collections.abc import Iterator

import httpx
import pytest

from core.skills.base import QuestionContext
from core.skills.questions import (
    RemoteQuestionPhraser,
    TemplateQuestionPhraser,
    question_context,
)
from core.skills.registry import create_phraser, list_supported_phrasers, phraser_from_env
from core.templates.models import DocumentSchema, PlaceholderRecord
from core.templates.placeholder_parser import extract


def _record(key: str, label: str) -> PlaceholderRecord:
    return PlaceholderRecord(key=key, label=label, position=1)


def test_template_questions_for_known_keys() -> None:
    phraser = TemplateQuestionPhraser()

    question = phraser.phrase(_record("company", "Company Name"), QuestionContext())

    assert question == "What is the name of the company issuing the SAFE?"


def test_template_questions_for_blank_labels() -> None:
    phraser = TemplateQuestionPhraser()
    context = QuestionContext()

    assert phraser.phrase(_record("blank_0", "Discount Rate"), context) == (
        "What is the discount rate? (e.g., 20%)"
    )
    assert phraser.phrase(_record("blank_1", "Field 1"), context) == (
        "What value should be filled in here?"
    )
    assert phraser.phrase(_record("blank_2", "Post-Money Valuation Cap"), context) == (
        "What is the post-money valuation cap?"
    )
    assert phraser.phrase(_record("investor_llc", "Investor LLC"), context) == (
        "What is the investor LLC?"
    )


def test_signature_block_questions_follow_the_nearest_section() -> None:
    text = "COMPANY:\nName: [Name]\n\nINVESTOR:\nTitle: [Title]\nEmail: [Email]"
    schema = extract(text, text)
    phraser = TemplateQuestionPhraser()

    name_context = question_context(schema, text, "name")
    title_context = question_context(schema, text, "title")

    assert name_context.section == "company"
    assert title_context.section == "investor"
    assert phraser.phrase(schema.record("name"), name_context) == (
        "What is the name of the person signing on behalf of the company?"
    )
    assert phraser.phrase(schema.record("email"), question_context(schema, text, "email")) == (
        "What is the investor's email address?"
    )


def test_question_context_without_offset_has_no_section() -> None:
    schema = DocumentSchema(records=[_record("title", "Title")])

    context = question_context(schema, "Company text", "title")

    assert context.section is None
    assert TemplateQuestionPhraser().phrase(schema.records[0], context) == (
        "What is the title? (e.g., CEO, President)"
    )


def test_remote_phraser_uses_generated_question() -> None:
    seen: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["authorization"] = request.headers.get("Authorization")
        seen["payload"] = json.loads(request.content)
        return httpx.Response(
            200,
            json=[{"generated_text": " Question: What is the company's legal name?\nextra"}],
        )

    phraser = RemoteQuestionPhraser(
        "https://example.test/generate",
        token="secret",
        transport=httpx.MockTransport(handler),
    )

    question = phraser.phrase(_record("company", "Company Name"), QuestionContext())

    assert question == "What is the company's legal name?"
    assert seen["authorization"] == "Bearer secret"
    payload = seen["payload"]
    assert isinstance(payload, dict)
    assert '"Company Name"' in payload["inputs"]


@pytest.mark.parametrize(
    "handler",
    [
        lambda request: httpx.Response(503, json={"error": "loading"}),
        lambda request: httpx.Response(200, json=[{"generated_text": "Why?"}]),
        lambda request: httpx.Response(200, json={"unexpected": True}),
    ],
)
def test_remote_phraser_falls_back_to_template(handler, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="docfill.questions")
    phraser = RemoteQuestionPhraser(
        "https://example.test/generate",
        transport=httpx.MockTransport(handler),
    )

    question = phraser.phrase(_record("company", "Company Name"), QuestionContext())

    assert question == "What is the name of the company issuing the SAFE?"
    messages = [record.message for record in caplog.records if record.name == "docfill.questions"]
    assert any('"event":"question_phraser_fallback"' in message for message in messages)


def test_remote_phraser_falls_back_on_timeout() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    phraser = RemoteQuestionPhraser(
        "https://example.test/generate",
        timeout_seconds=0.1,
        transport=httpx.MockTransport(handler),
    )

    question = phraser.phrase(_record("blank_0", "Field 0"), QuestionContext())

    assert question == "What value should be filled in here?"


def test_remote_phraser_stops_reading_after_overall_deadline(
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.WARNING, logger="docfill.questions")
    ticks = iter([0.0, 1.0, 5.0])

    def trickle() -> Iterator[bytes]:
        yield b'[{"generated_text": '
        yield b'"What is the company legal name?"}]'

    phraser = RemoteQuestionPhraser(
        "https://example.test/generate",
        timeout_seconds=3.0,
        transport=httpx.MockTransport(lambda request: httpx.Response(200, content=trickle())),
        clock=lambda: next(ticks),
    )

    question = phraser.phrase(_record("company", "Company Name"), QuestionContext())

    assert question == "What is the name of the company issuing the SAFE?"
    messages = [record.message for record in caplog.records if record.name == "docfill.questions"]
    assert any('"reason":"ReadTimeout"' in message for message in messages)


def test_registry_lists_and_creates_phrasers() -> None:
    assert list_supported_phrasers() == ["remote", "template"]
    assert create_phraser("template").name == "template"

    with pytest.raises(ValueError, match="Unsupported question phraser"):
        create_phraser("oracle")


def test_phraser_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DOCFILL_QUESTION_PHRASER", " Remote ")
    monkeypatch.setenv("DOCFILL_QUESTION_ENDPOINT", "https://example.test/generate")
    monkeypatch.setenv("DOCFILL_QUESTION_TIMEOUT_SECONDS", "0")
    monkeypatch.delenv("DOCFILL_HF_TOKEN", raising=False)

    phraser = phraser_from_env()

    assert isinstance(phraser, RemoteQuestionPhraser)
    assert phraser.endpoint == "https://example.test/generate"
    assert phraser.timeout_seconds == 3.0
    assert phraser.token is None

    monkeypatch.setenv("DOCFILL_QUESTION_PHRASER", "unknown")
    assert phraser_from_env().name == "template"
