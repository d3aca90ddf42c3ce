from __future__ import annotations

import io
import json

import httpx
import pytest
from docx import Document

from apps.api.main import app

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def _build_docx_bytes() -> bytes:
    document = Document()
    document.add_paragraph("[Company] sells to [Investor Name].")
    document.add_paragraph('Amount: $[____] (the "Purchase Amount").')
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


async def _post_fill(data: dict[str, str], content: bytes | None = None) -> httpx.Response:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        return await client.post(
            "/v1/fill",
            files={
                "document": (
                    "template.docx",
                    content if content is not None else _build_docx_bytes(),
                    DOCX_MEDIA_TYPE,
                )
            },
            data=data,
        )


@pytest.mark.anyio
async def test_fill_returns_filled_docx() -> None:
    answers = {"company": "Acme", "investor_name": "Jane Doe", "blank_0": "$10,000"}

    response = await _post_fill({"answers": json.dumps(answers)})

    assert response.status_code == 200
    assert response.headers["content-type"] == DOCX_MEDIA_TYPE
    assert response.headers["X-Docfill-Request-Id"]
    filled = Document(io.BytesIO(response.content))
    assert [paragraph.text for paragraph in filled.paragraphs] == [
        "Acme sells to Jane Doe.",
        'Amount: $10,000 (the "Purchase Amount").',
    ]


@pytest.mark.anyio
async def test_fill_partial_answers_lists_unfilled_keys() -> None:
    response = await _post_fill({"answers": json.dumps({"company": "Acme"})})

    assert response.status_code == 200
    assert response.headers["X-Docfill-Unfilled"] == "investor_name,blank_0"


@pytest.mark.anyio
async def test_fill_strict_returns_422() -> None:
    response = await _post_fill({"answers": json.dumps({"company": "Acme"}), "strict": "true"})

    assert response.status_code == 422
    payload = response.json()
    assert payload["error_code"] == "UNFILLED_PLACEHOLDERS"
    assert payload["detail"]["unfilled"] == ["investor_name", "blank_0"]
    assert payload["detail"]["request_id"] == response.headers["X-Docfill-Request-Id"]


@pytest.mark.anyio
async def test_fill_unknown_key_returns_400() -> None:
    response = await _post_fill({"answers": json.dumps({"jurisdiction": "Delaware"})})

    assert response.status_code == 400
    payload = response.json()
    assert payload["error_code"] == "UNKNOWN_PLACEHOLDER"
    assert payload["detail"]["key"] == "jurisdiction"


@pytest.mark.anyio
@pytest.mark.parametrize("raw", ["not json", "[1, 2]", '{"company": 5}'])
async def test_fill_invalid_answers_returns_400(raw: str) -> None:
    response = await _post_fill({"answers": raw})

    assert response.status_code == 400
    assert response.json()["error_code"] == "INVALID_ARGUMENT"


@pytest.mark.anyio
async def test_fill_corrupt_docx_returns_415() -> None:
    response = await _post_fill({}, content=b"PK\x03\x04not really a zip")

    assert response.status_code == 415
    payload = response.json()
    assert payload["error_code"] == "INVALID_DOCUMENT"
    assert payload["message"] == "please provide a valid document"
