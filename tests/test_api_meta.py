from __future__ import annotations

import httpx
import pytest

from apps.api.main import app


@pytest.mark.anyio
async def test_healthz_ok() -> None:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        response = await client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert response.headers["X-Docfill-Request-Id"]


@pytest.mark.anyio
async def test_meta_returns_capabilities_and_request_id(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("DOCFILL_QUESTION_PHRASER", raising=False)
    monkeypatch.delenv("DOCFILL_MAX_UPLOAD_BYTES", raising=False)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        response = await client.get("/v1/meta")

    assert response.status_code == 200
    assert response.headers["X-Docfill-Request-Id"]
    payload = response.json()
    assert payload["supported_phrasers"] == ["remote", "template"]
    assert payload["question_phraser"] == "template"
    assert payload["max_upload_bytes"] == 25 * 1024 * 1024
    assert payload["version"]


@pytest.mark.anyio
async def test_meta_reflects_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DOCFILL_QUESTION_PHRASER", "remote")
    monkeypatch.setenv("DOCFILL_MAX_UPLOAD_BYTES", "1024")
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        response = await client.get("/v1/meta")

    payload = response.json()
    assert payload["question_phraser"] == "remote"
    assert payload["max_upload_bytes"] == 1024
