"""FastAPI wrapper for the docfill extraction and fill pipeline."""

from __future__ import annotations

import asyncio
import importlib.metadata
import json
import logging
import os
import time
import uuid
from typing import Annotated, Any

from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse, Response

from apps.cli.io import schema_payload
from core.orchestrator.pipeline import run_fill
from core.orchestrator.session import FillSession
from core.render.models import FillOutput, PreviewOutput
from core.skills.hints import hint_for
from core.skills.questions import question_context
from core.skills.registry import list_supported_phrasers, phraser_from_env
from core.templates.models import DocumentSchema
from core.utils.docx_xml import document_to_bytes, open_document
from core.utils.errors import (
    AnswerAlreadyRecordedError,
    DecodeError,
    UnfilledPlaceholdersError,
    UnknownPlaceholderError,
)
from core.utils.events import dump_json

app = FastAPI(title="docfill-agent API", version="0.1.0")
logger = logging.getLogger("docfill.api")

_DEFAULT_MAX_UPLOAD_BYTES = 25 * 1024 * 1024
_DOCX_MAGIC = b"PK\x03\x04"
_DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
_REQUEST_ID_HEADER = "X-Docfill-Request-Id"


class ApiRequestError(Exception):
    def __init__(
        self,
        *,
        status_code: int,
        error_code: str,
        message: str,
        detail: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.message = message
        self.detail = detail or {}


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Ensure every response has a request id header."""

    request_id = uuid.uuid4().hex
    request.state.request_id = request_id
    try:
        response = await call_next(request)
    except Exception:  # noqa: BLE001
        _log_event(
            logging.ERROR,
            "error",
            request_id,
            error_code="INTERNAL_ERROR",
            status_code=500,
            failure_stage="middleware",
        )
        response = _error_response(
            status_code=500,
            error_code="INTERNAL_ERROR",
            message="internal server error",
            request_id=request_id,
            detail={"path": request.url.path},
        )
    response.headers.setdefault(_REQUEST_ID_HEADER, request_id)
    return response


@app.get("/healthz")
async def healthz() -> dict[str, str]:
    """Liveness endpoint."""

    return {"status": "ok"}


@app.get("/v1/meta")
async def meta_v1(request: Request) -> JSONResponse:
    """Metadata endpoint for upload/chat clients."""

    request_id = _request_id_from_request(request)
    payload = {
        "supported_phrasers": list_supported_phrasers(),
        "question_phraser": phraser_from_env().name,
        "max_upload_bytes": _max_upload_bytes(),
        "version": _package_version(),
    }
    return JSONResponse(
        status_code=200,
        headers={_REQUEST_ID_HEADER: request_id},
        content=payload,
    )


@app.post("/v1/extract", response_model=None)
async def extract_v1(
    request: Request,
    document: Annotated[UploadFile, File(...)],
    include_questions: Annotated[bool, Form()] = False,
) -> JSONResponse:
    """Return the ordered placeholder schema of an uploaded document."""

    request_started = time.perf_counter()
    request_id = _request_id_from_request(request)
    failure_stage = "upload"

    try:
        data = _read_docx_upload(document)
        _log_event(logging.INFO, "start", request_id, route="extract", upload_bytes=len(data))

        failure_stage = "extract"
        session = await asyncio.to_thread(FillSession.from_source, data)
        payload: dict[str, Any] = {"request_id": request_id, **schema_payload(session.schema)}
        if include_questions:
            failure_stage = "questions"
            payload["questions"] = await asyncio.to_thread(_questions_payload, session)

        _log_event(
            logging.INFO,
            "done",
            request_id,
            route="extract",
            placeholders=len(session.schema.records),
            total_ms=_elapsed_ms(request_started),
        )
        return JSONResponse(status_code=200, headers={_REQUEST_ID_HEADER: request_id}, content=payload)
    except Exception as exc:  # noqa: BLE001
        return _handle_exception(exc, request_id, failure_stage)


@app.post("/v1/fill", response_model=None)
async def fill_v1(
    request: Request,
    document: Annotated[UploadFile, File(...)],
    answers: Annotated[str, Form()] = "{}",
    strict: Annotated[bool, Form()] = False,
) -> Response | JSONResponse:
    """Fill an uploaded document and return the generated docx."""

    request_started = time.perf_counter()
    request_id = _request_id_from_request(request)
    failure_stage = "upload"

    try:
        data = _read_docx_upload(document)
        failure_stage = "validate_answers"
        answer_map = _parse_answers(answers)
        _log_event(
            logging.INFO,
            "start",
            request_id,
            route="fill",
            upload_bytes=len(data),
            answers=len(answer_map),
            strict=strict,
        )

        failure_stage = "pipeline"
        output = await asyncio.to_thread(_fill_document, data, answer_map, strict)
        content = await asyncio.to_thread(document_to_bytes, output.document)

        _log_event(
            logging.INFO,
            "done",
            request_id,
            route="fill",
            replaced=output.report.summary.replaced_count,
            not_found=output.report.summary.not_found_count,
            unfilled=len(output.unfilled_keys),
            total_ms=_elapsed_ms(request_started),
        )
        headers = {
            _REQUEST_ID_HEADER: request_id,
            "X-Docfill-Unfilled": ",".join(output.unfilled_keys),
            "Content-Disposition": 'attachment; filename="filled.docx"',
        }
        return Response(content=content, media_type=_DOCX_MEDIA_TYPE, headers=headers)
    except UnfilledPlaceholdersError as exc:
        _log_event(
            logging.ERROR,
            "error",
            request_id,
            error_code="UNFILLED_PLACEHOLDERS",
            status_code=422,
            failure_stage=failure_stage,
        )
        return _error_response(
            status_code=422,
            error_code="UNFILLED_PLACEHOLDERS",
            message="unfilled placeholders remain",
            request_id=request_id,
            detail={"unfilled": exc.unfilled},
        )
    except Exception as exc:  # noqa: BLE001
        return _handle_exception(exc, request_id, failure_stage)


@app.post("/v1/preview", response_model=None)
async def preview_v1(
    request: Request,
    document: Annotated[UploadFile, File(...)],
    answers: Annotated[str, Form()] = "{}",
    current_key: Annotated[str | None, Form()] = None,
) -> JSONResponse:
    """Return the highlighted HTML preview for the current answers."""

    request_id = _request_id_from_request(request)
    failure_stage = "upload"

    try:
        data = _read_docx_upload(document)
        failure_stage = "validate_answers"
        answer_map = _parse_answers(answers)

        failure_stage = "preview"
        preview = await asyncio.to_thread(_preview_document, data, answer_map, current_key)
        for warning in preview.warnings:
            _log_event(
                logging.WARNING,
                "preview_warning",
                request_id,
                kind=warning.kind,
                unfilled_matches=warning.unfilled_matches,
                unanswered_keys=warning.unanswered_keys,
            )

        payload = {
            "request_id": request_id,
            "html": preview.html,
            "current_key": preview.current_key,
            "pending_keys": preview.pending_keys,
            "warnings": [warning.model_dump(mode="json") for warning in preview.warnings],
        }
        return JSONResponse(status_code=200, headers={_REQUEST_ID_HEADER: request_id}, content=payload)
    except Exception as exc:  # noqa: BLE001
        return _handle_exception(exc, request_id, failure_stage)


def _fill_document(data: bytes, answers: dict[str, str | None], strict: bool) -> FillOutput:
    return run_fill(open_document(data), answers, require_complete=strict)


def _preview_document(
    data: bytes, answers: dict[str, str | None], current_key: str | None
) -> PreviewOutput:
    session = FillSession.from_source(data)
    session.fill_all(answers)
    return session.preview(current_key)


def _questions_payload(session: FillSession) -> list[dict[str, object]]:
    phraser = phraser_from_env()
    schema: DocumentSchema = session.schema
    questions: list[dict[str, object]] = []
    for record in schema.records:
        context = question_context(schema, session.renditions.plain_text, record.key)
        item = hint_for(record, schema).to_payload()
        item["question"] = phraser.phrase(record, context)
        questions.append(item)
    return questions


def _handle_exception(exc: Exception, request_id: str, failure_stage: str) -> JSONResponse:
    if isinstance(exc, ApiRequestError):
        error = exc
    elif isinstance(exc, DecodeError):
        error = ApiRequestError(
            status_code=415,
            error_code="INVALID_DOCUMENT",
            message="please provide a valid document",
            detail={"field": "document"},
        )
    elif isinstance(exc, (UnknownPlaceholderError, AnswerAlreadyRecordedError)):
        error = ApiRequestError(
            status_code=400,
            error_code=(
                "UNKNOWN_PLACEHOLDER"
                if isinstance(exc, UnknownPlaceholderError)
                else "DUPLICATE_ANSWER"
            ),
            message=str(exc),
            detail={"field": "answers", "key": exc.key},
        )
    else:
        _log_event(
            logging.ERROR,
            "error",
            request_id,
            error_code="INTERNAL_ERROR",
            status_code=500,
            failure_stage=failure_stage,
        )
        return _error_response(
            status_code=500,
            error_code="INTERNAL_ERROR",
            message="internal server error",
            request_id=request_id,
            detail={"error": str(exc)},
        )

    _log_event(
        logging.ERROR,
        "error",
        request_id,
        error_code=error.error_code,
        status_code=error.status_code,
        failure_stage=failure_stage,
    )
    return _error_response(
        status_code=error.status_code,
        error_code=error.error_code,
        message=error.message,
        request_id=request_id,
        detail=error.detail,
    )


def _read_docx_upload(upload: UploadFile) -> bytes:
    filename = upload.filename
    if filename is None or not filename.lower().endswith(".docx"):
        raise ApiRequestError(
            status_code=415,
            error_code="INVALID_MEDIA_TYPE",
            message="document must be a .docx file",
            detail={"field": "document", "filename": filename},
        )

    data = _read_upload_with_limit(upload=upload, max_bytes=_max_upload_bytes(), field_name="document")
    if data[:4] != _DOCX_MAGIC:
        raise ApiRequestError(
            status_code=415,
            error_code="INVALID_MEDIA_TYPE",
            message="document must be a valid .docx file",
            detail={"field": "document"},
        )
    return data


def _read_upload_with_limit(*, upload: UploadFile, max_bytes: int, field_name: str) -> bytes:
    chunks: list[bytes] = []
    total_size = 0

    source = upload.file
    source.seek(0)
    while True:
        chunk = source.read(1024 * 1024)
        if not chunk:
            break
        total_size += len(chunk)
        if total_size > max_bytes:
            raise ApiRequestError(
                status_code=413,
                error_code="UPLOAD_TOO_LARGE",
                message=f"{field_name} exceeds upload size limit",
                detail={
                    "field": field_name,
                    "max_bytes": max_bytes,
                    "received_bytes": total_size,
                },
            )
        chunks.append(chunk)

    source.close()
    return b"".join(chunks)


def _parse_answers(raw: str) -> dict[str, str | None]:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ApiRequestError(
            status_code=400,
            error_code="INVALID_ARGUMENT",
            message="answers must be a JSON object",
            detail={"field": "answers", "error": str(exc)},
        ) from exc

    if not isinstance(parsed, dict):
        raise ApiRequestError(
            status_code=400,
            error_code="INVALID_ARGUMENT",
            message="answers must be a JSON object",
            detail={"field": "answers"},
        )

    answers: dict[str, str | None] = {}
    for key, value in parsed.items():
        if value is not None and not isinstance(value, str):
            raise ApiRequestError(
                status_code=400,
                error_code="INVALID_ARGUMENT",
                message="answer values must be strings or null",
                detail={"field": "answers", "key": key},
            )
        answers[key] = value
    return answers


def _max_upload_bytes() -> int:
    raw = os.getenv("DOCFILL_MAX_UPLOAD_BYTES")
    if raw is None:
        return _DEFAULT_MAX_UPLOAD_BYTES
    try:
        parsed = int(raw)
    except ValueError:
        return _DEFAULT_MAX_UPLOAD_BYTES
    return parsed if parsed > 0 else _DEFAULT_MAX_UPLOAD_BYTES


def _request_id_from_request(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if isinstance(request_id, str) and request_id:
        return request_id
    generated = uuid.uuid4().hex
    request.state.request_id = generated
    return generated


def _package_version() -> str:
    try:
        return importlib.metadata.version("docfill-agent")
    except importlib.metadata.PackageNotFoundError:
        return "unknown"


def _error_response(
    *,
    status_code: int,
    error_code: str,
    message: str,
    request_id: str,
    detail: dict[str, Any] | None = None,
) -> JSONResponse:
    payload_detail = dict(detail or {})
    payload_detail["request_id"] = request_id

    return JSONResponse(
        status_code=status_code,
        headers={_REQUEST_ID_HEADER: request_id},
        content={
            "error_code": error_code,
            "message": message,
            "detail": payload_detail,
        },
    )


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def _log_event(level: int, event: str, request_id: str, **fields: Any) -> None:
    payload = {
        "event": event,
        "request_id": request_id,
        **fields,
    }
    logger.log(level, dump_json(payload))
