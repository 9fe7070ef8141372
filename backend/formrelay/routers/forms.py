"""
Form submission router.

Endpoints:
  POST /submit-contact-form  multipart; Name, Email, Subject (phone), Message,
                             optional single "file" kept in memory
  POST /subscribe            JSON or form body with "email"
  POST /submit-quote-form    multipart with up to 5 files written to the
                             managed upload directory, or a JSON body with
                             files inline as base64

Every endpoint follows the same path:

  validate fields -> check files -> resolve attachments -> deliver

Validation and file rejections raise before anything is written or sent and
are turned into 400 JSON responses by the handlers in ``formrelay.main``.
Delivered submissions redirect to /thank-you.html; failed deliveries
redirect to /error.html. Transport details only reach the server log.
"""

import asyncio
import logging
from typing import Any, Mapping

from fastapi import APIRouter, Depends, Request, UploadFile
from fastapi.responses import RedirectResponse
from pydantic import ValidationError as PayloadValidationError
from starlette.datastructures import FormData

from formrelay.dependencies import get_pipeline, get_upload_store
from formrelay.models.forms import FormSpec
from formrelay.models.payloads import QuoteJsonPayload
from formrelay.models.submission import DeliveryOutcome
from formrelay.services.attachments import (
    DiskUploadSource,
    IncomingFile,
    InlineFile,
    InlineUploadSource,
    MemoryUploadSource,
    UploadStore,
    check_count,
    check_extension,
    check_size,
)
from formrelay.services.delivery import DeliveryPipeline
from formrelay.services.forms import CONTACT_FORM, QUOTE_FORM, SUBSCRIBE_FORM
from formrelay.services.normalizer import prepare_submission
from formrelay.services.validators import RawValue, ValidationError

logger = logging.getLogger(__name__)

router = APIRouter()

THANK_YOU_URL = "/thank-you.html"
ERROR_URL = "/error.html"

INVALID_BODY_MESSAGE = "Invalid request body."


# ---------------------------------------------------------------------------
# Request parsing helpers
# ---------------------------------------------------------------------------

def _is_json(request: Request) -> bool:
    content_type = request.headers.get("content-type", "")
    return content_type.split(";")[0].strip().lower() == "application/json"


def _form_fields(form_data: FormData) -> dict[str, RawValue]:
    """
    Flatten multipart/urlencoded fields.

    Repeated keys (checkbox groups) become lists; file parts are skipped.
    """
    fields: dict[str, RawValue] = {}
    for key in form_data.keys():
        values = [v for v in form_data.getlist(key) if isinstance(v, str)]
        if not values:
            continue
        fields[key] = values[0] if len(values) == 1 else values
    return fields


def _json_fields(payload: Mapping[str, Any]) -> dict[str, RawValue]:
    """Stringify JSON scalars; lists become lists of strings; objects are ignored."""
    fields: dict[str, RawValue] = {}
    for key, value in payload.items():
        if value is None or isinstance(value, dict):
            continue
        if isinstance(value, list):
            fields[key] = [str(item) for item in value if item is not None and not isinstance(item, dict)]
        elif isinstance(value, bool):
            fields[key] = "Yes" if value else "No"
        else:
            fields[key] = str(value)
    return fields


async def _read_json_object(request: Request) -> dict[str, Any]:
    try:
        payload = await request.json()
    except ValueError:
        raise ValidationError(INVALID_BODY_MESSAGE)
    if not isinstance(payload, dict):
        raise ValidationError(INVALID_BODY_MESSAGE)
    return payload


async def _read_uploads(form_data: FormData, form: FormSpec) -> list[IncomingFile]:
    """
    Read the file parts a form accepts.

    Count, extension and declared size are checked before each part is read;
    the upload sources re-check sizes against the bytes actually read.
    Empty file inputs (no file chosen) are skipped.
    """
    uploads: list[tuple[str, UploadFile]] = []
    for field_name in form.file_fields:
        for value in form_data.getlist(field_name):
            if isinstance(value, str) or not getattr(value, "filename", None):
                continue
            uploads.append((field_name, value))

    check_count(len(uploads), form.max_files)
    incoming: list[IncomingFile] = []
    for field_name, upload in uploads:
        check_extension(upload.filename)
        if upload.size is not None:
            check_size(upload.filename, upload.size)
        content = await upload.read()
        incoming.append(IncomingFile(
            field_name=field_name,
            filename=upload.filename,
            content=content,
            content_type=upload.content_type,
        ))
    return incoming


def _respond(outcome: DeliveryOutcome, form: FormSpec) -> RedirectResponse:
    if outcome.delivered:
        if outcome.used_fallback:
            logger.info("%s submission delivered via fallback transport", form.name)
        return RedirectResponse(THANK_YOU_URL, status_code=302)
    logger.error("%s submission not delivered: %s", form.name, outcome.error)
    return RedirectResponse(ERROR_URL, status_code=302)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/submit-contact-form")
async def submit_contact_form(
    request: Request,
    pipeline: DeliveryPipeline = Depends(get_pipeline),
) -> RedirectResponse:
    """Contact form; the optional file never touches the disk."""
    form_data = await request.form()
    submission = prepare_submission(_form_fields(form_data), CONTACT_FORM)

    uploads = await _read_uploads(form_data, CONTACT_FORM)
    attachments = MemoryUploadSource(uploads, max_files=CONTACT_FORM.max_files).resolve()

    outcome = await pipeline.deliver(submission, attachments)
    return _respond(outcome, CONTACT_FORM)


@router.post("/subscribe")
async def subscribe(
    request: Request,
    pipeline: DeliveryPipeline = Depends(get_pipeline),
) -> RedirectResponse:
    """Newsletter sign-up; accepts JSON or a regular form post."""
    if _is_json(request):
        fields = _json_fields(await _read_json_object(request))
    else:
        fields = _form_fields(await request.form())
    submission = prepare_submission(fields, SUBSCRIBE_FORM)

    outcome = await pipeline.deliver(submission)
    return _respond(outcome, SUBSCRIBE_FORM)


@router.post("/submit-quote-form")
async def submit_quote_form(
    request: Request,
    pipeline: DeliveryPipeline = Depends(get_pipeline),
    store: UploadStore = Depends(get_upload_store),
) -> RedirectResponse:
    """
    Quote request.

    Multipart posts have their files written to the managed upload
    directory; JSON posts carry files inline as base64. Files are written
    from a worker thread and removed by the pipeline once sending is over.
    """
    if _is_json(request):
        raw = await _read_json_object(request)
        try:
            payload = QuoteJsonPayload.model_validate(raw)
        except PayloadValidationError:
            raise ValidationError(INVALID_BODY_MESSAGE)
        submission = prepare_submission(_json_fields(payload.form_fields()), QUOTE_FORM)
        source = InlineUploadSource(
            [
                InlineFile(filename=a.filename, data=a.content, content_type=a.content_type)
                for a in payload.inline_attachments()
            ],
            store=store,
            max_files=QUOTE_FORM.max_files,
        )
    else:
        form_data = await request.form()
        submission = prepare_submission(_form_fields(form_data), QUOTE_FORM)
        uploads = await _read_uploads(form_data, QUOTE_FORM)
        source = DiskUploadSource(uploads, store=store, max_files=QUOTE_FORM.max_files)

    attachments = await asyncio.to_thread(source.resolve)
    outcome = await pipeline.deliver(submission, attachments)
    return _respond(outcome, QUOTE_FORM)
