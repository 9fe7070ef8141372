"""
Integration tests for the form endpoints.

The app is exercised through TestClient with the delivery pipeline and the
upload store swapped out via ``app.dependency_overrides``: transports are
recording doubles and uploads go to a per-test tmp_path directory.
"""

import asyncio
import base64
import os

import pytest
from fastapi.testclient import TestClient

# Settings are read when formrelay.main is imported.
os.environ.setdefault("EMAIL_USER", "forms@example.com")
os.environ.setdefault("EMAIL_PASSWORD", "test-password")
os.environ.setdefault("RECIPIENT_EMAIL", "owner@example.com")

from formrelay.dependencies import get_pipeline, get_upload_store  # noqa: E402
from formrelay.services.attachments import (  # noqa: E402
    INVALID_TYPE_MESSAGE,
    UNDECODABLE_MESSAGE,
    UploadStore,
)
from formrelay.services.delivery import DeliveryPipeline  # noqa: E402
from formrelay.services.transport import TransportError  # noqa: E402
from formrelay.services.validators import (  # noqa: E402
    INVALID_EMAIL_MESSAGE,
    INVALID_PHONE_MESSAGE,
    MISSING_FIELDS_MESSAGE,
    MISSING_PHONE_MESSAGE,
)

PDF_BYTES = b"%PDF-1.4 quote plan"


class ThreadCheckingStore(UploadStore):
    """Upload store that records whether each write ran on the event loop."""

    def __init__(self, directory):
        super().__init__(directory)
        self.on_event_loop = []

    def save(self, *args, **kwargs):
        try:
            asyncio.get_running_loop()
            self.on_event_loop.append(True)
        except RuntimeError:
            self.on_event_loop.append(False)
        return super().save(*args, **kwargs)


class RecordingTransport:
    def __init__(self, name):
        self.name = name
        self.error = None
        self.sent = []

    async def send(self, message):
        self.sent.append(message)
        if self.error:
            raise self.error


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def upload_dir(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture()
def primary():
    return RecordingTransport("primary")


@pytest.fixture()
def fallback():
    return RecordingTransport("fallback")


@pytest.fixture()
def app(primary, fallback, upload_dir):
    from formrelay.main import app

    app.dependency_overrides[get_pipeline] = lambda: DeliveryPipeline(
        "forms@example.com", "owner@example.com", [primary, fallback]
    )
    app.dependency_overrides[get_upload_store] = lambda: UploadStore(upload_dir)
    yield app
    app.dependency_overrides.clear()


@pytest.fixture()
def client(app):
    return TestClient(app, follow_redirects=False)


def _stored_files(upload_dir):
    if not upload_dir.exists():
        return []
    return list(upload_dir.iterdir())


def _quote_fields(**overrides):
    fields = {
        "name": "Jane Doe",
        "email": "jane@example.com",
        "phone": "+1 555-123-4567",
        "city": "Springfield",
        "serviceType": "Window Replacement",
        "comments": "Two bedrooms\nand a bay window",
    }
    fields.update(overrides)
    return fields


# ---------------------------------------------------------------------------
# /health
# ---------------------------------------------------------------------------

class TestHealth:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


# ---------------------------------------------------------------------------
# /submit-contact-form
# ---------------------------------------------------------------------------

class TestContactForm:

    def test_success_redirects_to_thank_you(self, client, primary, fallback):
        response = client.post("/submit-contact-form", data={
            "Name": "Jane Doe",
            "Email": "jane@example.com",
            "Subject": "555 123 4567",
            "Message": "Hello there",
        })

        assert response.status_code == 302
        assert response.headers["location"] == "/thank-you.html"
        assert len(primary.sent) == 1
        assert fallback.sent == []
        message = primary.sent[0]
        assert message["Subject"] == "New Contact Form Submission from Jane Doe"
        assert message["Reply-To"] == "jane@example.com"
        text = message.get_body(preferencelist=("plain",)).get_content()
        assert "Phone: 555 123 4567" in text
        assert "Hello there" in text

    def test_missing_name_is_rejected(self, client, primary):
        response = client.post("/submit-contact-form", data={"Email": "jane@example.com"})

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": MISSING_FIELDS_MESSAGE}
        assert primary.sent == []

    def test_invalid_email_is_rejected(self, client, primary):
        response = client.post("/submit-contact-form", data={"Name": "Jane", "Email": "not-an-email"})

        assert response.status_code == 400
        assert response.json()["message"] == INVALID_EMAIL_MESSAGE
        assert primary.sent == []

    def test_invalid_phone_is_rejected(self, client):
        response = client.post(
            "/submit-contact-form",
            data={"Name": "Jane", "Email": "jane@example.com", "Subject": "call me maybe"},
        )

        assert response.status_code == 400
        assert response.json()["message"] == INVALID_PHONE_MESSAGE

    def test_file_is_attached_from_memory(self, client, primary, upload_dir):
        response = client.post(
            "/submit-contact-form",
            data={"Name": "Jane", "Email": "jane@example.com"},
            files={"file": ("plan.pdf", PDF_BYTES, "application/pdf")},
        )

        assert response.status_code == 302
        part = next(primary.sent[0].iter_attachments())
        assert part.get_filename() == "plan.pdf"
        assert part.get_content() == PDF_BYTES
        assert not upload_dir.exists()

    def test_disallowed_file_type_is_rejected(self, client, primary):
        response = client.post(
            "/submit-contact-form",
            data={"Name": "Jane", "Email": "jane@example.com"},
            files={"file": ("payload.exe", b"MZ", "application/octet-stream")},
        )

        assert response.status_code == 400
        assert response.json()["message"] == INVALID_TYPE_MESSAGE
        assert primary.sent == []

    def test_both_transports_failing_redirects_to_error(self, client, primary, fallback):
        primary.error = TransportError("connection refused")
        fallback.error = TransportError("authentication failed")

        response = client.post("/submit-contact-form", data={"Name": "Jane", "Email": "jane@example.com"})

        assert response.status_code == 302
        assert response.headers["location"] == "/error.html"
        assert "authentication failed" not in response.text


# ---------------------------------------------------------------------------
# /subscribe
# ---------------------------------------------------------------------------

class TestSubscribe:

    def test_json_body(self, client, primary):
        response = client.post("/subscribe", json={"email": "reader@example.com"})

        assert response.status_code == 302
        assert response.headers["location"] == "/thank-you.html"
        message = primary.sent[0]
        assert message["Subject"] == "New Email Subscription"
        assert message.get_body(preferencelist=("plain",)).get_content().strip() == (
            "A new user subscribed with email: reader@example.com"
        )

    def test_form_body(self, client, primary):
        response = client.post("/subscribe", data={"email": "reader@example.com"})

        assert response.status_code == 302
        assert len(primary.sent) == 1

    def test_invalid_email(self, client, primary):
        response = client.post("/subscribe", json={"email": "reader"})

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": INVALID_EMAIL_MESSAGE}
        assert primary.sent == []

    def test_missing_email(self, client):
        response = client.post("/subscribe", json={})

        assert response.status_code == 400
        assert response.json()["message"] == INVALID_EMAIL_MESSAGE

    def test_fallback_is_used(self, client, primary, fallback):
        primary.error = TransportError("connection refused")

        response = client.post("/subscribe", json={"email": "reader@example.com"})

        assert response.headers["location"] == "/thank-you.html"
        assert len(fallback.sent) == 1

    def test_malformed_json(self, client):
        response = client.post(
            "/subscribe",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400


# ---------------------------------------------------------------------------
# /submit-quote-form (multipart)
# ---------------------------------------------------------------------------

class TestQuoteFormMultipart:

    def test_primary_fails_fallback_delivers_and_files_are_removed(
        self, client, primary, fallback, upload_dir
    ):
        primary.error = TransportError("connection refused")

        response = client.post(
            "/submit-quote-form",
            data=_quote_fields(windowType=["Casement", "Awning"]),
            files=[("attachments", ("plan.pdf", PDF_BYTES, "application/pdf"))],
        )

        assert response.status_code == 302
        assert response.headers["location"] == "/thank-you.html"
        assert len(fallback.sent) == 1
        message = fallback.sent[0]
        assert message["Subject"] == "New Quote Request from Jane Doe - Window Replacement"
        text = message.get_body(preferencelist=("plain",)).get_content()
        assert "Window Types: Casement, Awning" in text
        assert "Glazing Options: None selected" in text
        assert "Two bedrooms\nand a bay window" in text
        html = message.get_body(preferencelist=("html",)).get_content()
        assert "Two bedrooms<br>and a bay window" in html
        part = next(message.iter_attachments())
        assert part.get_filename() == "plan.pdf"
        assert part.get_content() == PDF_BYTES
        assert _stored_files(upload_dir) == []

    def test_missing_phone_is_rejected(self, client, primary):
        response = client.post("/submit-quote-form", data=_quote_fields(phone=""))

        assert response.status_code == 400
        assert response.json()["message"] == MISSING_PHONE_MESSAGE
        assert primary.sent == []

    def test_executable_rejected_before_anything_is_written(self, client, primary, upload_dir):
        response = client.post(
            "/submit-quote-form",
            data=_quote_fields(),
            files=[
                ("attachments", ("plan.pdf", PDF_BYTES, "application/pdf")),
                ("attachments", ("payload.exe", b"MZ", "application/octet-stream")),
            ],
        )

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": INVALID_TYPE_MESSAGE}
        assert _stored_files(upload_dir) == []
        assert primary.sent == []

    def test_too_many_files(self, client, primary, upload_dir):
        files = [("attachments", (f"plan{i}.pdf", PDF_BYTES, "application/pdf")) for i in range(6)]

        response = client.post("/submit-quote-form", data=_quote_fields(), files=files)

        assert response.status_code == 400
        assert _stored_files(upload_dir) == []
        assert primary.sent == []

    def test_total_failure_redirects_to_error_and_cleans_up(self, client, primary, fallback, upload_dir):
        primary.error = TransportError("connection refused")
        fallback.error = TransportError("timed out")

        response = client.post(
            "/submit-quote-form",
            data=_quote_fields(),
            files=[("attachments", ("photo.jpg", b"\xff\xd8\xff", "image/jpeg"))],
        )

        assert response.status_code == 302
        assert response.headers["location"] == "/error.html"
        assert _stored_files(upload_dir) == []

    def test_uploads_are_written_from_a_worker_thread(self, app, client, upload_dir):
        store = ThreadCheckingStore(upload_dir)
        app.dependency_overrides[get_upload_store] = lambda: store

        response = client.post(
            "/submit-quote-form",
            data=_quote_fields(),
            files=[
                ("attachments", ("plan.pdf", PDF_BYTES, "application/pdf")),
                ("attachments", ("photo.png", b"\x89PNG", "image/png")),
            ],
        )

        assert response.status_code == 302
        assert store.on_event_loop == [False, False]
        assert _stored_files(upload_dir) == []

    def test_without_files(self, client, primary):
        response = client.post("/submit-quote-form", data=_quote_fields(serviceType=""))

        assert response.status_code == 302
        assert primary.sent[0]["Subject"] == "New Quote Request from Jane Doe"


# ---------------------------------------------------------------------------
# /submit-quote-form (JSON with inline base64)
# ---------------------------------------------------------------------------

class TestQuoteFormJson:

    def test_inline_data_uri_attachment(self, client, primary, upload_dir):
        encoded = base64.b64encode(PDF_BYTES).decode()
        payload = _quote_fields(
            glazing=["Double", "Low-E"],
            attachments=[{"filename": "plan.pdf", "content": f"data:application/pdf;base64,{encoded}"}],
        )

        response = client.post("/submit-quote-form", json=payload)

        assert response.status_code == 302
        assert response.headers["location"] == "/thank-you.html"
        message = primary.sent[0]
        text = message.get_body(preferencelist=("plain",)).get_content()
        assert "Glazing Options: Double, Low-E" in text
        part = next(message.iter_attachments())
        assert part.get_filename() == "plan.pdf"
        assert part.get_content() == PDF_BYTES
        assert _stored_files(upload_dir) == []

    def test_legacy_single_file_fields(self, client, primary):
        encoded = base64.b64encode(PDF_BYTES).decode()
        payload = _quote_fields(fileName="quote.pdf", fileData=encoded)

        response = client.post("/submit-quote-form", json=payload)

        assert response.status_code == 302
        assert next(primary.sent[0].iter_attachments()).get_filename() == "quote.pdf"

    def test_undecodable_attachment_is_rejected(self, client, primary, upload_dir):
        payload = _quote_fields(attachments=[{"filename": "plan.pdf", "content": "@@not base64@@"}])

        response = client.post("/submit-quote-form", json=payload)

        assert response.status_code == 400
        assert response.json()["message"] == UNDECODABLE_MESSAGE
        assert _stored_files(upload_dir) == []
        assert primary.sent == []

    def test_disallowed_inline_type_is_rejected(self, client, upload_dir):
        payload = _quote_fields(attachments=[{"filename": "run.sh", "content": "aGk="}])

        response = client.post("/submit-quote-form", json=payload)

        assert response.status_code == 400
        assert response.json()["message"] == INVALID_TYPE_MESSAGE
        assert _stored_files(upload_dir) == []

    def test_non_object_body_is_rejected(self, client):
        response = client.post("/submit-quote-form", json=["not", "an", "object"])

        assert response.status_code == 400

    def test_malformed_attachment_entry_is_rejected(self, client):
        payload = _quote_fields(attachments=[{"filename": "plan.pdf"}])

        response = client.post("/submit-quote-form", json=payload)

        assert response.status_code == 400


# ---------------------------------------------------------------------------
# Unexpected errors
# ---------------------------------------------------------------------------

class TestUnexpectedErrors:

    def test_unhandled_exception_returns_generic_500(self, app):
        class BrokenPipeline:
            async def deliver(self, submission, attachments=()):
                raise RuntimeError("database exploded")

        app.dependency_overrides[get_pipeline] = lambda: BrokenPipeline()
        client = TestClient(app, follow_redirects=False, raise_server_exceptions=False)

        response = client.post("/subscribe", json={"email": "reader@example.com"})

        assert response.status_code == 500
        assert response.json() == {
            "success": False,
            "message": "Something went wrong. Please try again later.",
        }
        assert "database exploded" not in response.text
