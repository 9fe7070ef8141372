#!/usr/bin/env python3
"""
Dev helper: post a test form submission to a running formrelay server.

Builds a contact, subscribe or quote submission, optionally attaches a file
(a small sample PDF is generated when none is given) and prints where the
server redirected.

Usage
-----
# Contact form against localhost:3000
python scripts/send_test_submission.py contact

# Quote form with a real attachment
python scripts/send_test_submission.py quote --file plans/kitchen.pdf

# Quote form as JSON with the file inline as base64
python scripts/send_test_submission.py quote --json

# Newsletter sign-up with a custom address
python scripts/send_test_submission.py subscribe --email reader@example.com

# Show what would be sent
python scripts/send_test_submission.py quote --json --dry-run

Environment / .env
------------------
PORT   Port of the local server when --url is not given (default: 3000).

Requires httpx: ``pip install -e ".[dev]"``.
"""

import argparse
import base64
import json
import os
import sys
import textwrap
from pathlib import Path

import httpx
from dotenv import load_dotenv

_SAMPLE_PDF = (
    b"%PDF-1.4\n1 0 obj<</Type/Catalog/Pages 2 0 R>>endobj\n"
    b"2 0 obj<</Type/Pages/Kids[]/Count 0>>endobj\ntrailer<</Root 1 0 R>>\n%%EOF\n"
)

_ENDPOINTS = {
    "contact": "/submit-contact-form",
    "subscribe": "/subscribe",
    "quote": "/submit-quote-form",
}


# ---------------------------------------------------------------------------
# Field builders
# ---------------------------------------------------------------------------

def _contact_fields(args) -> dict:
    return {
        "Name": args.name,
        "Email": args.email,
        "Subject": args.phone,
        "Message": "Test message from send_test_submission.py\nSecond line.",
    }


def _quote_fields(args) -> dict:
    return {
        "name": args.name,
        "email": args.email,
        "phone": args.phone,
        "city": "Springfield",
        "address": "742 Evergreen Terrace",
        "serviceType": "Window Replacement",
        "propertyType": "Detached",
        "projectType": "Renovation",
        "windowType": ["Casement", "Awning"],
        "glazing": ["Double", "Low-E"],
        "numWindows": "8",
        "budget": "$10,000 - $15,000",
        "contactMethod": "Email",
        "bestTime": "Morning",
        "comments": "Sent by send_test_submission.py",
    }


def _load_attachment(path_arg):
    if path_arg is None:
        return "sample.pdf", _SAMPLE_PDF, "application/pdf"
    path = Path(path_arg)
    if not path.exists():
        raise FileNotFoundError(path)
    content_type = {
        ".pdf": "application/pdf",
        ".png": "image/png",
        ".jpg": "image/jpeg",
        ".jpeg": "image/jpeg",
        ".doc": "application/msword",
        ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    }.get(path.suffix.lower(), "application/octet-stream")
    return path.name, path.read_bytes(), content_type


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main() -> int:
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")

    parser = argparse.ArgumentParser(
        prog="send_test_submission.py",
        description=textwrap.dedent("""\
            Post a test submission to a formrelay server and report the
            redirect (or error body) it answers with.
        """),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("form", choices=list(_ENDPOINTS), help="Which form to submit")
    parser.add_argument(
        "--url",
        default=f"http://localhost:{os.getenv('PORT', '3000')}",
        help="Server base URL (default: http://localhost:$PORT)",
    )
    parser.add_argument("--name", default="Test Submitter")
    parser.add_argument("--email", default="submitter@example.com")
    parser.add_argument("--phone", default="+1 555-123-4567")
    parser.add_argument(
        "--file",
        default=None,
        metavar="PATH",
        help="File to attach (contact and quote only). A sample PDF is used if omitted.",
    )
    parser.add_argument("--no-file", action="store_true", help="Send without an attachment.")
    parser.add_argument(
        "--json",
        action="store_true",
        help="Send the quote form as JSON with the file inline as base64.",
    )
    parser.add_argument("--dry-run", action="store_true", help="Print the request without sending it.")

    args = parser.parse_args()
    endpoint = f"{args.url.rstrip('/')}{_ENDPOINTS[args.form]}"

    attachment = None
    if args.form != "subscribe" and not args.no_file:
        try:
            attachment = _load_attachment(args.file)
        except FileNotFoundError as exc:
            print(f"ERROR: File not found: {exc}", file=sys.stderr)
            return 1

    request_kwargs: dict = {}
    if args.form == "subscribe":
        request_kwargs["json"] = {"email": args.email}
    elif args.form == "quote" and args.json:
        payload = _quote_fields(args)
        if attachment:
            filename, content, content_type = attachment
            payload["attachments"] = [{
                "filename": filename,
                "content": base64.b64encode(content).decode(),
                "contentType": content_type,
            }]
        request_kwargs["json"] = payload
    else:
        fields = _contact_fields(args) if args.form == "contact" else _quote_fields(args)
        request_kwargs["data"] = fields
        if attachment:
            file_field = "file" if args.form == "contact" else "attachments"
            request_kwargs["files"] = [(file_field, attachment)]

    print(f"Endpoint  : {endpoint}")
    print(f"Form      : {args.form}{' (JSON)' if 'json' in request_kwargs else ''}")
    print(f"Attachment: {attachment[0] if attachment else '-'}")

    if args.dry_run:
        display = dict(request_kwargs.get("json") or request_kwargs.get("data") or {})
        for item in display.get("attachments", []):
            item["content"] = f"<base64-encoded, {len(attachment[1])} bytes>"
        print("\n[DRY RUN] Fields:")
        print(json.dumps(display, indent=2))
        return 0

    try:
        response = httpx.post(endpoint, follow_redirects=False, timeout=60, **request_kwargs)
    except httpx.ConnectError:
        print(
            f"\nERROR: Could not connect to {endpoint}\n"
            "Is the server running? Start it with:\n"
            "  formrelay",
            file=sys.stderr,
        )
        return 1

    location = response.headers.get("location")
    if response.status_code == 302:
        ok = location == "/thank-you.html"
        print(f"\n[{'OK' if ok else 'FAIL'}] HTTP 302 -> {location}")
        return 0 if ok else 1

    print(f"\n[FAIL] HTTP {response.status_code}")
    try:
        print(json.dumps(response.json(), indent=2))
    except ValueError:
        print(response.text)
    return 1


if __name__ == "__main__":
    sys.exit(main())
