"""
Submission and delivery models.

Submission       canonical record built from one form post (never persisted)
OutboundMessage  the email about to be sent, independent of the SMTP library
DeliveryOutcome  what happened to it
"""

from dataclasses import dataclass, field
from typing import Optional

from pydantic import BaseModel

from formrelay.models.attachment import Attachment
from formrelay.models.forms import FormSpec


@dataclass(frozen=True)
class Submission:
    """
    Display-ready field values for one form post.

    ``fields`` already holds placeholders for anything the submitter left
    out; ``missing`` remembers which keys those were so the subject line can
    tell a real service type from "Not specified".
    """
    form: FormSpec
    fields: dict[str, str]
    missing: frozenset[str] = field(default_factory=frozenset)

    @property
    def name(self) -> str:
        return self.fields.get("name", "")

    @property
    def email(self) -> str:
        return self.fields.get("email", "")

    def provided(self, key: str) -> Optional[str]:
        """Return the submitted value for ``key``, or None if it was absent."""
        if key in self.missing:
            return None
        return self.fields.get(key)


class OutboundMessage(BaseModel):
    sender: str
    recipient: str
    reply_to: Optional[str] = None
    subject: str
    text: str
    html: str
    attachments: list[Attachment] = []


class DeliveryOutcome(BaseModel):
    """
    Result of one delivery attempt sequence.

    ``error`` carries the last transport error for server-side logging; it is
    never shown to the submitter.
    """
    delivered: bool
    used_fallback: bool = False
    error: Optional[str] = None
