"""
JSON request bodies.

The quote form can be posted as JSON with files carried inline as base64.
Two shapes are accepted:

    {"name": ..., "attachments": [{"filename": "plan.pdf", "content": "<b64>"}]}
    {"name": ..., "fileName": "plan.pdf", "fileData": "data:application/pdf;base64,<b64>"}

Every other top-level key is a form field and is kept in ``model_extra``.
"""

from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, Field


class InlineAttachmentPayload(BaseModel):
    model_config = {"extra": "ignore"}

    filename: str = Field(validation_alias=AliasChoices("filename", "fileName", "name"))
    content: str = Field(validation_alias=AliasChoices("content", "data", "fileData"))
    content_type: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("contentType", "content_type", "type"),
    )


class QuoteJsonPayload(BaseModel):
    model_config = {"extra": "allow"}

    attachments: list[InlineAttachmentPayload] = []
    file_name: Optional[str] = Field(default=None, validation_alias="fileName")
    file_data: Optional[str] = Field(default=None, validation_alias="fileData")

    def inline_attachments(self) -> list[InlineAttachmentPayload]:
        """All inline files, the legacy single-file pair last."""
        files = list(self.attachments)
        if self.file_data:
            files.append(InlineAttachmentPayload(
                filename=self.file_name or "attachment",
                content=self.file_data,
            ))
        return files

    def form_fields(self) -> dict[str, Any]:
        return dict(self.model_extra or {})
