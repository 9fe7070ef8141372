"""
Attachment descriptors.

An uploaded file reaches the outbound message as exactly one of two shapes:

  PathAttachment    content lives in a temporary file under the managed
                    upload directory; the delivery pipeline deletes it.
  BufferAttachment  content is held in memory; nothing to clean up.

The ``kind`` tag lets the mail-building step handle both without caring
which upload mechanism produced them.
"""

from pathlib import Path
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


class PathAttachment(BaseModel):
    """An attachment backed by a temporary file the pipeline owns."""
    model_config = {"frozen": True}

    kind: Literal["path"] = "path"
    filename: str
    path: Path
    mime_type: Optional[str] = None


class BufferAttachment(BaseModel):
    """An attachment whose bytes are already in memory."""
    model_config = {"frozen": True}

    kind: Literal["buffer"] = "buffer"
    filename: str
    content: bytes
    mime_type: Optional[str] = None


Attachment = Annotated[
    Union[PathAttachment, BufferAttachment],
    Field(discriminator="kind"),
]
