"""FastAPI dependencies shared by the form routers."""

from fastapi import Depends

from formrelay.config import Settings, get_settings
from formrelay.services.attachments import UploadStore
from formrelay.services.delivery import DeliveryPipeline
from formrelay.services.transport import SmtpTransport


def get_upload_store(settings: Settings = Depends(get_settings)) -> UploadStore:
    return UploadStore(settings.upload_dir)


def get_pipeline(settings: Settings = Depends(get_settings)) -> DeliveryPipeline:
    """Primary transport first, then the fallback; both from startup settings."""
    return DeliveryPipeline(
        sender=settings.sender,
        recipient=settings.recipient,
        transports=[
            SmtpTransport(settings.primary, timeout=settings.smtp_timeout),
            SmtpTransport(settings.fallback, timeout=settings.smtp_timeout),
        ],
    )
