"""
Delivery pipeline.

    render -> build message -> primary transport
                                  | failed
                                  v
                              fallback transport -> Delivered | Failed

Temporary upload files are released exactly once when the pipeline reaches
Delivered or Failed, on every exit path. Attachment reads and deletes run in
a worker thread. A failed delivery is a normal outcome, not an exception:
``deliver`` returns DeliveryOutcome(delivered=False) and the caller decides
what the submitter sees.
"""

import asyncio
import logging
from typing import Sequence

from formrelay.models.attachment import Attachment
from formrelay.models.submission import DeliveryOutcome, OutboundMessage, Submission
from formrelay.services.attachments import release_attachments
from formrelay.services.renderer import render, render_subject
from formrelay.services.transport import Transport, build_email_message

logger = logging.getLogger(__name__)


class DeliveryPipeline:
    """
    Sends submissions to one fixed recipient.

    ``transports`` are tried in order, each at most once: in production that
    is (primary, fallback). They run sequentially; the first success wins.
    """

    def __init__(self, sender: str, recipient: str, transports: Sequence[Transport]):
        if not transports:
            raise ValueError("DeliveryPipeline needs at least one transport")
        self.sender = sender
        self.recipient = recipient
        self.transports = list(transports)

    def build_outbound(self, submission: Submission, attachments: Sequence[Attachment]) -> OutboundMessage:
        text, html = render(submission)
        return OutboundMessage(
            sender=self.sender,
            recipient=self.recipient,
            reply_to=submission.email or None,
            subject=render_subject(submission),
            text=text,
            html=html,
            attachments=list(attachments),
        )

    async def deliver(self, submission: Submission, attachments: Sequence[Attachment] = ()) -> DeliveryOutcome:
        """
        Render, send with fallback, release temporary files.

        Never raises for a delivery failure; the last error is carried in the
        outcome for logging.
        """
        try:
            try:
                outbound = self.build_outbound(submission, attachments)
                message = await asyncio.to_thread(build_email_message, outbound)
            except OSError as exc:
                logger.error("Could not build %s message: %s", submission.form.name, exc)
                return DeliveryOutcome(delivered=False, error=str(exc))

            last_error = None
            for attempt, transport in enumerate(self.transports):
                try:
                    await transport.send(message)
                except Exception as exc:
                    last_error = exc
                    logger.error(
                        "%s email configuration failed for %s submission: %s",
                        transport.name.capitalize(), submission.form.name, exc,
                    )
                    continue

                used_fallback = attempt > 0
                if used_fallback:
                    logger.warning(
                        "Message %s sent with %s configuration",
                        message["Message-ID"], transport.name,
                    )
                else:
                    logger.info("Message sent: %s", message["Message-ID"])
                return DeliveryOutcome(delivered=True, used_fallback=used_fallback)

            logger.error(
                "All email sending attempts failed for %s submission: %s",
                submission.form.name, last_error,
            )
            return DeliveryOutcome(
                delivered=False,
                error=str(last_error) if last_error else None,
            )
        finally:
            await asyncio.to_thread(release_attachments, attachments)
