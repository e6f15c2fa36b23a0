from email.message import EmailMessage
import logging

import aiosmtplib

from envie2sortir.config import settings

logger = logging.getLogger(__name__)


async def send_email_async(subject: str, email_to: str, body: str):
    message = EmailMessage()
    message["From"] = settings.MAIL_FROM
    message["To"] = email_to
    message["Subject"] = subject
    message.set_content(body)

    await aiosmtplib.send(
        message,
        hostname=settings.MAIL_SERVER,
        port=settings.MAIL_PORT,
        username=settings.MAIL_USERNAME or None,
        password=settings.MAIL_PASSWORD or None,
        start_tls=True,
    )
    logger.info(f"📧 Email '{subject}' envoyé à {email_to}")
