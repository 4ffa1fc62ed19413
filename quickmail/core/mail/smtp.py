"""SMTP mailer delivering composed messages through aiosmtplib."""

import asyncio
import time
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, formatdate, make_msgid
from typing import Optional

import aiosmtplib
from email_validator import EmailNotValidError, validate_email

from quickmail.core.models import ArchiveDescriptor, MessageFormat, User
from quickmail.core.services import Mailer
from quickmail.utils.config_manager import MailConfig
from quickmail.utils.errors import (
    InvalidEmailAddressError,
    NetworkTimeoutError,
    SMTPError,
)
from quickmail.utils.logging import get_logger

logger = get_logger(__name__)

IMPLICIT_TLS_PORT = 465

TRANSIENT_ERRORS = [
    421,  # Service not available, closing transmission channel
    450,  # Mailbox unavailable (e.g. busy)
    451,  # Local error in processing
    452,  # Insufficient system storage
]


def normalize_address(address: str) -> str:
    """Return the normalized form of an address.

    Raises:
        InvalidEmailAddressError: If the address is malformed
    """
    if not address or not address.strip():
        raise InvalidEmailAddressError("Email address is required")

    try:
        return validate_email(address, check_deliverability=False).normalized

    except EmailNotValidError as e:
        raise InvalidEmailAddressError(
            f"Invalid email address: {e}", details={"address": address}
        ) from e


def build_mime_message(
    to: User,
    sender: User,
    subject: str,
    plain_body: str,
    html_body: str,
    archive: Optional[ArchiveDescriptor] = None,
) -> MIMEMultipart:
    """Assemble the outgoing MIME tree.

    Recipients who prefer plain text get only the plain part.
    """
    if to.mail_format == MessageFormat.HTML.value and html_body:
        body = MIMEMultipart("alternative")
        body.attach(MIMEText(plain_body, "plain", "utf-8"))
        body.attach(MIMEText(html_body, "html", "utf-8"))
    else:
        body = MIMEText(plain_body, "plain", "utf-8")

    msg = MIMEMultipart("mixed")
    msg["From"] = formataddr((sender.fullname, normalize_address(sender.email)))
    msg["To"] = formataddr((to.fullname, normalize_address(to.email)))
    msg["Subject"] = subject
    msg["Date"] = formatdate(localtime=True)
    msg["Message-ID"] = make_msgid(domain="quickmail")
    msg.attach(body)

    if archive is not None:
        with open(archive.path, "rb") as f:
            part = MIMEApplication(f.read(), _subtype="zip")
        part.add_header("Content-Disposition", "attachment", filename=archive.name)
        msg.attach(part)

    return msg


class SMTPMailer(Mailer):
    """Mailer over one reusable SMTP connection."""

    def __init__(self, config: MailConfig, max_retries: int = 0):
        self.config = config
        self.max_retries = max_retries
        self._client: Optional[aiosmtplib.SMTP] = None
        self._lock = asyncio.Lock()
        self.emails_sent = 0
        self.send_failures = 0

    def _is_transient_error(self, error: Exception) -> bool:
        if isinstance(error, aiosmtplib.SMTPResponseException):
            return error.code in TRANSIENT_ERRORS

        if isinstance(error, (aiosmtplib.SMTPServerDisconnected, ConnectionError)):
            return True

        return False

    async def _connect(self) -> aiosmtplib.SMTP:
        implicit_tls = self.config.smtp_port == IMPLICIT_TLS_PORT

        logger.info(
            "Connecting to SMTP server",
            extra={
                "context": {
                    "server": self.config.smtp_server,
                    "port": self.config.smtp_port,
                    "ssl_mode": "implicit" if implicit_tls else "starttls",
                }
            },
        )

        client = aiosmtplib.SMTP(
            hostname=self.config.smtp_server,
            port=self.config.smtp_port,
            timeout=self.config.timeout,
            use_tls=implicit_tls,
            start_tls=False,
        )

        try:
            await client.connect()

            if self.config.use_tls and not implicit_tls:
                await client.starttls()

            if self.config.username:
                await client.login(self.config.username, self.config.password)

        except asyncio.TimeoutError as e:
            raise NetworkTimeoutError(
                "SMTP connection timed out",
                details={"server": self.config.smtp_server},
            ) from e
        except aiosmtplib.SMTPException as e:
            raise SMTPError(
                f"Failed to connect to SMTP server: {e}",
                details={"server": self.config.smtp_server},
            ) from e

        return client

    async def _ensure_connection(self) -> aiosmtplib.SMTP:
        async with self._lock:
            if self._client is not None and self._client.is_connected:
                try:
                    await self._client.noop()
                    return self._client
                except aiosmtplib.SMTPException as e:
                    logger.warning(f"SMTP connection lost, reconnecting: {e}")

            self._client = await self._connect()

        return self._client

    async def close(self) -> None:
        """Quit the SMTP session if one is open."""
        if self._client is None:
            return

        try:
            if self._client.is_connected:
                await self._client.quit()
        except aiosmtplib.SMTPException as e:
            logger.debug(f"Error closing SMTP connection: {e}")
        finally:
            self._client = None

    async def deliver(
        self,
        to: User,
        sender: User,
        subject: str,
        plain_body: str,
        html_body: str,
        archive: Optional[ArchiveDescriptor] = None,
    ) -> bool:
        """Send one message, retrying transient server errors.

        Raises:
            InvalidEmailAddressError: If either address is malformed
            NetworkTimeoutError: If sending times out
            SMTPError: If sending fails after retries
        """
        msg = build_mime_message(to, sender, subject, plain_body, html_body, archive)
        send_start = time.time()
        attempt = 0
        last_error = None

        while attempt <= self.max_retries:
            try:
                client = await self._ensure_connection()
                await asyncio.wait_for(client.send_message(msg), timeout=self.config.timeout)

                self.emails_sent += 1
                logger.info(
                    "Email sent successfully",
                    extra={
                        "context": {
                            "recipient_id": to.id,
                            "duration_seconds": round(time.time() - send_start, 2),
                            "attempts": attempt + 1,
                        }
                    },
                )
                return True

            except asyncio.TimeoutError as e:
                self.send_failures += 1
                raise NetworkTimeoutError(
                    "SMTP send operation timed out", details={"recipient_id": to.id}
                ) from e

            except (aiosmtplib.SMTPException, ConnectionError) as e:
                last_error = e
                attempt += 1

                if self._is_transient_error(e) and attempt <= self.max_retries:
                    delay = 2 ** (attempt - 1)
                    logger.warning(
                        "Transient SMTP error, retrying",
                        extra={"context": {"attempt": attempt, "retry_delay": delay}},
                    )
                    await asyncio.sleep(delay)
                    await self.close()
                    continue

                break

        self.send_failures += 1
        raise SMTPError(
            f"Failed to send email after {attempt} attempt(s): {last_error}",
            details={"recipient_id": to.id, "attempts": attempt},
        ) from last_error
