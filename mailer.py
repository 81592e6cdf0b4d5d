"""
Invoice delivery over SMTP.

SMTP failures are sorted into the errors.DeliveryError subclasses so the
client gets a message that says what went wrong. Nothing is retried.
"""

import logging
import smtplib
from email.message import EmailMessage
from typing import Callable
from xml.sax.saxutils import escape

import errors
from invoice import invoice_filename, issued_at, DATE_FORMAT
from schemas import Order
from settings import Settings

logger = logging.getLogger(__name__)

SENDER_NAME = "Adventure WorkCycle"


def classify_smtp_error(exc: Exception) -> errors.DeliveryError:
    # SMTPException subclasses OSError, so the SMTP cases go first
    if isinstance(exc, smtplib.SMTPAuthenticationError):
        return errors.AuthFailure()
    if isinstance(exc, smtplib.SMTPRecipientsRefused):
        return errors.InvalidRecipient()
    if isinstance(exc, (smtplib.SMTPConnectError, smtplib.SMTPServerDisconnected)):
        return errors.ConnectionFailure()
    if isinstance(exc, smtplib.SMTPException):
        return errors.DeliveryFailure()
    if isinstance(exc, OSError):
        return errors.ConnectionFailure()
    if isinstance(exc, ValueError):
        # Raised while setting headers, e.g. a recipient containing CR/LF
        return errors.InvalidRecipient()
    return errors.DeliveryFailure()


def _body_html(order: Order) -> str:
    name = escape(order.address.name) if order.address and order.address.name else "Customer"
    return f"""
        <h2>Thank you for your purchase!</h2>
        <p>Dear {name},</p>
        <p>Please find attached the electronic invoice for your purchase at {SENDER_NAME}.</p>
        <p><strong>Order number:</strong> {escape(str(order.id))}</p>
        <p><strong>Date:</strong> {issued_at(order).strftime(DATE_FORMAT)}</p>
        <p><strong>Total:</strong> ${order.total:.2f}</p>
        <p>This invoice complies with the electronic invoicing regulations of El Salvador.</p>
        <br>
        <p>Kind regards,<br>The {SENDER_NAME} team</p>
    """


class Mailer:

    def __init__(self, settings: Settings, smtp_factory: Callable[..., smtplib.SMTP] = smtplib.SMTP):
        self.settings = settings
        self.smtp_factory = smtp_factory

    def ensure_configured(self) -> None:
        if not self.settings.mail_configured:
            raise errors.Unconfigured()

    def build_message(self, order: Order, pdf: bytes) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.settings.email_user
        message["To"] = order.address.email
        message["Subject"] = f"Electronic Invoice - {SENDER_NAME} - Order {order.id}"
        message.set_content(f"Invoice for order {order.id}. Total: ${order.total:.2f}")
        message.add_alternative(_body_html(order), subtype="html")
        message.add_attachment(pdf, maintype="application", subtype="pdf", filename=invoice_filename(order))
        return message

    def send_invoice(self, order: Order, pdf: bytes) -> None:
        self.ensure_configured()
        s = self.settings
        try:
            message = self.build_message(order, pdf)
            with self.smtp_factory(s.email_host, s.email_port, timeout=s.email_timeout) as server:
                server.starttls()
                server.login(s.email_user, s.email_pass)
                server.send_message(message)
        except (smtplib.SMTPException, OSError, ValueError) as exc:
            error = classify_smtp_error(exc)
            logger.error("Sending invoice for order %s failed (%s): %s", order.id, type(error).__name__, exc)
            raise error from exc
        logger.info("Invoice for order %s sent to %s", order.id, order.address.email)
