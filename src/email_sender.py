# src/email_sender.py
import ssl, html, time, smtplib, logging
from dataclasses import dataclass, field
from datetime import datetime
from email.message import EmailMessage
from email.utils import formataddr, make_msgid
from typing import List, Optional

from src.config import TransportConfig
from src.errors import (
    ConfigurationError, MailDeliveryError, MailAuthenticationError,
    MailConnectionError, MailEnvelopeError, MailServerError,
)
from src.utils import mask_email

# Presets for EMAIL_SERVICE, keyed by lower-cased service name: (host, port, implicit TLS)
WELL_KNOWN_SERVICES = {
    'gmail': ('smtp.gmail.com', 465, True),
    'googlemail': ('smtp.gmail.com', 465, True),
    'outlook': ('smtp-mail.outlook.com', 587, False),
    'hotmail': ('smtp-mail.outlook.com', 587, False),
    'outlook365': ('smtp.office365.com', 587, False),
    'office365': ('smtp.office365.com', 587, False),
    'yahoo': ('smtp.mail.yahoo.com', 465, True),
    'icloud': ('smtp.mail.me.com', 587, False),
    'zoho': ('smtp.zoho.com', 465, True),
    'sendgrid': ('smtp.sendgrid.net', 587, False),
    'mailgun': ('smtp.mailgun.org', 465, True),
    'mailjet': ('in.mailjet.com', 587, False),
    'postmark': ('smtp.postmarkapp.com', 2525, False),
    'sendinblue': ('smtp-relay.brevo.com', 587, False),
    'brevo': ('smtp-relay.brevo.com', 587, False),
    'fastmail': ('smtp.fastmail.com', 465, True),
}


class _ReceiptMixin:
    """Keeps the server's reply to DATA so it can be reported in the delivery receipt."""
    last_response = None

    def data(self, msg):
        code, resp = super().data(msg)
        self.last_response = f"{code} {resp.decode(errors='ignore') if isinstance(resp, bytes) else resp}"
        return code, resp


class SMTPClient(_ReceiptMixin, smtplib.SMTP):
    pass


class SMTPSSLClient(_ReceiptMixin, smtplib.SMTP_SSL):
    pass


@dataclass
class OutboundMessage:
    from_addr: str
    to: str
    subject: str
    text: str
    html: str
    reply_to: str
    message_id: str = field(default_factory=make_msgid)

    def to_email_message(self):
        msg = EmailMessage()
        msg['From'] = self.from_addr
        msg['To'] = self.to
        msg['Subject'] = self.subject
        msg['Reply-To'] = self.reply_to
        msg['Message-ID'] = self.message_id
        msg.set_content(self.text)
        msg.add_alternative(self.html, subtype='html')
        return msg


@dataclass
class DeliveryReceipt:
    message_id: str
    accepted: List[str]
    rejected: List[str]
    response: Optional[str] = None
    duration_ms: int = 0

    def as_debug(self):
        return {
            'messageId': self.message_id,
            'accepted': self.accepted,
            'rejected': self.rejected,
            'response': self.response,
        }


def resolve_endpoint(transport_config):
    """Returns (host, port, implicit_tls) for either transport mode."""
    if transport_config.is_provider_mode:
        preset = WELL_KNOWN_SERVICES.get(transport_config.service.lower())
        if preset is None:
            raise ConfigurationError(f"Unknown EMAIL_SERVICE: {transport_config.service}")
        return preset
    return transport_config.host, transport_config.port, transport_config.secure


def create_transport(transport_config: TransportConfig):
    """
    Opens an authenticated SMTP connection.
    Port 465 style endpoints use implicit TLS; others upgrade with STARTTLS when offered.
    """
    host, port, implicit_tls = resolve_endpoint(transport_config)
    context = ssl.create_default_context()
    logging.debug(f"Connecting to {host}:{port} (implicit TLS: {implicit_tls}, timeout: {transport_config.timeout}s)")

    if implicit_tls:
        server = SMTPSSLClient(host, port, timeout=transport_config.timeout, context=context)
    else:
        server = SMTPClient(host, port, timeout=transport_config.timeout)
    try:
        if transport_config.debug:
            server.set_debuglevel(1)
        if not implicit_tls:
            server.ehlo()
            if server.has_extn('starttls'):
                server.starttls(context=context)
                server.ehlo()
        server.login(transport_config.user, transport_config.password)
    except Exception:
        server.close()
        raise
    return server


def classify_smtp_error(error):
    """Maps an smtplib/socket failure onto one of the MailDeliveryError categories."""
    if isinstance(error, MailDeliveryError):
        return error

    smtp_code = getattr(error, 'smtp_code', None)
    smtp_error = getattr(error, 'smtp_error', None)
    if isinstance(smtp_error, bytes):
        smtp_error = smtp_error.decode(errors='ignore')
    details = {'original': error, 'smtp_code': smtp_code, 'response': smtp_error}

    if isinstance(error, smtplib.SMTPAuthenticationError):
        return MailAuthenticationError(command='AUTH', **details)
    if isinstance(error, smtplib.SMTPSenderRefused):
        return MailEnvelopeError(command='MAIL FROM', **details)
    if isinstance(error, smtplib.SMTPRecipientsRefused):
        refused = {rcpt: f"{code} {resp.decode(errors='ignore') if isinstance(resp, bytes) else resp}"
                   for rcpt, (code, resp) in error.recipients.items()}
        return MailEnvelopeError(original=error, command='RCPT TO', response=refused)
    if isinstance(error, (smtplib.SMTPConnectError, smtplib.SMTPServerDisconnected)):
        return MailConnectionError(command='CONN', **details)
    if isinstance(error, smtplib.SMTPResponseException):
        return MailServerError(error.smtp_code, original=error, response=smtp_error)
    if isinstance(error, smtplib.SMTPException):
        return MailDeliveryError(original=error)
    # smtplib.SMTPException subclasses OSError, so plain socket failures come last.
    if isinstance(error, OSError):
        return MailConnectionError(original=error, command='CONN')
    return MailDeliveryError(original=error)


def split_addresses(value):
    return [addr.strip() for addr in value.split(',') if addr.strip()]


def _header_safe(value):
    return ' '.join(value.splitlines())


def _timestamp():
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


def compose_message(submission, sender_address, recipient, site_name, origin, submitted_at=None):
    """
    Builds the notification email. The text and HTML bodies carry the same fields;
    every value is HTML-escaped and only the message keeps its line breaks as <br>.
    """
    submitted_at = submitted_at or _timestamp()
    full_name = submission.full_name

    text_lines = [
        "New Contact Form Submission",
        "",
        f"Name: {full_name}",
        f"Email: {submission.email}",
    ]
    if submission.phone:
        text_lines.append(f"Phone: {submission.phone}")
    text_lines.append(f"Subject: {submission.subject}")
    if submission.budget:
        text_lines.append(f"Budget Range: {submission.budget}")
    if submission.newsletter:
        text_lines.append("Newsletter Subscription: Yes")
    text_lines += ["", "Message:", submission.message, "", f"Timestamp: {submitted_at}", ""]

    e = lambda value: html.escape(value, quote=True)
    rows = [
        f'<p><strong>Name:</strong> {e(full_name)}</p>',
        f'<p><strong>Email:</strong> <a href="mailto:{e(submission.email)}">{e(submission.email)}</a></p>',
    ]
    if submission.phone:
        rows.append(f'<p><strong>Phone:</strong> <a href="tel:{e(submission.phone)}">{e(submission.phone)}</a></p>')
    rows.append(f'<p><strong>Subject:</strong> {e(submission.subject)}</p>')
    if submission.budget:
        rows.append(f'<p><strong>Budget Range:</strong> {e(submission.budget)}</p>')
    if submission.newsletter:
        rows.append('<p><strong>Newsletter:</strong> <span style="color: #28a745;">&#10003; Subscribed</span></p>')
    message_html = e(submission.message).replace('\r\n', '\n').replace('\n', '<br>')

    html_body = f"""<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #333; border-bottom: 2px solid #007bff; padding-bottom: 10px;">New Contact Form Submission</h2>
  <div style="background-color: #f8f9fa; padding: 20px; border-radius: 5px; margin: 20px 0;">
    {''.join(rows)}
  </div>
  <div style="margin: 20px 0;">
    <h3 style="color: #333;">Message:</h3>
    <p style="background-color: #ffffff; padding: 15px; border: 1px solid #dee2e6; border-radius: 5px; line-height: 1.6;">{message_html}</p>
  </div>
  <div style="margin: 20px 0;">
    <p style="color: #6c757d; font-size: 14px;"><strong>Submitted:</strong> {e(submitted_at)}</p>
  </div>
  <hr style="margin: 30px 0; border: none; border-top: 1px solid #dee2e6;">
  <p style="color: #6c757d; font-size: 12px;">This message was sent from the {e(site_name)} contact form at {e(origin)}.</p>
</div>"""

    return OutboundMessage(
        from_addr=formataddr((_header_safe(full_name), sender_address)),
        to=recipient,
        subject=f"{site_name} Contact: {_header_safe(submission.subject)}",
        text="\n".join(text_lines),
        html=html_body,
        reply_to=submission.email,
    )


def send_contact_email(submission, transport_config, recipient, site_name='NodeWave', origin='nodewave.com',
                       transport_factory=create_transport):
    """
    Relays one submission to the operator's inbox. Sends exactly once, no retry.
    Returns a DeliveryReceipt; raises ConfigurationError or a MailDeliveryError category.
    """
    if not recipient:
        logging.error("EMAIL_TO environment variable not set")
        raise ConfigurationError("EMAIL_TO not set")

    outbound = compose_message(submission, transport_config.user, recipient, site_name, origin)
    logging.debug(
        f"Email prepared: to={outbound.to} subject={outbound.subject!r} reply_to={outbound.reply_to} "
        f"text={len(outbound.text)} chars html={len(outbound.html)} chars"
    )

    start_time = time.time()
    try:
        server = transport_factory(transport_config)
        try:
            refused = server.send_message(outbound.to_email_message()) or {}
            response = getattr(server, 'last_response', None)
        finally:
            try:
                server.quit()
            except (smtplib.SMTPException, OSError):
                server.close()
    except ConfigurationError:
        raise
    except Exception as e:
        error = classify_smtp_error(e)
        logging.error(f"Email sending failed via {mask_email(transport_config.user)}: {error.message} ({e!r})")
        raise error from e

    receipt = DeliveryReceipt(
        message_id=outbound.message_id,
        accepted=[addr for addr in split_addresses(outbound.to) if addr not in refused],
        rejected=list(refused),
        response=response,
        duration_ms=int((time.time() - start_time) * 1000),
    )
    logging.info(f"Email sent successfully in {receipt.duration_ms}ms, message id {receipt.message_id}")
    return receipt


def verify_transport(transport_config, transport_factory=create_transport):
    """Connects and authenticates without sending anything. Raises like send_contact_email."""
    try:
        server = transport_factory(transport_config)
        server.noop()
        server.quit()
    except ConfigurationError:
        raise
    except Exception as e:
        raise classify_smtp_error(e) from e
    logging.info("Transport verification successful")
