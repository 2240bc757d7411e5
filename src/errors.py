# src/errors.py


class ContactError(Exception):
    """Base class for every error raised while handling a contact submission."""


class ValidationError(ContactError):
    """The submitted form is missing a field or has a field of the wrong type."""


class ConfigurationError(ContactError):
    """Required environment configuration is missing or unusable."""


class MailDeliveryError(ContactError):
    """The mail gateway could not accept the message.

    ``message`` is safe to show to the caller; the remaining attributes are
    diagnostics that are only echoed back when debugging is enabled.
    """

    default_message = 'Failed to send email'
    code = None

    def __init__(self, message=None, *, original=None, smtp_code=None, command=None, response=None):
        self.message = message or self.default_message
        self.original = original
        self.smtp_code = smtp_code
        self.command = command
        self.response = response
        super().__init__(self.message)

    def debug_details(self):
        return {
            'originalError': str(self.original) if self.original is not None else self.message,
            'code': self.code,
            'smtpCode': self.smtp_code,
            'command': self.command,
            'response': self.response,
        }


class MailAuthenticationError(MailDeliveryError):
    default_message = 'Email authentication failed - check your credentials'
    code = 'EAUTH'


class MailConnectionError(MailDeliveryError):
    default_message = 'Failed to connect to email server - check your network'
    code = 'ECONNECTION'


class MailEnvelopeError(MailDeliveryError):
    default_message = 'Invalid email addresses'
    code = 'EENVELOPE'


class MailServerError(MailDeliveryError):
    code = 'EPROTOCOL'

    def __init__(self, smtp_code, **kwargs):
        kwargs.setdefault('smtp_code', smtp_code)
        super().__init__(f'Email server error: {smtp_code}', **kwargs)
