# src/validator.py

import re
import logging
from dataclasses import dataclass
from typing import Optional

from src.config import DEFAULT_MAX_MESSAGE_LENGTH
from src.errors import ValidationError
from src.utils import truncate

# U+FEFF is whitespace for browsers but not for Python's \s.
EMAIL_PATTERN = re.compile(r"^[^\s\ufeff@]+@[^\s\ufeff@]+\.[^\s\ufeff@]+$")
EDGE_WHITESPACE = re.compile(r"^[\s\ufeff]+|[\s\ufeff]+$")

REQUIRED_FIELDS = (
    ('firstName', 'First name is required'),
    ('lastName', 'Last name is required'),
    ('email', 'Valid email is required'),
    ('subject', 'Subject is required'),
    ('message', 'Message is required'),
)

OPTIONAL_STRING_FIELDS = (
    ('phone', 'Phone must be a valid string'),
    ('budget', 'Budget must be a valid string'),
)


def is_valid_format(email):
    """True when the trimmed address looks like local@domain.tld."""
    return isinstance(email, str) and EMAIL_PATTERN.match(_trim(email)) is not None


def _trim(value):
    return EDGE_WHITESPACE.sub('', value)


def _is_filled(value):
    return isinstance(value, str) and len(_trim(value)) > 0


def _is_supplied(value):
    """Truthiness as a browser form sends it: only None, False, 0 and '' count as absent."""
    if value is None or value is False or value == '':
        return False
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value == value and value != 0
    return True


@dataclass(frozen=True)
class ContactSubmission:
    first_name: str
    last_name: str
    email: str
    subject: str
    message: str
    phone: Optional[str] = None
    budget: Optional[str] = None
    newsletter: bool = False

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    @classmethod
    def from_body(cls, body, max_message_length=DEFAULT_MAX_MESSAGE_LENGTH):
        """
        Builds a submission from a parsed request body.
        Raises ValidationError with the first failing rule's message.
        """
        if not isinstance(body, dict):
            body = {}

        for field, reason in REQUIRED_FIELDS:
            value = body.get(field)
            ok = is_valid_format(value) if field == 'email' else _is_filled(value)
            if not ok:
                logging.debug(f"Validation failed: {field} ({truncate(value, 50)!r})")
                raise ValidationError(reason)

        # Optional fields are only checked when supplied with a truthy value.
        for field, reason in OPTIONAL_STRING_FIELDS:
            value = body.get(field)
            if _is_supplied(value) and not isinstance(value, str):
                logging.debug(f"Validation failed: {field} must be string, got {type(value).__name__}")
                raise ValidationError(reason)

        message = _trim(body['message'])
        if max_message_length and len(message) > max_message_length:
            logging.debug(f"Validation failed: message has {len(message)} characters")
            raise ValidationError('Message is too long')

        return cls(
            first_name=_trim(body['firstName']),
            last_name=_trim(body['lastName']),
            email=_trim(body['email']),
            subject=_trim(body['subject']),
            message=message,
            phone=body.get('phone') if _is_supplied(body.get('phone')) else None,
            budget=body.get('budget') if _is_supplied(body.get('budget')) else None,
            newsletter=_is_supplied(body.get('newsletter')),
        )


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    reason: Optional[str] = None
    submission: Optional[ContactSubmission] = None


def validate_submission(body, max_message_length=DEFAULT_MAX_MESSAGE_LENGTH):
    """Returns a ValidationResult instead of raising, for callers that branch on it."""
    keys = sorted(body.keys()) if isinstance(body, dict) else []
    logging.debug(f"Starting input validation, body keys: {keys}")
    try:
        submission = ContactSubmission.from_body(body, max_message_length=max_message_length)
    except ValidationError as e:
        return ValidationResult(valid=False, reason=str(e))

    logging.debug(
        f"Input validation successful: name={truncate(submission.full_name, 40)} "
        f"email={submission.email} subject={truncate(submission.subject, 50)} "
        f"phone={bool(submission.phone)} budget={bool(submission.budget)}"
    )
    return ValidationResult(valid=True, submission=submission)
