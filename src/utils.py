# src/utils.py

import logging

TRUTHY_FLAGS = {"true", "1"}


def is_truthy(value):
    """Interprets an environment flag such as DEBUG_APP."""
    return str(value or "").strip().lower() in TRUTHY_FLAGS


def setup_logging(debug=False):
    """Configures logging to print to console; DEBUG level when debugging is on."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
    )


def mask_email(address):
    """Hides most of the local part of an address, e.g. 'joh***@example.com'."""
    if not address:
        return 'undefined'
    local, _, domain = address.partition('@')
    return f"{local[:3]}***@{domain}"


def mask_secret(secret):
    """Shows only the last three characters of a password."""
    if not secret:
        return 'undefined'
    return f"***{secret[-3:]}"


def truncate(value, limit):
    if value is None:
        return None
    value = str(value)
    return value if len(value) <= limit else value[:limit] + '...'
