# src/config.py

import os
import re
import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from src.errors import ConfigurationError
from src.utils import is_truthy, mask_email, mask_secret

DEFAULT_SMTP_PORT = 587
IMPLICIT_TLS_PORT = 465
DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_MESSAGE_LENGTH = 10000
DEFAULT_SITE_NAME = "NodeWave"
DEFAULT_SITE_URL = "nodewave.com"
LEADING_INT = re.compile(r"\s*[+-]?\d+")


def _parse_int(value, default):
    """Reads leading digits like a browser's parseInt, so "465abc" is 465; 0 or no digits gives the default."""
    match = LEADING_INT.match(str(value)) if value is not None else None
    if not match:
        return default
    return int(match.group(0)) or default


def _parse_limit(value, default):
    """0 disables the limit; missing or negative values fall back to the default."""
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    return parsed if parsed >= 0 else default


def _parse_float(value, default):
    try:
        parsed = float(str(value).strip())
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


@dataclass(frozen=True)
class AppConfig:
    """Everything the contact endpoint reads from the environment."""
    email_service: Optional[str] = None
    email_host: Optional[str] = None
    email_port: Optional[str] = None
    email_user: Optional[str] = None
    email_pass: Optional[str] = None
    email_to: Optional[str] = None
    debug: bool = False
    site_name: str = DEFAULT_SITE_NAME
    site_url: str = DEFAULT_SITE_URL
    timeout: float = DEFAULT_TIMEOUT
    max_message_length: int = DEFAULT_MAX_MESSAGE_LENGTH

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AppConfig":
        env = os.environ if environ is None else environ
        # Empty strings count as unset, same as a missing variable.
        get = lambda key: (env.get(key) or "").strip() or None
        return cls(
            email_service=get("EMAIL_SERVICE"),
            email_host=get("EMAIL_HOST"),
            email_port=get("EMAIL_PORT"),
            email_user=get("EMAIL_USER"),
            email_pass=env.get("EMAIL_PASS") or None,
            email_to=get("EMAIL_TO"),
            debug=is_truthy(env.get("DEBUG_APP")),
            site_name=get("SITE_NAME") or DEFAULT_SITE_NAME,
            site_url=get("SITE_URL") or DEFAULT_SITE_URL,
            timeout=_parse_float(env.get("EMAIL_TIMEOUT"), DEFAULT_TIMEOUT),
            max_message_length=_parse_limit(env.get("MAX_MESSAGE_LENGTH"), DEFAULT_MAX_MESSAGE_LENGTH),
        )


@dataclass(frozen=True)
class TransportConfig:
    """SMTP settings in either provider mode (``service``) or custom mode (``host``/``port``)."""
    user: str
    password: str
    service: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = None
    secure: bool = False
    debug: bool = False
    timeout: float = DEFAULT_TIMEOUT

    @property
    def is_provider_mode(self):
        return self.service is not None


def build_transport_config(config: AppConfig) -> TransportConfig:
    """
    Turns the environment configuration into SMTP transport settings.
    No connection is opened here; see email_sender.create_transport.
    """
    logging.debug("Creating email transport configuration")
    logging.debug(
        f"Environment loaded: service={config.email_service} host={config.email_host} "
        f"port={config.email_port} user={mask_email(config.email_user)} "
        f"pass={mask_secret(config.email_pass)}"
    )

    if not config.email_user or not config.email_pass:
        logging.error(
            f"Missing required email credentials (user set: {bool(config.email_user)}, "
            f"pass set: {bool(config.email_pass)})"
        )
        raise ConfigurationError("EMAIL_USER and EMAIL_PASS environment variables are required")

    service = config.email_service
    if service and service.lower() != "smtp":
        logging.info(f"Using predefined email service: {service}")
        transport = TransportConfig(
            user=config.email_user,
            password=config.email_pass,
            service=service,
            debug=config.debug and service.lower() == "gmail",
            timeout=config.timeout,
        )
    else:
        if not config.email_host:
            logging.error("EMAIL_HOST required for custom SMTP but not provided")
            raise ConfigurationError("EMAIL_HOST is required when using custom SMTP")
        port = _parse_int(config.email_port, DEFAULT_SMTP_PORT)
        transport = TransportConfig(
            user=config.email_user,
            password=config.email_pass,
            host=config.email_host,
            port=port,
            secure=port == IMPLICIT_TLS_PORT,
            timeout=config.timeout,
        )
        logging.info(f"Using custom SMTP configuration: {transport.host}:{transport.port} secure={transport.secure}")

    return transport
