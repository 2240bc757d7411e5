# main.py

import sys
import argparse
import logging
from src.config import AppConfig, build_transport_config
from src.email_sender import verify_transport
from src.errors import ConfigurationError, MailDeliveryError
from src.utils import setup_logging, mask_email


def check_configuration(config):
    """Builds the transport from the environment and logs in once. Returns an exit code."""
    if not config.email_to:
        logging.error("EMAIL_TO is not set; submissions would be rejected.")
        return 1
    try:
        transport_config = build_transport_config(config)
        logging.info(f"Verifying SMTP login for {mask_email(transport_config.user)}...")
        verify_transport(transport_config)
    except ConfigurationError as e:
        logging.error(f"Configuration error: {e}")
        return 1
    except MailDeliveryError as e:
        logging.error(f"Verification failed: {e.message}")
        return 1
    logging.info(f"Configuration OK. Submissions will be delivered to {config.email_to}.")
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(description="Contact form mail relay.")
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Interface for the development server."
    )
    parser.add_argument(
        "-p", "--port",
        type=int,
        default=5000,
        help="Port for the development server."
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Verify the SMTP configuration from the environment and exit without serving."
    )
    args = parser.parse_args(argv)

    config = AppConfig.from_env()
    setup_logging(config.debug)

    if args.check:
        return check_configuration(config)

    from app import app
    logging.info(f"Serving /api/contact on http://{args.host}:{args.port}")
    app.run(host=args.host, port=args.port, debug=config.debug)
    return 0


if __name__ == '__main__':
    sys.exit(main())
