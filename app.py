# app.py
import os
import logging
import traceback
from flask import Flask, request, jsonify
from src.config import AppConfig, build_transport_config
from src.email_sender import send_contact_email, create_transport
from src.errors import ConfigurationError, MailDeliveryError
from src.utils import setup_logging, is_truthy, truncate
from src.validator import validate_submission

app = Flask(__name__)

setup_logging(is_truthy(os.environ.get('DEBUG_APP')))

# Tests swap these out; the environment is re-read on every request.
app.config.setdefault('CONTACT_CONFIG_LOADER', AppConfig.from_env)
app.config.setdefault('TRANSPORT_FACTORY', create_transport)

CORS_HEADERS = {
    'Access-Control-Allow-Credentials': 'true',
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Methods': 'GET,OPTIONS,PATCH,DELETE,POST,PUT',
    'Access-Control-Allow-Headers': (
        'X-CSRF-Token, X-Requested-With, Accept, Accept-Version, Content-Length, '
        'Content-MD5, Content-Type, Date, X-Api-Version'
    ),
}

ALL_METHODS = ['GET', 'HEAD', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS']
METHOD_NOT_ALLOWED = 'Method not allowed. Only POST requests are accepted.'


@app.after_request
def add_cors_headers(response):
    response.headers.update(CORS_HEADERS)
    return response


def _failure(status, error, debug=None):
    body = {'success': False, 'error': error}
    if debug is not None:
        body['debug'] = debug
    return jsonify(body), status


@app.errorhandler(405)
def method_not_allowed(error):
    # Verbs outside ALL_METHODS never reach the view.
    logging.warning(f"Method not allowed: {request.method}")
    return _failure(405, METHOD_NOT_ALLOWED)


@app.route('/api/contact', methods=ALL_METHODS)
def contact():
    """
    Relays a contact form submission to the operator's inbox.
    Every branch ends in exactly one JSON response (or an empty 200 for preflight).
    """
    logging.debug(
        f"API request received: method={request.method} origin={request.headers.get('Origin')} "
        f"agent={truncate(request.headers.get('User-Agent'), 50)} type={request.content_type}"
    )

    if request.method == 'OPTIONS':
        logging.debug("Handling CORS preflight request")
        return '', 200

    if request.method != 'POST':
        logging.warning(f"Method not allowed: {request.method}")
        return _failure(405, METHOD_NOT_ALLOWED)

    config = app.config['CONTACT_CONFIG_LOADER']()
    body = request.get_json(silent=True)

    try:
        validation = validate_submission(body, max_message_length=config.max_message_length)
        if not validation.valid:
            logging.warning(f"Input validation failed: {validation.reason}")
            return _failure(400, validation.reason)
        submission = validation.submission

        if not config.email_to:
            logging.error("EMAIL_TO environment variable not set")
            return _failure(500, 'Server configuration error: EMAIL_TO not set')

        logging.info(
            f"Processing email send request from {submission.email} "
            f"(newsletter: {submission.newsletter}, message length: {len(submission.message)})"
        )
        transport_config = build_transport_config(config)

        receipt = send_contact_email(
            submission,
            transport_config,
            config.email_to,
            site_name=config.site_name,
            origin=request.headers.get('Origin') or config.site_url,
            transport_factory=app.config['TRANSPORT_FACTORY'],
        )
        logging.debug(f"Send completed in {receipt.duration_ms}ms: {receipt.as_debug()}")

        body = {'success': True, 'message': 'Email sent successfully'}
        if config.debug:
            body['debug'] = receipt.as_debug()
        return jsonify(body), 200

    except ConfigurationError as e:
        logging.error(f"Server configuration error: {e}")
        return _failure(500, f'Server configuration error: {e}')
    except MailDeliveryError as e:
        debug = None
        if config.debug:
            debug = e.debug_details()
            debug['stack'] = traceback.format_exc()
        return _failure(500, e.message, debug)
    except Exception as e:
        logging.exception(f"Unexpected failure while sending email: {e}")
        debug = {'originalError': str(e), 'stack': traceback.format_exc()} if config.debug else None
        return _failure(500, 'Failed to send email', debug)

# Served by a WSGI server (Gunicorn, a serverless runtime);
# `python -m src.main` runs the development server.
