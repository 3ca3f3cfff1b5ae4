"""
Structured logging with PII masking.

``setup_logging`` installs the JSON formatter used by the API and the
Celery workers; ``StructuredLoggingMiddleware`` logs one line per request
start and completion. Applicant emails and operator credentials never reach
the log stream.
"""

import logging
import time
import json
import re
import uuid
from typing import Callable, Any
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
import traceback

logger = logging.getLogger(__name__)


# Field names whose values are always redacted
SENSITIVE_FIELD_PATTERNS = [
    re.compile(r'password', re.IGNORECASE),
    re.compile(r'token', re.IGNORECASE),
    re.compile(r'api[_-]?key', re.IGNORECASE),
    re.compile(r'secret', re.IGNORECASE),
    re.compile(r'authorization', re.IGNORECASE),
    re.compile(r'cookie', re.IGNORECASE),
    re.compile(r'session', re.IGNORECASE),
]

# PII found inside otherwise loggable values
PII_PATTERNS = [
    (re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b'), '[EMAIL]'),
    (re.compile(r'\b\d{3}[-.]?\d{3}[-.]?\d{4}\b'), '[PHONE]'),
    (re.compile(r'\b\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}\b'), '[IP]'),
]

# LogRecord attributes copied into the JSON payload when set via ``extra``
CONTEXT_FIELDS = ('request_id', 'actor_id', 'task_id')

SKIP_PATHS = ('/health', '/ready', '/docs', '/openapi.json')


def is_sensitive_field(field_name: str) -> bool:
    return any(pattern.search(field_name) for pattern in SENSITIVE_FIELD_PATTERNS)


def mask_pii(value: str) -> str:
    for pattern, replacement in PII_PATTERNS:
        value = pattern.sub(replacement, value)
    return value


def mask_sensitive_data(data: Any, depth: int = 0, max_depth: int = 10) -> Any:
    """
    Recursively mask sensitive data in dictionaries and lists.

    Values under sensitive keys are replaced outright; PII inside any other
    string is substituted with a placeholder.
    """
    if depth > max_depth:
        return "[MAX_DEPTH_EXCEEDED]"

    if isinstance(data, dict):
        return {
            key: "[REDACTED]" if is_sensitive_field(str(key))
            else mask_sensitive_data(value, depth + 1, max_depth)
            for key, value in data.items()
        }

    if isinstance(data, list):
        return [mask_sensitive_data(item, depth + 1, max_depth) for item in data]

    if isinstance(data, str):
        return mask_pii(data)

    return data


def mask_headers(headers: dict) -> dict:
    """Mask sensitive headers, keeping the auth scheme for debugging."""
    masked = {}
    for key, value in headers.items():
        key_lower = key.lower()
        if not is_sensitive_field(key_lower):
            masked[key] = value
        elif key_lower == 'authorization' and ' ' in value:
            masked[key] = f"{value.split(' ', 1)[0]} [REDACTED]"
        else:
            masked[key] = "[REDACTED]"
    return masked


def should_log_request(path: str) -> bool:
    return not any(path.startswith(skip) for skip in SKIP_PATHS)


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """
    Request logging middleware.

    Tags each request with an ``x-request-id`` (taken from the request or
    generated) and logs method, path, masked query and headers, status and
    duration as JSON.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get('x-request-id', str(uuid.uuid4()))
        request.state.request_id = request_id

        if not should_log_request(request.url.path):
            response = await call_next(request)
            response.headers['x-request-id'] = request_id
            return response

        start_time = time.time()

        logger.info(json.dumps({
            'event': 'request_started',
            'request_id': request_id,
            'method': request.method,
            'path': request.url.path,
            'query_params': mask_sensitive_data(dict(request.query_params)),
            'headers': mask_headers(dict(request.headers)),
        }))

        response = None
        error_details = None
        try:
            response = await call_next(request)
        except Exception as exc:
            error_details = {
                'type': type(exc).__name__,
                'message': mask_pii(str(exc)),
            }
            logger.error(
                f"Request processing error: {request.method} {request.url.path}",
                exc_info=True,
                extra={'request_id': request_id},
            )
            raise
        finally:
            duration = time.time() - start_time
            status_code = response.status_code if response else 500

            response_log = {
                'event': 'request_completed',
                'request_id': request_id,
                'method': request.method,
                'path': request.url.path,
                'duration_ms': round(duration * 1000, 2),
                'status_code': status_code,
            }
            if error_details:
                response_log['error'] = error_details

            if status_code >= 500:
                logger.error(json.dumps(response_log))
            elif status_code >= 400:
                logger.warning(json.dumps(response_log))
            else:
                logger.info(json.dumps(response_log))

            if response:
                response.headers['x-request-id'] = request_id

        return response


class StructuredFormatter(logging.Formatter):
    """Formatter for structured JSON logs."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': self.formatTime(record, self.datefmt),
            'level': record.levelname,
            'logger': record.name,
            'message': mask_pii(record.getMessage()),
        }

        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        if record.exc_info:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': mask_pii(str(record.exc_info[1])),
                'traceback': traceback.format_exception(*record.exc_info),
            }

        return json.dumps(log_data)


def setup_logging(log_level: str = "INFO", json_logs: bool = True):
    """
    Configure application-wide structured logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_logs: Whether to format logs as JSON
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(getattr(logging, log_level.upper()))

    if json_logs:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Reduce noise from third-party libraries
    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
    logging.getLogger('celery.worker.strategy').setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
