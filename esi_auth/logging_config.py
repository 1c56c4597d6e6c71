"""
Logging configuration for Cloud Run and local environments.

Automatically detects Cloud Run environment and configures appropriate logging:
- Cloud Run: google-cloud-logging with trace correlation
- Local/Test: Standard Python logging to stdout with JSON formatting
"""

import json
import logging
import os
from datetime import UTC, datetime


# Attributes every LogRecord carries; anything else came in through extra=
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None)).keys()
) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """
    Custom JSON log formatter.

    Ensures that logs in local development are structured JSON,
    similar to what Google Cloud Logging expects. Fields passed through
    ``extra=`` are added at the top level.
    """

    def format(self, record: logging.LogRecord) -> str:
        """
        Format the log record as a JSON string.

        Args:
            record: The log record to format.

        Returns:
            A JSON string representing the log record.
        """
        log_object = {
            "timestamp": datetime.now(UTC).isoformat(),
            "severity": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }

        for key, value in vars(record).items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                log_object[key] = value

        if record.exc_info:
            log_object["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_object, default=str)


def setup_global_logging() -> None:
    """
    Configure global logging based on environment.

    When running in Cloud Run (K_SERVICE env var is set):
    - Uses google-cloud-logging for structured logs with trace correlation.
    - Logs appear in Cloud Logging under the jsonPayload field.

    When running locally or in tests:
    - Uses standard Python logging with a custom JSON formatter.
    - Logs are sent to stdout in a structured JSON format.
    """
    is_cloud_run = os.getenv("K_SERVICE") is not None

    if is_cloud_run:
        import google.cloud.logging

        client = google.cloud.logging.Client()
        client.setup_logging()
        logging.info("Cloud Logging initialized for Cloud Run.")
    else:
        # Local development setup
        handler = logging.StreamHandler()
        handler.setFormatter(JsonFormatter())

        root_logger = logging.getLogger()
        root_logger.addHandler(handler)
        root_logger.setLevel(logging.INFO)

        # Remove default handlers to avoid duplicate logs
        if len(root_logger.handlers) > 1:
            for h in root_logger.handlers[:-1]:
                root_logger.removeHandler(h)
