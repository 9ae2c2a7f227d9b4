"""Process-wide logging setup."""

import logging
import sys

NOISY_LOGGERS = ("botocore", "boto3", "urllib3", "s3transfer")


def configure_logging(level: str = "INFO") -> None:
    """
    Configure the root logger for the application.

    Call once at startup; later calls are no-ops for the handler because
    ``logging.basicConfig`` leaves an already configured root logger alone.
    """
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - [%(levelname)s] - %(message)s",
        stream=sys.stdout,
    )
    logging.getLogger().setLevel(level)
    # Silence noisy libraries
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
