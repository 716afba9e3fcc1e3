"""Logging setup for command line runs."""

import logging

LOG_FORMAT = "%(asctime)s [%(process)d]: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Log to stderr with the process id of the emitting worker."""

    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # botocore logs request details at DEBUG for every call.
    for noisy in ("botocore", "boto3", "urllib3", "s3transfer"):
        logging.getLogger(noisy).setLevel(max(logging.INFO, logging.getLogger().level))


__all__ = ["LOG_FORMAT", "configure_logging"]
