"""Logging setup shared by the gateway, the CLI and the storage core."""

import logging
import os
import re
import sys
from typing import Optional, TextIO

MASK = '***MASKED***'

# Backend credentials and manifest key material
SENSITIVE_FIELDS = (
    'jwt',
    'api[_-]?key',
    'encryption[_-]?key',
    'encryption[_-]?iv',
    'token',
    'authorization',
    'secret',
)


class SensitiveDataFilter(logging.Filter):
    """Mask backend credentials and encryption material in log records."""

    FIELD_PATTERN = re.compile(
        r'((?:%s)["\']?\s*[:=]\s*["\']?)([^"\'}\s,]+)' % '|'.join(SENSITIVE_FIELDS),
        re.IGNORECASE
    )
    BEARER_PATTERN = re.compile(r'(bearer\s+)([^\s,}\'"]+)', re.IGNORECASE)

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self.mask(record.msg)

        if record.args:
            if isinstance(record.args, dict):
                record.args = {k: self._mask_arg(v) for k, v in record.args.items()}
            elif isinstance(record.args, tuple):
                record.args = tuple(self._mask_arg(arg) for arg in record.args)

        return True

    @classmethod
    def mask(cls, text: str) -> str:
        text = cls.FIELD_PATTERN.sub(rf'\1{MASK}', text)
        return cls.BEARER_PATTERN.sub(rf'\1{MASK}', text)

    def _mask_arg(self, value):
        return self.mask(value) if isinstance(value, str) else value


def setup_logging(
    component_name: str,
    log_level: Optional[str] = None,
    stream: Optional[TextIO] = None
) -> logging.Logger:
    """
    Set up the logger of a component ('gateway', 'backends', 'sharding', 'cli').

    Module loggers obtained with get_logger(__name__) inside the component's
    package propagate to it.

    Args:
        component_name: Top-level logger name
        log_level: DEBUG, INFO, WARNING or ERROR. Defaults to LOG_LEVEL env var or INFO
        stream: Where records are written (defaults to stdout)

    Returns:
        Configured logger instance
    """
    if log_level is None:
        log_level = os.getenv('LOG_LEVEL', 'INFO')

    level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger(component_name)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    handler.addFilter(SensitiveDataFilter())

    logger.addHandler(handler)
    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a module logger that masks sensitive data before any handler sees it.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    logger = logging.getLogger(name)

    if not any(isinstance(f, SensitiveDataFilter) for f in logger.filters):
        logger.addFilter(SensitiveDataFilter())

    return logger
