"""Structured logging for applications that install :class:`.AuthGate`."""

import logging
from pythonjsonlogger import jsonlogger

FORMAT = '%(asctime)s %(levelname)s %(name)s %(message)s'


def setup_logger(level: str = 'INFO') -> None:
    """Send log records from every module to stderr, as JSON."""
    handler = logging.StreamHandler()
    handler.setFormatter(jsonlogger.JsonFormatter(
        FORMAT, rename_fields={'levelname': 'level', 'asctime': 'timestamp'}
    ))
    root = logging.getLogger()
    if not any(isinstance(h.formatter, jsonlogger.JsonFormatter)
               for h in root.handlers):
        root.addHandler(handler)
    root.setLevel(level.upper())
