"""Logging helpers shared by the API layer and the agents."""

import logging
import sys
import uuid


class KeyValueFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        parts = [
            f"timestamp={self.formatTime(record, self.datefmt)}",
            f"level={record.levelname}",
            f"module={record.module}",
            f"message={record.getMessage()}",
        ]
        line = " ".join(parts)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(KeyValueFormatter())
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger


def new_request_id() -> str:
    return uuid.uuid4().hex[:12]
