"""Engine logging: stderr only, stdout is reserved for the metrics report."""

import logging
import sys

LOG_FORMAT = "[%(levelname)s] [%(asctime)s] [VU %(vu)s] [Iter %(iteration)s] %(message)s"
DATE_FORMAT = "%H:%M:%S"

_ROOT_NAME = "ui_performance"


class _ContextDefaults(logging.Filter):
    def filter(self, record):
        if not hasattr(record, "vu"):
            record.vu = "-"
        if not hasattr(record, "iteration"):
            record.iteration = "-"
        return True


def configure_logging(level="INFO", stream=None):
    logger = logging.getLogger(_ROOT_NAME)
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    # Only add handler once, configure_logging may run per worker
    if not logger.handlers:
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        handler.addFilter(_ContextDefaults())
        logger.addHandler(handler)
        logger.propagate = False
    return logger


def get_logger(name=None):
    if not name:
        return logging.getLogger(_ROOT_NAME)
    return logging.getLogger(f"{_ROOT_NAME}.{name}")


class IterationLogger(logging.LoggerAdapter):
    """Attach worker and iteration ids to every record."""

    def __init__(self, logger, vu, iteration):
        super().__init__(logger, {"vu": vu, "iteration": iteration})

    def process(self, msg, kwargs):
        extra = dict(kwargs.get("extra") or {})
        extra.update(self.extra)
        kwargs["extra"] = extra
        return msg, kwargs
