import logging
import sys

_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


class _StdoutHandler(logging.StreamHandler):
    """Writes to whatever sys.stdout is at emit time, so redirected output is honored."""

    @property
    def stream(self):
        return sys.stdout

    @stream.setter
    def stream(self, value):
        pass


def get_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """Return a console logger with a timestamped format, configured once per name."""
    logger = logging.getLogger(f"stroke_risk.{name}")
    if not logger.handlers:
        handler = _StdoutHandler()
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATEFMT))
        logger.addHandler(handler)
        logger.setLevel(level)
        logger.propagate = False
    return logger
