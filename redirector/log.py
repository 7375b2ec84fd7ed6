"""Process-wide logging setup.

Application messages and access lines both go to standard output. The
access logger writes bare combined-format lines and does not propagate,
so each request produces exactly one line.
"""

import logging
import sys

ACCESS_LOGGER_NAME = "redirector.access"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(debug: bool = False) -> None:
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(level=level, stream=sys.stdout, format=LOG_FORMAT, force=True)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    access_logger = logging.getLogger(ACCESS_LOGGER_NAME)
    access_logger.handlers = [handler]
    access_logger.setLevel(logging.INFO)
    access_logger.propagate = False


def uvicorn_log_level(debug: bool) -> str:
    return "debug" if debug else "info"
