"""Command-line entrypoint: ``python -m redirector``."""

import logging
import sys
from typing import List, Optional

from . import create_app
from .config import parse_args
from .lifecycle import ServerManager
from .log import configure_logging

logger = logging.getLogger("redirector")


def main(argv: Optional[List[str]] = None) -> None:
    settings = parse_args(argv)
    configure_logging(settings.debug)

    logger.info("Starting server on %s", settings.host)

    manager = ServerManager(settings, create_app(settings))
    sys.exit(manager.run())


if __name__ == "__main__":
    main()
