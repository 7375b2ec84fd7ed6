"""Server lifecycle manager.

Binds the listener, serves the app with uvicorn on a background thread and
coordinates a bounded graceful shutdown when the main thread is told to
stop (normally by ``SIGINT`` or ``SIGTERM``).
"""

import enum
import logging
import signal
import socket
import threading
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI

from .config import Settings
from .log import uvicorn_log_level

logger = logging.getLogger("redirector.lifecycle")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    logger.info("Redirecting all requests to %s", settings.redirect)
    if settings.debug:
        logger.debug("DEBUG mode enabled")
    try:
        yield
    finally:
        logger.info("Application stopped")


class State(enum.Enum):
    STARTING = "starting"
    SERVING = "serving"
    SHUTTING_DOWN = "shutting-down"
    STOPPED = "stopped"


class ServerManager:
    def __init__(self, settings: Settings, app: FastAPI) -> None:
        self.settings = settings
        self.state = State.STARTING
        host, port = settings.bind
        self.config = uvicorn.Config(
            app,
            host=host,
            port=port,
            log_config=None,
            log_level=uvicorn_log_level(settings.debug),
            access_log=False,
            server_header=False,
        )
        self.server = uvicorn.Server(self.config)
        self._socket: Optional[socket.socket] = None
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()
        self._stop_requested = False

    @property
    def port(self) -> int:
        if self._socket is None:
            raise RuntimeError("server has not been started")
        return self._socket.getsockname()[1]

    def start(self) -> None:
        """Bind the listener and start serving on a background thread.

        A bind failure is fatal: uvicorn logs it and exits the process.
        """
        self.state = State.STARTING
        self._socket = self.config.bind_socket()
        self._thread = threading.Thread(
            target=self._serve, name="redirector-server", daemon=True
        )
        self._thread.start()
        self.state = State.SERVING

    def _serve(self) -> None:
        try:
            self.server.run(sockets=[self._socket])
        finally:
            self._socket.close()
            # Wake the main thread if the server stops on its own.
            self._stop.set()

    def request_stop(self) -> None:
        self._stop_requested = True
        self._stop.set()

    def wait(self) -> None:
        self._stop.wait()

    def shutdown(self) -> bool:
        """Stop accepting connections and wait for in-flight requests.

        Returns ``False`` if they did not finish within the graceful timeout,
        in which case the server is forced to exit and they are abandoned.
        """
        self.state = State.SHUTTING_DOWN
        self.server.should_exit = True
        if self._thread is not None:
            self._thread.join(self.settings.graceful_timeout)
            if self._thread.is_alive():
                self.server.force_exit = True
                self.state = State.STOPPED
                return False
        self.state = State.STOPPED
        return True

    def _handle_signal(self, signum, _frame) -> None:
        logger.info("Exiting due to %s", signal.Signals(signum).name)
        self.request_stop()

    def run(self) -> int:
        """Serve until a termination signal arrives; return the exit code."""
        previous = {
            signum: signal.signal(signum, self._handle_signal)
            for signum in (signal.SIGINT, signal.SIGTERM)
        }
        try:
            self.start()
            self.wait()

            if not self._stop_requested:
                logger.error("Server stopped before a termination signal was received")
                self.state = State.STOPPED
                return 1

            # A repeated signal during the grace period only re-requests the stop.
            if not self.shutdown():
                logger.critical(
                    "Graceful shutdown did not complete within %ss",
                    self.settings.graceful_timeout,
                )
                return 1
            logger.info("shutting down")
            return 0
        finally:
            for signum, handler in previous.items():
                signal.signal(signum, handler)
