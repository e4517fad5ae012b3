"""
DocMS Web Server — uvicorn running in a dedicated thread.

The bootstrap thread stays free to print the startup confirmation and to
supervise shutdown; uvicorn only installs signal handlers on the main
thread, so it leaves them alone here.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Optional

import uvicorn
from fastapi import FastAPI

from docms.engine.config import ServerConfig
from docms.engine.errors import WebServerError

logger = logging.getLogger("docms.web.server")


class WebServer:
    """Start/stop wrapper around uvicorn.Server."""

    def __init__(self, app: FastAPI, config: Optional[ServerConfig] = None):
        self._config = config or ServerConfig()
        self._server = uvicorn.Server(
            uvicorn.Config(
                app,
                host=self._config.host,
                port=self._config.port,
                log_level=self._config.log_level,
            )
        )
        self._thread: Optional[threading.Thread] = None

    @property
    def address(self) -> str:
        return f"http://{self._config.host}:{self._config.port}"

    def start(self) -> None:
        """
        Run uvicorn in a background thread and wait until it is serving.

        Raises:
            WebServerError: the server thread exited before it started
                (e.g. port already in use) or startup_timeout expired.
        """
        self._thread = threading.Thread(
            target=self._server.run,
            name="docms-web",
            daemon=True,
        )
        self._thread.start()

        deadline = time.monotonic() + self._config.startup_timeout
        while not self._server.started:
            if not self._thread.is_alive():
                raise WebServerError(
                    f"Web server failed to start on {self.address}",
                    component="web",
                )
            if time.monotonic() > deadline:
                self.stop()
                raise WebServerError(
                    f"Web server did not start within {self._config.startup_timeout}s",
                    component="web",
                )
            time.sleep(0.05)

        logger.info(f"Web server listening on {self.address}")

    def stop(self, timeout: float = 5.0) -> None:
        self._server.should_exit = True
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
            logger.info("Web server stopped")
        self._thread = None

    def request_exit(self) -> None:
        """Ask uvicorn to finish serving; wait() then returns."""
        self._server.should_exit = True

    def wait(self, poll_interval: float = 0.5) -> None:
        """Block until the server thread exits. Short joins keep Ctrl-C responsive."""
        while self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=poll_interval)

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
