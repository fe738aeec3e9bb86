# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/oidc_debug

"""
Short-lived HTTP listener serving an ASGI app with uvicorn.
"""

import socket
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import anyio
import uvicorn
from starlette.types import ASGIApp

from oidc_debug.exceptions import ListenerBindError
from oidc_debug.utils.logger import logger

# Every method reaches the handler, which answers a wrong one with its own 405
ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


class LocalListener:
    """
    Serves an ASGI app on a socket bound up front.

    Binding before serving lets a port conflict surface as ``ListenerBindError``
    instead of uvicorn exiting the process.

    Attributes:
        host (str): The host to bind.
        port (int): The requested port. 0 picks a free one; ``bound_port`` has the result.
    """

    def __init__(self, app: ASGIApp, host: str = "localhost", port: int = 0, log_level: str = "warning") -> None:
        self.host = host
        self.port = port
        self._sock: socket.socket | None = None
        self._finished = False
        config = uvicorn.Config(
            app,
            lifespan="off",
            log_config=None,
            log_level=log_level,
            access_log=False,
        )
        self._server = uvicorn.Server(config)

    @property
    def started(self) -> bool:
        return bool(self._server.started)

    @property
    def bound_port(self) -> int:
        if self._sock is None:
            raise ListenerBindError("Listener is not bound")
        return int(self._sock.getsockname()[1])

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.bound_port}"

    def bind(self) -> None:
        """
        Binds the listening socket. IPv4 addresses are preferred for ``localhost``.

        Raises:
            ListenerBindError: If the host does not resolve or the port is unavailable.
        """
        try:
            addr_infos = socket.getaddrinfo(self.host, self.port, type=socket.SOCK_STREAM)
        except socket.gaierror as e:
            raise ListenerBindError(f"Cannot resolve listener host {self.host}: {e}") from e

        addr_infos.sort(key=lambda info: info[0] != socket.AF_INET)
        family, _, _, _, sockaddr = addr_infos[0]

        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            if sys.platform != "win32":
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind(sockaddr)
        except OSError as e:
            sock.close()
            raise ListenerBindError(f"listen tcp {self.host}:{self.port}: {e}") from e

        self._sock = sock
        logger.debug(f"Listener bound to {sock.getsockname()}")

    async def serve(self) -> None:
        """
        Serves until ``stop`` is called. Binds first if needed.

        Raises:
            ListenerBindError: If binding or serving fails.
        """
        if self._sock is None:
            self.bind()
        sock = self._sock
        try:
            await self._server.serve(sockets=[sock])
        except OSError as e:
            raise ListenerBindError(f"Listener on {self.host}:{self.port} failed: {e}") from e
        finally:
            self._finished = True
            if sock is not None:
                sock.close()

    async def wait_started(self) -> None:
        """
        Waits until the server accepts connections.

        Raises:
            ListenerBindError: If the server stopped without starting.
        """
        while not self.started:
            if self._finished:
                raise ListenerBindError(f"Listener on {self.host}:{self.port} stopped before starting")
            await anyio.sleep(0.01)

    def stop(self) -> None:
        """Asks the server to exit once in-flight responses are sent."""
        self._server.should_exit = True

    @asynccontextmanager
    async def running(self) -> AsyncIterator["LocalListener"]:
        """Serves in the background for the duration of the block."""
        self.bind()
        async with anyio.create_task_group() as tg:
            tg.start_soon(self.serve)
            await self.wait_started()
            try:
                yield self
            finally:
                self.stop()
