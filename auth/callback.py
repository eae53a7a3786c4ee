# auth/callback.py
"""
OAuth Callback Listener
=======================

This module implements the short-lived local HTTP listener that receives the
provider's redirect after the user approves (or denies) the app.

The CallbackListener is a scoped resource. It is used as an async context
manager: the socket is bound on entry, the server is torn down and the socket
released on exit, whatever happened in between. It exposes a single
``wait()`` that resolves with the first valid callback or fails on timeout.

Callback handling:
- ``?oauth_token=<temporary token>&oauth_verifier=<verifier>``: consent given,
  the verifier is captured and the listener shuts itself down
- ``?denied=<temporary token>``: consent refused
- anything else, or a token that does not belong to this session: 400, the
  session keeps waiting
- any request after the first valid callback: 410
"""

import asyncio
import errno
import logging
import socket
from typing import Optional

import uvicorn
from fastapi import FastAPI, Query
from fastapi.responses import HTMLResponse

logger = logging.getLogger(__name__)

SUCCESS_PAGE = """
<html><body style="background:#000;color:#fff;font-family:system-ui;display:flex;align-items:center;justify-content:center;height:100vh;margin:0">
  <div style="text-align:center">
    <h1>Authorized!</h1>
    <p>You can close this tab and return to your terminal.</p>
  </div>
</body></html>
"""

DENIED_PAGE = """
<html><body style="font-family:system-ui;text-align:center;padding-top:20vh">
  <h1>Authorization cancelled</h1>
  <p>No credentials were issued. You can close this tab.</p>
</body></html>
"""


class CallbackPortUnavailable(Exception):
    """Raised when the callback port is already bound by another process."""


class CallbackDenied(Exception):
    """Raised from wait() when the user refused the authorization request."""


class CallbackListener:
    """
    One-shot local HTTP listener for the OAuth callback.

    Attributes:
        host (str): Interface to bind
        port (int): Port to bind; 0 picks a free port
        path (str): Path of the callback endpoint
        expected_token (Optional[str]): Temporary token the callback must carry
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 3456,
        path: str = "/callback",
        expected_token: Optional[str] = None,
    ):
        self.host = host
        self.port = port
        self.path = path
        self.expected_token = expected_token
        self._socket: Optional[socket.socket] = None
        self._server: Optional[uvicorn.Server] = None
        self._serve_task: Optional[asyncio.Task] = None
        self._result: Optional[asyncio.Future] = None

    @property
    def is_bound(self) -> bool:
        return self._socket is not None

    def _bind(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        host = "127.0.0.1" if self.host == "localhost" else self.host
        try:
            sock.bind((host, self.port))
        except OSError as e:
            sock.close()
            if e.errno == errno.EADDRINUSE:
                raise CallbackPortUnavailable(
                    f"Port {self.port} is in use. Close whatever is using it and try again."
                ) from e
            raise
        sock.listen(16)
        sock.setblocking(False)
        return sock

    def _build_app(self) -> FastAPI:
        app = FastAPI(openapi_url=None, docs_url=None, redoc_url=None)

        @app.get(self.path)
        async def oauth_callback(
            oauth_token: Optional[str] = Query(None),
            oauth_verifier: Optional[str] = Query(None),
            denied: Optional[str] = Query(None),
        ):
            if self._result is None or self._result.done():
                return HTMLResponse("This authorization request has already completed.", status_code=410)

            if denied is not None and self._token_matches(denied):
                logger.info("Authorization was denied by the user")
                self._result.set_exception(CallbackDenied("The user denied the authorization request"))
                self._request_shutdown()
                return HTMLResponse(DENIED_PAGE)

            if not oauth_verifier:
                logger.warning("Ignoring callback without oauth_verifier")
                return HTMLResponse("Missing OAuth parameters", status_code=400)

            if not self._token_matches(oauth_token):
                logger.warning("Ignoring callback for an unknown request token")
                return HTMLResponse("Invalid session state", status_code=400)

            logger.info("Received OAuth callback with verifier")
            self._result.set_result(oauth_verifier)
            self._request_shutdown()
            return HTMLResponse(SUCCESS_PAGE)

        return app

    def _token_matches(self, token: Optional[str]) -> bool:
        if self.expected_token is None:
            return True
        return token is not None and token == self.expected_token

    def _request_shutdown(self) -> None:
        if self._server is not None:
            self._server.should_exit = True

    async def start(self) -> None:
        """
        Bind the socket and start serving.

        Raises:
            CallbackPortUnavailable: If the port is already in use
        """
        self._socket = self._bind()
        self.port = self._socket.getsockname()[1]
        self._result = asyncio.get_running_loop().create_future()

        config = uvicorn.Config(
            self._build_app(),
            log_level="warning",
            log_config=None,
            lifespan="off",
        )
        self._server = uvicorn.Server(config)
        self._serve_task = asyncio.create_task(self._server.serve(sockets=[self._socket]))

        while not self._server.started:
            if self._serve_task.done():
                await self.stop()
                raise RuntimeError("OAuth callback listener failed to start")
            await asyncio.sleep(0.01)
        logger.info(f"Listening for OAuth callback on http://{self.host}:{self.port}{self.path}")

    async def wait(self, timeout: float) -> str:
        """
        Wait for the first valid callback.

        Args:
            timeout (float): Seconds to wait before giving up

        Returns:
            str: The oauth_verifier from the callback

        Raises:
            asyncio.TimeoutError: If no callback arrives in time
            CallbackDenied: If the user refused the request
        """
        if self._result is None:
            raise RuntimeError("Callback listener is not started")
        return await asyncio.wait_for(asyncio.shield(self._result), timeout)

    async def stop(self) -> None:
        """Shut the server down and release the socket. Safe to call more than once."""
        if self._server is not None:
            self._server.should_exit = True
        if self._serve_task is not None:
            try:
                await asyncio.wait_for(self._serve_task, timeout=5)
            except asyncio.TimeoutError:
                logger.warning("OAuth callback listener did not stop in time, cancelling")
                self._serve_task.cancel()
                try:
                    await self._serve_task
                except asyncio.CancelledError:
                    pass
            except Exception:
                logger.exception("OAuth callback listener failed while serving")
            self._serve_task = None
        if self._result is not None and not self._result.done():
            self._result.cancel()
        if self._socket is not None:
            self._socket.close()
            self._socket = None
            logger.info("OAuth callback listener closed")
        self._server = None

    async def __aenter__(self) -> "CallbackListener":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
