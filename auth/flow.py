# auth/flow.py
"""
Three-Legged OAuth 1.0a Authorization Flow
==========================================

This module implements the interactive flow that turns a user's consent into
a permanent access token and secret for the app.

Flow:
1. INIT: request temporary credentials (signed POST to request_token, with
   the local callback URL as ``oauth_callback``)
2. AWAITING_CONSENT: start the local callback listener, show the authorize
   URL to the operator and try to open it in the default browser
3. CONSENT_RECEIVED: the callback delivered an ``oauth_verifier``; the
   listener has stopped itself
4. DONE: exchange temporary credentials + verifier for permanent credentials
   (signed POST to access_token)

Any failure ends the flow in FAILED (or TIMEOUT) and raises a subclass of
AuthorizationFlowError. The callback listener is released on every exit path.

Only one flow may be active per process.
"""

import asyncio
import logging
import threading
import webbrowser
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel

from config import Settings, get_settings
from auth.callback import CallbackDenied, CallbackListener, CallbackPortUnavailable
from auth.credentials import OAuthToken
from auth.encoding import parse_form_encoded
from auth.signing import SigningContext, authorization_header

logger = logging.getLogger(__name__)

REQUEST_TOKEN_URL = "https://api.x.com/oauth/request_token"
AUTHORIZE_URL = "https://api.x.com/oauth/authorize"
ACCESS_TOKEN_URL = "https://api.x.com/oauth/access_token"


class AuthorizationFlowError(Exception):
    """
    Base class for errors that terminate the authorization flow.

    Attributes:
        hint (str): What the operator can do before retrying
    """

    hint = "Run the setup again."

    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message)
        if hint is not None:
            self.hint = hint


class RequestRejected(AuthorizationFlowError):
    """The provider rejected the temporary credential request."""

    hint = "Make sure your app's callback URL is set to the listener URL in the X Developer Portal."

    def __init__(self, status_code: int, body: str, hint: Optional[str] = None):
        super().__init__(f"Failed to get request token: {status_code}\n{body}", hint)
        self.status_code = status_code
        self.body = body


class PortUnavailable(AuthorizationFlowError):
    """The callback port is already in use."""

    hint = "Close whatever is using the port and try again."


class Timeout(AuthorizationFlowError):
    """No callback arrived within the wait bound."""

    hint = "Approve the app in the browser within the time limit."


class ConsentDenied(AuthorizationFlowError):
    """The user declined the authorization request."""

    hint = "Run the setup again and click 'Authorize app'."


class ExchangeRejected(AuthorizationFlowError):
    """The provider rejected the verifier exchange."""

    hint = "The verifier may have expired; run the setup again."

    def __init__(self, status_code: int, body: str, hint: Optional[str] = None):
        super().__init__(f"Failed to get access token: {status_code}\n{body}", hint)
        self.status_code = status_code
        self.body = body


class ProviderUnreachable(AuthorizationFlowError):
    """A token endpoint could not be reached (connection, DNS or timeout failure)."""

    hint = "Check your network connection and try again."


class FlowAlreadyActiveError(RuntimeError):
    """Raised when a second flow is started while one is pending."""


class FlowState(str, Enum):
    INIT = "init"
    AWAITING_CONSENT = "awaiting_consent"
    CONSENT_RECEIVED = "consent_received"
    DONE = "done"
    FAILED = "failed"
    TIMEOUT = "timeout"


@dataclass
class AuthorizationSession:
    """State of a single flow invocation."""

    temporary_token: str = ""
    temporary_secret: str = ""
    verifier: Optional[str] = None
    permanent_token: Optional[str] = None
    permanent_secret: Optional[str] = None
    state: FlowState = FlowState.INIT

    def transition(self, state: FlowState) -> None:
        logger.debug(f"Authorization flow: {self.state.value} -> {state.value}")
        self.state = state


class AuthorizationResult(BaseModel):
    """Permanent credentials produced by a successful flow."""

    access_token: str
    access_token_secret: str
    screen_name: str = ""
    user_id: str = ""


# Process-wide: one pending flow at a time
_active_flow = threading.Lock()


class AuthorizationFlow:
    """
    One-shot, user-attended OAuth 1.0a authorization.

    Args:
        consumer (OAuthToken): The app's API key and secret
        settings (Optional[Settings]): Listener host/port/path and wait bound
        http_client (Optional[httpx.AsyncClient]): Client for the token endpoints
        open_browser (Optional[Callable[[str], object]]): Opens the authorize URL;
            defaults to webbrowser.open
        notify (Optional[Callable[[str], None]]): Shows messages to the operator;
            defaults to print
    """

    def __init__(
        self,
        consumer: OAuthToken,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        open_browser: Optional[Callable[[str], object]] = None,
        notify: Optional[Callable[[str], None]] = None,
    ):
        self.consumer = consumer
        self.settings = settings or get_settings()
        self.http_client = http_client
        self.open_browser = open_browser or webbrowser.open
        self.notify = notify or print
        self.session: Optional[AuthorizationSession] = None

    async def run(self) -> AuthorizationResult:
        """
        Run the flow to completion.

        Returns:
            AuthorizationResult: The permanent token, secret and account details

        Raises:
            FlowAlreadyActiveError: If another flow is pending in this process
            AuthorizationFlowError: If any step fails
        """
        if not _active_flow.acquire(blocking=False):
            raise FlowAlreadyActiveError("An authorization flow is already in progress")
        self.session = AuthorizationSession()
        try:
            if self.http_client is not None:
                return await self._run(self.http_client)
            async with httpx.AsyncClient(timeout=self.settings.HTTP_TIMEOUT_SECONDS) as client:
                return await self._run(client)
        except AuthorizationFlowError:
            if self.session.state != FlowState.TIMEOUT:
                self.session.transition(FlowState.FAILED)
            raise
        finally:
            _active_flow.release()

    async def _run(self, client: httpx.AsyncClient) -> AuthorizationResult:
        session = self.session

        self.notify("Step 1/3: Requesting temporary token...")
        temporary = await self.request_temporary_credentials(client)
        session.temporary_token, session.temporary_secret = temporary

        authorize_url = f"{AUTHORIZE_URL}?{urlencode({'oauth_token': temporary.key})}"
        session.verifier = await self.await_consent(authorize_url, temporary.key)

        self.notify("Step 3/3: Exchanging for access token...")
        result = await self.exchange_for_access_token(client, temporary, session.verifier)
        session.permanent_token = result.access_token
        session.permanent_secret = result.access_token_secret
        session.transition(FlowState.DONE)
        logger.info(f"Authorized as @{result.screen_name} ({result.user_id})")
        return result

    async def request_temporary_credentials(self, client: httpx.AsyncClient) -> OAuthToken:
        """
        Obtain a temporary request token and secret.

        Raises:
            RequestRejected: If the provider answers with a non-2xx status or no token
            ProviderUnreachable: If the request cannot be sent
        """
        context = SigningContext.create(
            "POST", REQUEST_TOKEN_URL, {"oauth_callback": self.settings.callback_url}
        )
        try:
            response = await client.post(
                REQUEST_TOKEN_URL,
                headers={"Authorization": authorization_header(None, context, self.consumer)},
            )
        except httpx.RequestError as e:
            raise ProviderUnreachable(f"Failed to get request token: {e!r}") from e
        if not response.is_success:
            raise RequestRejected(
                response.status_code,
                response.text,
                hint=(
                    f"Make sure your callback URL is set to {self.settings.callback_url} "
                    "in the X Developer Portal."
                ),
            )

        params = parse_form_encoded(response.text)
        if not params.get("oauth_token") or not params.get("oauth_token_secret"):
            raise RequestRejected(response.status_code, response.text)
        if params.get("oauth_callback_confirmed") == "false":
            raise RequestRejected(response.status_code, response.text)
        return OAuthToken(params["oauth_token"], params["oauth_token_secret"])

    async def await_consent(self, authorize_url: str, temporary_token: str) -> str:
        """
        Start the callback listener, point the user at the consent page and
        wait for the verifier.

        Raises:
            PortUnavailable: If the callback port is in use
            ConsentDenied: If the user declined
            Timeout: If no callback arrives within the wait bound
        """
        listener = CallbackListener(
            host=self.settings.CALLBACK_HOST,
            port=self.settings.CALLBACK_PORT,
            path=self.settings.CALLBACK_PATH,
            expected_token=temporary_token,
        )
        try:
            await listener.start()
        except CallbackPortUnavailable as e:
            raise PortUnavailable(str(e)) from e

        try:
            self.session.transition(FlowState.AWAITING_CONSENT)
            self.notify("Step 2/3: Opening browser for authorization...")
            self.notify(f"If browser doesn't open, visit:\n{authorize_url}")
            threading.Thread(
                target=self._open_browser, args=(authorize_url,), name="open-browser", daemon=True
            ).start()

            timeout = self.settings.CALLBACK_TIMEOUT_SECONDS
            self.notify(f"Waiting for authorization (listening on port {listener.port})...")
            try:
                verifier = await listener.wait(timeout)
            except asyncio.TimeoutError as e:
                self.session.transition(FlowState.TIMEOUT)
                raise Timeout(
                    f"Timeout: no authorization received after {timeout:g} seconds"
                ) from e
            except CallbackDenied as e:
                raise ConsentDenied(str(e)) from e
        finally:
            await listener.stop()

        self.session.transition(FlowState.CONSENT_RECEIVED)
        return verifier

    def _open_browser(self, url: str) -> None:
        try:
            if not self.open_browser(url):
                logger.info("No browser available to open the authorization URL")
        except Exception as e:
            logger.warning(f"Could not open browser: {e}")

    async def exchange_for_access_token(
        self,
        client: httpx.AsyncClient,
        temporary: OAuthToken,
        verifier: str,
    ) -> AuthorizationResult:
        """
        Exchange the temporary credentials and verifier for permanent credentials.

        Raises:
            ExchangeRejected: If the provider answers with a non-2xx status or no token
            ProviderUnreachable: If the request cannot be sent
        """
        context = SigningContext.create(
            "POST", ACCESS_TOKEN_URL, {"oauth_verifier": verifier}
        )
        try:
            response = await client.post(
                ACCESS_TOKEN_URL,
                headers={"Authorization": authorization_header(None, context, self.consumer, temporary)},
            )
        except httpx.RequestError as e:
            raise ProviderUnreachable(f"Failed to get access token: {e!r}") from e
        if not response.is_success:
            raise ExchangeRejected(response.status_code, response.text)

        params = parse_form_encoded(response.text)
        if not params.get("oauth_token") or not params.get("oauth_token_secret"):
            raise ExchangeRejected(response.status_code, response.text)
        return AuthorizationResult(
            access_token=params["oauth_token"],
            access_token_secret=params["oauth_token_secret"],
            screen_name=params.get("screen_name", ""),
            user_id=params.get("user_id", ""),
        )
