# Outbound request chain: raw transport -> bearer attach -> refresh-on-401.
#
# Every authenticated call from the app goes through RequestGateway.send().
# Unauthorized responses are funnelled into one RefreshCoordinator, which
# owns the only "renewal in flight" marker and the queue of calls waiting on it.

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Optional
import httpx
from app.client.errors import PortalError, ServerRejected, SessionExpired, TransportError
from app.client.session import SessionStore

logger = logging.getLogger(__name__)

REFRESH_PATH = "/auth/refresh"


@dataclass
class ApiRequest:
    method: str
    path: str
    json: Optional[dict] = None
    params: Optional[dict] = None
    headers: dict = field(default_factory=dict)
    # Set once the call has been replayed after a renewal; a second 401 is final
    retried: bool = False
    # Access token the call was last sent with
    credential: Optional[str] = None
    # Refresh token of the session the call was first sent under
    session: Optional[str] = None


def error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase

    if isinstance(body, dict):
        message = body.get("message") or body.get("detail")
        if message:
            return message if isinstance(message, str) else str(message)
    return response.reason_phrase


class RawTransport:
    """
    Sends requests as-is. Used directly for the unauthenticated calls
    (login, refresh) so they never re-enter the refresh guard.
    """

    def __init__(self, client: httpx.AsyncClient):
        self._client = client

    async def send(self, request: ApiRequest) -> httpx.Response:
        try:
            return await self._client.request(
                request.method,
                request.path,
                json=request.json,
                params=request.params,
                headers=request.headers,
            )
        except httpx.TransportError as e:
            logger.warning(f"Transport failure: {request.method} {request.path} ({type(e).__name__})")
            raise TransportError(f"Could not reach server: {type(e).__name__}") from e


class AuthAttachMiddleware:
    def __init__(self, inner: RawTransport, store: SessionStore):
        self._inner = inner
        self._store = store

    async def send(self, request: ApiRequest) -> httpx.Response:
        # Read the store at send time so a replay always carries the newest token
        state = self._store.current()
        if state is None:
            request.headers.pop("Authorization", None)
            request.credential = None
        else:
            request.headers["Authorization"] = f"Bearer {state.access_token}"
            request.credential = state.access_token
            if not request.retried:
                request.session = state.refresh_token
        return await self._inner.send(request)


class RefreshCoordinator:
    """
    Single-flight access token renewal.

    However many calls fail with 401 at once, one POST /auth/refresh is sent.
    Each failing call parks a future on the pending queue; when the renewal
    settles the queue is drained in order, either releasing every call to
    replay with the new token or failing all of them with SessionExpired.
    """

    def __init__(self, inner: AuthAttachMiddleware, raw: RawTransport, store: SessionStore,
                 refresh_path: str = REFRESH_PATH):
        self._inner = inner
        self._raw = raw
        self._store = store
        self._refresh_path = refresh_path
        self._pending: Deque[asyncio.Future] = deque()
        self._in_flight = False
        self._renewal_task: Optional[asyncio.Task] = None
        self.renewals_sent = 0

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def guard(self, request: ApiRequest) -> httpx.Response:
        response = await self._inner.send(request)
        if response.status_code != 401:
            return response

        if request.retried:
            logger.warning(f"Unauthorized after renewal: {request.method} {request.path}")
            raise SessionExpired()

        state = self._store.current()
        if state is not None and request.session is not None and state.refresh_token != request.session:
            # A new login replaced the session this call belonged to
            logger.warning(f"Unauthorized from a previous session: {request.method} {request.path}")
            raise SessionExpired()

        renewed_meanwhile = (
            not self._in_flight
            and state is not None
            and request.credential is not None
            and state.access_token != request.credential
        )
        if not renewed_meanwhile:
            await self._wait_for_renewal()

        request.retried = True
        return await self.guard(request)

    async def _wait_for_renewal(self) -> None:
        waiter = asyncio.get_running_loop().create_future()
        self._pending.append(waiter)

        if not self._in_flight:
            self._in_flight = True
            self._renewal_task = asyncio.create_task(self._renew())

        await waiter

    async def _renew(self) -> None:
        access_token = None
        try:
            access_token = await self._request_access_token()
            if access_token is not None and not self._store.update_access_token(access_token):
                logger.info("Renewal finished after logout, discarding token")
                access_token = None
        finally:
            self._settle(access_token)

    async def _request_access_token(self) -> Optional[str]:
        state = self._store.current()
        if state is None or not state.refresh_token:
            logger.warning("Renewal skipped: no refresh token held")
            return None

        self.renewals_sent += 1
        logger.info(f"Renewing access token: waiting_calls={len(self._pending)}")
        refresh = ApiRequest("POST", self._refresh_path, json={"refreshToken": state.refresh_token})
        try:
            response = await self._raw.send(refresh)
        except PortalError as e:
            logger.warning(f"Renewal failed: {e}")
            return None

        if not response.is_success:
            logger.warning(f"Renewal failed: status={response.status_code} message={error_message(response)}")
            return None

        try:
            access_token = response.json().get("accessToken")
        except (ValueError, AttributeError):
            access_token = None
        if not access_token:
            logger.warning("Renewal failed: response carried no access token")
            return None

        logger.info("Access token renewed")
        return access_token

    def _settle(self, access_token: Optional[str]) -> None:
        if access_token is None:
            self._store.clear()

        waiters, self._pending = self._pending, deque()
        for waiter in waiters:
            # A caller cancelled while parked has nothing left to resume
            if waiter.done():
                continue
            if access_token is None:
                waiter.set_exception(SessionExpired())
            else:
                waiter.set_result(None)

        self._in_flight = False
        self._renewal_task = None


class RequestGateway:
    """
    The plain call interface the rest of the app uses.

    401 goes to the coordinator; any other non-2xx becomes ServerRejected
    with the server's message. Nothing else is retried.
    """

    def __init__(self, coordinator: RefreshCoordinator):
        self.coordinator = coordinator

    async def send(self, request: ApiRequest) -> httpx.Response:
        response = await self.coordinator.guard(request)
        if not response.is_success:
            message = error_message(response)
            logger.info(f"Request rejected: {request.method} {request.path} status={response.status_code}")
            raise ServerRejected(response.status_code, message)
        return response

    async def get_json(self, path: str, params: Optional[dict] = None):
        response = await self.send(ApiRequest("GET", path, params=params))
        return response.json()

    async def post_json(self, path: str, payload: Optional[dict] = None):
        response = await self.send(ApiRequest("POST", path, json=payload))
        return response.json()

