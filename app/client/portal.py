# Session manager facade: built once at process start and handed to screens.

import logging
from typing import Optional
import httpx
from app.client.errors import PortalError, ServerRejected
from app.client.gateway import (
    ApiRequest,
    AuthAttachMiddleware,
    RawTransport,
    RefreshCoordinator,
    RequestGateway,
    error_message,
)
from app.client.ott import AttendanceClient, OttIssuerClient
from app.client.scanner import ScanDispatcher
from app.client.session import SessionState, SessionStore
from app.client.visitors import EntryCodeVerifier, VisitorsClient
from app.core.config import settings

logger = logging.getLogger(__name__)


class PortalClient:
    """
    Owns the HTTP client, the session store and the request chain.

    Screens receive the gateway (or one of the components built here) and
    never reach for the store directly, except to subscribe to
    "session invalid" notifications.
    """

    def __init__(self, base_url: str = settings.API_BASE_URL,
                 client: Optional[httpx.AsyncClient] = None):
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=settings.REQUEST_TIMEOUT_SECONDS,
        )
        self.store = SessionStore()

        # raw transport -> bearer attach -> refresh-on-401
        self.raw = RawTransport(self._client)
        self.coordinator = RefreshCoordinator(AuthAttachMiddleware(self.raw, self.store), self.raw, self.store)
        self.gateway = RequestGateway(self.coordinator)

    @property
    def identity(self) -> Optional[dict]:
        state = self.store.current()
        return state.identity if state else None

    async def login(self, email: str, password: str) -> dict:
        # Unauthenticated, so it bypasses the refresh guard
        response = await self.raw.send(
            ApiRequest("POST", "/auth/login", json={"email": email, "password": password})
        )
        if not response.is_success:
            logger.warning(f"Login failed: status={response.status_code}")
            raise ServerRejected(response.status_code, error_message(response))

        body = response.json()
        self.store.install(SessionState(
            access_token=body["accessToken"],
            refresh_token=body["refreshToken"],
            identity=body.get("user", {}),
        ))
        return body["user"]

    async def logout(self) -> None:
        if self.store.current() is None:
            return
        try:
            # The response body is never read
            await self.gateway.send(ApiRequest("POST", "/auth/logout"))
        except PortalError as e:
            logger.warning(f"Logout notification failed: {e}")
        finally:
            # Best effort; the local session goes regardless
            self.store.clear()

    def ott_issuer(self, **kwargs) -> OttIssuerClient:
        return OttIssuerClient(self.gateway, **kwargs)

    def attendance(self) -> AttendanceClient:
        return AttendanceClient(self.gateway)

    def scanner(self) -> ScanDispatcher:
        return ScanDispatcher(self.gateway)

    def entry_code_verifier(self) -> EntryCodeVerifier:
        return EntryCodeVerifier(self.gateway)

    def visitors(self) -> VisitorsClient:
        return VisitorsClient(self.gateway)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()
