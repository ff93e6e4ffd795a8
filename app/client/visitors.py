# Visitor check-in at the gate: one-time entry codes typed in by the guard.

import logging
import re
from dataclasses import dataclass
from enum import Enum
from app.client.errors import ValidationError
from app.client.gateway import RequestGateway
from app.core.config import settings

logger = logging.getLogger(__name__)

VERIFY_PATH = "/visitors/verify"
TODAY_PATH = "/visitors/today"


class EntryCodeStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CLOSED = "CLOSED"
    EXPIRED = "EXPIRED"


@dataclass(frozen=True)
class EntryCodeRequest:
    id: str
    visitor_name: str
    entry_code: str
    visit_date: str
    status: EntryCodeStatus

    @classmethod
    def from_json(cls, data: dict) -> "EntryCodeRequest":
        return cls(
            id=data["id"],
            visitor_name=data.get("visitorName", ""),
            entry_code=data.get("entryCode", ""),
            visit_date=data.get("visitDate", ""),
            status=EntryCodeStatus(data["status"]),
        )


@dataclass(frozen=True)
class VerificationOutcome:
    request: EntryCodeRequest
    message: str


class EntryCodeVerifier:
    def __init__(self, gateway: RequestGateway, code_length: int = settings.ENTRY_CODE_LENGTH):
        self._gateway = gateway
        self._pattern = re.compile(rf"[0-9]{{{code_length}}}")
        self.code_length = code_length

    def validate(self, request_id: str, code: str) -> None:
        if not request_id:
            raise ValidationError("Visitor request id is required")
        if not self._pattern.fullmatch(code or ""):
            raise ValidationError(f"Entry code must be exactly {self.code_length} digits")

    async def verify(self, request_id: str, code: str) -> VerificationOutcome:
        """
        Checks the code shape locally, then asks the server to close the request.

        Never retried: a closed request rejects any later attempt, and that
        rejection reaches the caller as ServerRejected.
        """
        self.validate(request_id, code)

        body = await self._gateway.post_json(VERIFY_PATH, {"visitorId": request_id, "entryCode": code})
        request = EntryCodeRequest.from_json(body["visitor"])
        logger.info(f"Visitor verified: visitor={request_id} status={request.status.value}")
        return VerificationOutcome(request=request, message=body["message"])


class VisitorsClient:
    def __init__(self, gateway: RequestGateway):
        self._gateway = gateway

    async def todays_visitors(self) -> list:
        body = await self._gateway.get_json(TODAY_PATH)
        return [EntryCodeRequest.from_json(item) for item in body]
