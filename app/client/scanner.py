# Universal scanner: routes a scanned QR string to the gate or mess endpoint.

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from app.client.errors import FormatError
from app.client.gateway import RequestGateway

logger = logging.getLogger(__name__)


class ScanKind(str, Enum):
    GATE = "GATE"
    MESS = "MESS"
    UNKNOWN = "UNKNOWN"


# Checked in order, first match wins
PREFIXES = (
    ("MESS:", ScanKind.MESS),
    ("GATE:", ScanKind.GATE),
)

ENDPOINTS = {
    ScanKind.GATE: "/gate-pass/scan",
    ScanKind.MESS: "/smart-mess/scan",
}


@dataclass(frozen=True)
class ScanPayload:
    raw_text: str
    kind: ScanKind


@dataclass(frozen=True)
class ScanResult:
    message: str
    mode: str
    type: Optional[str] = None


def classify(raw_text: str) -> ScanKind:
    for prefix, kind in PREFIXES:
        if raw_text.startswith(prefix):
            return kind
    return ScanKind.UNKNOWN


class ScanDispatcher:
    """
    Accepts one scan at a time.

    The camera reports the same code on many consecutive frames, so the
    guard closes as soon as a scan is taken and stays closed, whatever the
    outcome, until acknowledge() is called. Scans arriving in between are
    dropped without touching the network.
    """

    def __init__(self, gateway: RequestGateway):
        self._gateway = gateway
        self._busy = False
        self.last_payload: Optional[ScanPayload] = None

    @property
    def busy(self) -> bool:
        return self._busy

    @staticmethod
    def classify(raw_text: str) -> ScanKind:
        return classify(raw_text)

    async def dispatch(self, raw_text: str) -> Optional[ScanResult]:
        """
        Returns the server's verdict, or None when the scan was ignored
        because an earlier one has not been acknowledged yet.

        Raises FormatError for an unrecognised payload, ServerRejected when
        the server refuses the token.
        """
        if self._busy:
            logger.debug("Scan ignored: previous result not acknowledged")
            return None
        # Taken before the first await so a burst in the same loop tick sees it
        self._busy = True

        payload = ScanPayload(raw_text=raw_text, kind=classify(raw_text))
        self.last_payload = payload
        if payload.kind is ScanKind.UNKNOWN:
            logger.warning("Scan rejected locally: prefix missing")
            raise FormatError("Invalid QR Code Format. Prefix missing.")

        endpoint = ENDPOINTS[payload.kind]
        logger.info(f"Scanning at {endpoint}: kind={payload.kind.value}")
        body = await self._gateway.post_json(endpoint, {"qrToken": payload.raw_text})
        return ScanResult(message=body["message"], mode=body["mode"], type=body.get("type"))

    def acknowledge(self) -> None:
        self._busy = False
