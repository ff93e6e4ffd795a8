# Error taxonomy surfaced by the portal client to its callers.


class PortalError(Exception):
    """Base class for every failure the client reports."""


class SessionExpired(PortalError):
    """The session could not be renewed and has been torn down; log in again."""

    def __init__(self, message: str = "Session expired, please login again"):
        super().__init__(message)


class FormatError(PortalError):
    """Input was malformed and never left the device."""


class ValidationError(FormatError):
    """An operator-entered value (e.g. an entry code) failed local validation."""


class ServerRejected(PortalError):
    """A well-formed request was refused by the server. Not retried."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message

    def __str__(self):
        return f"{self.status_code}: {self.message}"


class TransportError(PortalError):
    """The server could not be reached."""
