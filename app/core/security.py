# Security-related helpers such as JWT creation and token handling.
import time
import jwt
from app.core.config import settings


def _encode(claims: dict, secret: str, exp_seconds: int) -> str:
    now = int(time.time())
    payload = {
        "iss": settings.JWT_ISSUER,
        "iat": now,
        "nbf": now,
        "exp": now + exp_seconds,
    }
    payload.update(claims)
    return jwt.encode(payload, secret, algorithm="HS256")


def create_access_token(claims: dict, exp_seconds: int | None = None) -> str:
    if exp_seconds is None:
        exp_seconds = settings.ACCESS_TOKEN_TTL_SECONDS
    return _encode(claims, settings.JWT_SECRET, exp_seconds)


def create_refresh_token(claims: dict, exp_seconds: int | None = None) -> str:
    if exp_seconds is None:
        exp_seconds = settings.REFRESH_TOKEN_TTL_SECONDS
    return _encode(claims, settings.REFRESH_SECRET, exp_seconds)


def decode_access_token(token: str) -> dict:
    """Raises jwt.InvalidTokenError on a bad signature or an expired token."""
    return jwt.decode(token, settings.JWT_SECRET, algorithms=["HS256"], issuer=settings.JWT_ISSUER)


def decode_refresh_token(token: str) -> dict:
    return jwt.decode(token, settings.REFRESH_SECRET, algorithms=["HS256"], issuer=settings.JWT_ISSUER)


def sign_gate_pass(request_id: str) -> str:
    # The signed string becomes the QR payload, prefixed so scanners can route it
    payload = {
        "requestId": request_id,
        "timestamp": int(time.time()),
        "valid": True,
    }
    return "GATE:" + jwt.encode(payload, settings.GATE_PASS_SECRET, algorithm="HS256")
