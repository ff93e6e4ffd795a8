import io
import uuid
import logging
from datetime import datetime, timedelta, timezone
import qrcode
from app.db import db
from app.core.config import settings

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class QRService:
    @staticmethod
    def generate_attendance_token() -> dict:
        """
        Issues a short-lived, single-use attendance token.
        The gate kiosk polls this and shows the newest one.
        """
        token = str(uuid.uuid4())
        now = _now()

        # Drop whatever has already expired so the table stays small
        expired = [t for t, exp in db.attendance_tokens.items() if exp <= now]
        for t in expired:
            del db.attendance_tokens[t]

        db.attendance_tokens[token] = now + timedelta(seconds=settings.OTT_TTL_SECONDS)
        return {"token": token, "ttlSeconds": settings.OTT_TTL_SECONDS}

    @staticmethod
    def verify_attendance_token(token: str, user_id: str) -> dict:
        """
        Consumes the token and flips the resident between OUT and IN.
        A token can only ever be consumed once.
        """
        expires_at = db.attendance_tokens.pop(token, None)
        if expires_at is None:
            logger.warning(f"Attendance scan failed: user={user_id} token unknown or already used")
            raise ValueError("QR Code Expired or Invalid")

        if expires_at <= _now():
            logger.info(f"Attendance scan failed: user={user_id} token expired")
            raise ValueError("QR Code Expired or Invalid")

        logs = db.attendance_logs.setdefault(user_id, [])
        direction = "OUT"  # First scan is always leaving
        if logs and logs[-1]["direction"] == "OUT":
            direction = "IN"

        logs.append({"direction": direction, "scanned_at": _now(), "token": token})
        logger.info(f"Attendance marked: user={user_id} direction={direction}")
        return {"message": f"Successfully marked as {direction}", "mode": direction}

    @staticmethod
    def render_ascii(data_str: str) -> str:
        """
        Renders a QR code as text for terminal kiosks
        """
        qr = qrcode.QRCode(
            version=1,
            error_correction=qrcode.constants.ERROR_CORRECT_L,
            box_size=1,
            border=2,
        )
        qr.add_data(data_str)
        qr.make(fit=True)

        buffer = io.StringIO()
        qr.print_ascii(out=buffer)
        return buffer.getvalue()
