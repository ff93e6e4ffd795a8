import uuid
import secrets
import logging
from datetime import date
from app.db import db
from app.core.config import settings

"""VisitorService: visitor requests and their one-time entry codes"""


logger = logging.getLogger(__name__)


class VisitorService:
    @staticmethod
    def _generate_entry_code() -> str:
        digits = settings.ENTRY_CODE_LENGTH
        low = 10 ** (digits - 1)
        return str(low + secrets.randbelow(9 * low))

    @staticmethod
    def _expire_if_stale(request: dict) -> None:
        if request["status"] in ("PENDING", "APPROVED") and request["visit_date"] < date.today():
            request["status"] = "EXPIRED"
            logger.info(f"Visitor request expired: visitor={request['id']}")

    @staticmethod
    def create_request(resident_id: str, visitor_name: str, visit_date: date) -> dict:
        visitor_id = str(uuid.uuid4())
        db.visitor_requests[visitor_id] = {
            "id": visitor_id,
            "resident_id": resident_id,
            "visitor_name": visitor_name,
            "entry_code": VisitorService._generate_entry_code(),
            "visit_date": visit_date,
            "status": "PENDING",
        }
        return db.visitor_requests[visitor_id]

    @staticmethod
    def approve_request(visitor_id: str) -> dict:
        request = db.visitor_requests.get(visitor_id)
        if not request:
            raise LookupError("Visitor request not found")
        if request["status"] != "PENDING":
            raise ValueError(f"Visitor request is {request['status']}")
        request["status"] = "APPROVED"
        return request

    @staticmethod
    def todays_visitors() -> list:
        today = date.today()
        result = []
        for request in db.visitor_requests.values():
            VisitorService._expire_if_stale(request)
            if request["visit_date"] == today:
                result.append(request)
        return result

    @staticmethod
    def verify_entry_code(visitor_id: str, entry_code: str) -> dict:
        """
        Checks the code a guard typed in and closes the request.
        Only APPROVED requests can be verified, so a request closes at most once.
        """
        request = db.visitor_requests.get(visitor_id)
        if not request:
            logger.warning(f"Visitor verify failed: visitor={visitor_id} not found")
            raise LookupError("Visitor request not found")

        VisitorService._expire_if_stale(request)
        if request["status"] != "APPROVED":
            logger.warning(f"Visitor verify failed: visitor={visitor_id} status={request['status']}")
            raise ValueError("This visitor request is not approved or already verified")

        if not secrets.compare_digest(request["entry_code"], entry_code):
            logger.warning(f"Visitor verify failed: visitor={visitor_id} code mismatch")
            raise ValueError("Invalid entry code")

        request["status"] = "CLOSED"
        logger.info(f"Visitor verified: visitor={visitor_id}")
        return {"message": "Visitor verified successfully", "visitor": serialize_visitor(request)}


def serialize_visitor(request: dict) -> dict:
    return {
        "id": request["id"],
        "visitorName": request["visitor_name"],
        "entryCode": request["entry_code"],
        "visitDate": request["visit_date"].isoformat(),
        "status": request["status"],
    }
