from typing import Dict
from datetime import datetime


class InMemoryDB:
    def __init__(self):
        # email -> { "id": str, "name": str, "email": str, "password": str, "role": str, "is_active": bool }
        self.users: Dict[str, dict] = {
            "alice@hostel.test": {
                "id": "u-alice",
                "name": "Alice",
                "email": "alice@hostel.test",
                "password": "password123",
                "role": "RESIDENT",
                "is_active": True,
            },
            "guard@hostel.test": {
                "id": "u-guard",
                "name": "Gate Guard",
                "email": "guard@hostel.test",
                "password": "securepass",
                "role": "SECURITY",
                "is_active": True,
            },
        }

        # "user_id:session_id" -> refresh token currently valid for that session
        self.refresh_tokens: Dict[str, str] = {}

        # attendance token -> expires_at (datetime)
        self.attendance_tokens: Dict[str, datetime] = {}

        # user_id -> list of { "direction": "IN"|"OUT", "scanned_at": datetime, "token": str }
        self.attendance_logs: Dict[str, list] = {}

        # pass_id -> { "id", "user_id", "type", "status", "qr_token", "actual_out_time", "actual_in_time" }
        self.gate_passes: Dict[str, dict] = {}

        # mess_id -> { "id", "user_id", "meal_type", "qr_token", "status", "scanned_at" }
        self.mess_entries: Dict[str, dict] = {}

        # visitor_id -> { "id", "resident_id", "visitor_name", "entry_code", "visit_date", "status" }
        self.visitor_requests: Dict[str, dict] = {}

    def reset(self) -> None:
        self.__init__()

db = InMemoryDB()
