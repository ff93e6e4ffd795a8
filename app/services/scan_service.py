import uuid
import logging
from datetime import datetime, timezone
from app.db import db
from app.core.security import sign_gate_pass

"""ScanService: gate pass and smart mess token lifecycles, checked at the scanner"""


logger = logging.getLogger(__name__)

GATE_PASS_TYPES = ("ENTRY", "EXIT", "OVERNIGHT")
MEAL_TYPES = ("BREAKFAST", "LUNCH", "SNACKS", "DINNER")


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ScanService:
    @staticmethod
    def create_gate_pass(user_id: str, pass_type: str) -> dict:
        if pass_type not in GATE_PASS_TYPES:
            raise ValueError(f"Unknown gate pass type {pass_type}")

        pass_id = str(uuid.uuid4())
        db.gate_passes[pass_id] = {
            "id": pass_id,
            "user_id": user_id,
            "type": pass_type,
            "status": "PENDING",
            "qr_token": None,
            "actual_out_time": None,
            "actual_in_time": None,
        }
        return db.gate_passes[pass_id]

    @staticmethod
    def approve_gate_pass(pass_id: str) -> dict:
        """
        Approves a pending pass and attaches its signed GATE: token.
        """
        gate_pass = db.gate_passes.get(pass_id)
        if not gate_pass:
            raise LookupError("Gate pass not found")
        if gate_pass["status"] != "PENDING":
            raise ValueError(f"Pass is {gate_pass['status']} - cannot approve")

        gate_pass["status"] = "APPROVED"
        gate_pass["qr_token"] = sign_gate_pass(pass_id)
        logger.info(f"Gate pass approved: pass={pass_id} type={gate_pass['type']}")
        return gate_pass

    @staticmethod
    def scan_gate_pass(qr_token: str) -> dict:
        """
        Moves a pass one step through its lifecycle.

        OVERNIGHT passes go APPROVED -> ACTIVE (out) -> CLOSED (in),
        ENTRY and EXIT passes close on their single scan.
        """
        gate_pass = next((p for p in db.gate_passes.values() if p["qr_token"] == qr_token), None)
        if not gate_pass:
            logger.warning("Gate scan failed: token unknown")
            raise ValueError("Invalid QR Code")

        pass_type = gate_pass["type"]
        status = gate_pass["status"]

        if pass_type == "OVERNIGHT" and status == "APPROVED":
            gate_pass["status"] = "ACTIVE"
            gate_pass["actual_out_time"] = _now()
            return {"message": "Allowed: OUT", "mode": "OUT", "type": pass_type}

        if pass_type == "OVERNIGHT" and status == "ACTIVE":
            gate_pass["status"] = "CLOSED"
            gate_pass["actual_in_time"] = _now()
            return {"message": "Allowed: IN (Welcome Back)", "mode": "IN", "type": pass_type}

        if pass_type == "ENTRY" and status == "APPROVED":
            gate_pass["status"] = "CLOSED"
            gate_pass["actual_in_time"] = _now()
            return {"message": "Allowed: IN (Late Entry)", "mode": "IN", "type": pass_type}

        if pass_type == "EXIT" and status == "APPROVED":
            gate_pass["status"] = "CLOSED"
            gate_pass["actual_out_time"] = _now()
            return {"message": "Allowed: OUT (Late Exit)", "mode": "OUT", "type": pass_type}

        logger.warning(f"Gate scan rejected: pass={gate_pass['id']} status={status}")
        raise ValueError(f"Pass is {status} - Invalid Scan")

    @staticmethod
    def opt_in_meal(user_id: str, meal_type: str) -> dict:
        if meal_type not in MEAL_TYPES:
            raise ValueError(f"Unknown meal type {meal_type}")

        for entry in db.mess_entries.values():
            if entry["user_id"] == user_id and entry["meal_type"] == meal_type and entry["status"] == "OPTED_IN":
                raise ValueError("Already opted in for this meal")

        entry_id = str(uuid.uuid4())
        db.mess_entries[entry_id] = {
            "id": entry_id,
            "user_id": user_id,
            "meal_type": meal_type,
            "qr_token": f"MESS:{uuid.uuid4()}",
            "status": "OPTED_IN",
            "scanned_at": None,
        }
        return db.mess_entries[entry_id]

    @staticmethod
    def scan_mess_token(qr_token: str) -> dict:
        entry = next((e for e in db.mess_entries.values() if e["qr_token"] == qr_token), None)
        if not entry:
            logger.warning("Mess scan failed: token unknown")
            raise ValueError("Invalid Mess Token")

        if entry["status"] == "SCANNED":
            logger.warning(f"Mess scan rejected: entry={entry['id']} already claimed")
            raise ValueError("Meal already claimed!")

        entry["status"] = "SCANNED"
        entry["scanned_at"] = _now()
        logger.info(f"Meal served: entry={entry['id']} meal={entry['meal_type']}")
        return {"message": "Meal Served Successfully", "mode": "IN", "type": entry["meal_type"]}
