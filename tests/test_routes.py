from datetime import date, timedelta, datetime, timezone
from fastapi.testclient import TestClient
from app.main import app
from app.core.config import settings
from app.db import db
from app.services.qr_service import QRService
from app.services.scan_service import ScanService
from app.services.visitor_service import VisitorService

client = TestClient(app)


# Helper to log in and build the bearer header
def login(email="guard@hostel.test", password="securepass"):
    resp = client.post("/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200
    return resp.json()

def bearer(tokens):
    return {"Authorization": f"Bearer {tokens['accessToken']}"}


def test_health():
    assert client.get("/health").json() == {"ok": True}

def test_login_returns_identity_and_token_pair():
    data = login("alice@hostel.test", "password123")
    assert data["user"]["id"] == "u-alice"
    assert data["accessToken"] and data["refreshToken"]
    assert len(db.refresh_tokens) == 1

def test_login_failure_uses_message_envelope():
    resp = client.post("/auth/login", json={"email": "alice@hostel.test", "password": "nope"})
    assert resp.status_code == 401
    assert resp.json() == {"message": "Invalid Credentials"}

def test_protected_route_requires_bearer():
    resp = client.get("/attendance/generate-qr")
    assert resp.status_code == 401
    assert resp.json()["message"] == "Unauthenticated"

    resp = client.get("/attendance/generate-qr", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401

def test_refresh_issues_new_access_token():
    tokens = login()
    resp = client.post("/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
    assert resp.status_code == 200

    renewed = {"accessToken": resp.json()["accessToken"]}
    assert client.get("/visitors/today", headers=bearer(renewed)).status_code == 200

def test_refresh_rejected_with_403():
    resp = client.post("/auth/refresh", json={"refreshToken": "garbage"})
    assert resp.status_code == 403
    assert resp.json()["message"] == "Session expired, please login again"

    # Access token signed with the wrong secret is not a refresh token
    tokens = login()
    resp = client.post("/auth/refresh", json={"refreshToken": tokens["accessToken"]})
    assert resp.status_code == 403

def test_logout_closes_session():
    tokens = login()
    resp = client.post("/auth/logout", headers=bearer(tokens))
    assert resp.status_code == 200

    assert client.get("/visitors/today", headers=bearer(tokens)).status_code == 401
    resp = client.post("/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
    assert resp.status_code == 403

def test_attendance_token_single_use_and_expiry():
    headers = bearer(login())

    # 1. Issue
    resp = client.get("/attendance/generate-qr", headers=headers)
    assert resp.status_code == 200
    token = resp.json()["token"]
    assert resp.json()["ttlSeconds"] == settings.OTT_TTL_SECONDS

    # 2. Consume
    resp = client.post("/attendance/verify-qr", json={"token": token}, headers=headers)
    assert resp.status_code == 200
    assert resp.json() == {"message": "Successfully marked as OUT", "mode": "OUT"}

    # 3. Replay
    resp = client.post("/attendance/verify-qr", json={"token": token}, headers=headers)
    assert resp.status_code == 400

    # 4. Expired token
    token = QRService.generate_attendance_token()["token"]
    db.attendance_tokens[token] = datetime.now(timezone.utc) - timedelta(seconds=1)
    resp = client.post("/attendance/verify-qr", json={"token": token}, headers=headers)
    assert resp.status_code == 400
    assert resp.json()["message"] == "QR Code Expired or Invalid"

def test_entry_and_exit_passes_close_on_first_scan():
    headers = bearer(login())
    for pass_type, mode in (("ENTRY", "IN"), ("EXIT", "OUT")):
        gate_pass = ScanService.create_gate_pass("u-alice", pass_type)
        qr_token = ScanService.approve_gate_pass(gate_pass["id"])["qr_token"]
        assert qr_token.startswith("GATE:")

        resp = client.post("/gate-pass/scan", json={"qrToken": qr_token}, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["mode"] == mode

        resp = client.post("/gate-pass/scan", json={"qrToken": qr_token}, headers=headers)
        assert resp.status_code == 400
        assert resp.json()["message"] == "Pass is CLOSED - Invalid Scan"

def test_unknown_gate_token():
    resp = client.post("/gate-pass/scan", json={"qrToken": "GATE:forged"}, headers=bearer(login()))
    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid QR Code"

def test_visitor_verify_route():
    headers = bearer(login())
    request = VisitorService.create_request("u-alice", "Bob", date.today())
    assert len(request["entry_code"]) == settings.ENTRY_CODE_LENGTH
    assert request["entry_code"].isdigit()
    VisitorService.approve_request(request["id"])

    body = {"visitorId": request["id"], "entryCode": request["entry_code"]}
    resp = client.post("/visitors/verify", json=body, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["visitor"]["status"] == "CLOSED"

    resp = client.post("/visitors/verify", json=body, headers=headers)
    assert resp.status_code == 400

def test_login_rate_limited():
    original = settings.MAX_REQUESTS_PER_MINUTE
    settings.MAX_REQUESTS_PER_MINUTE = 3
    try:
        for _ in range(3):
            client.post("/auth/login", json={"email": "alice@hostel.test", "password": "nope"})
        resp = client.post("/auth/login", json={"email": "alice@hostel.test", "password": "password123"})
        assert resp.status_code == 429
        assert "Too many login attempts" in resp.json()["message"]
        assert int(resp.headers["Retry-After"]) > 0
    finally:
        settings.MAX_REQUESTS_PER_MINUTE = original

def test_render_ascii_qr():
    text = QRService.render_ascii("0f6c1e5e-1d7a-4d59-9a39-7d1f2a6f9b11")
    assert text.count("\n") > 10

def test_overnight_pass_requested_approved_and_scanned_over_http():
    resident = bearer(login("alice@hostel.test", "password123"))
    guard = bearer(login())

    resp = client.post("/gate-pass", json={"type": "OVERNIGHT"}, headers=resident)
    assert resp.status_code == 201
    assert resp.json()["status"] == "PENDING"
    assert resp.json()["qrToken"] is None
    pass_id = resp.json()["id"]

    # Residents cannot approve their own pass
    assert client.post(f"/gate-pass/{pass_id}/approve", headers=resident).status_code == 403

    resp = client.post(f"/gate-pass/{pass_id}/approve", headers=guard)
    assert resp.status_code == 200
    qr_token = resp.json()["qrToken"]

    modes = [client.post("/gate-pass/scan", json={"qrToken": qr_token}, headers=guard).json()["mode"] for _ in range(2)]
    assert modes == ["OUT", "IN"]

    resp = client.post(f"/gate-pass/{pass_id}/approve", headers=guard)
    assert resp.status_code == 400
    assert client.post("/gate-pass/missing/approve", headers=guard).status_code == 404

def test_meal_opt_in_then_claim_once():
    resident = bearer(login("alice@hostel.test", "password123"))
    guard = bearer(login())

    resp = client.post("/smart-mess/opt-in", json={"mealType": "LUNCH"}, headers=resident)
    assert resp.status_code == 201
    qr_token = resp.json()["qrToken"]
    assert qr_token.startswith("MESS:")

    resp = client.post("/smart-mess/opt-in", json={"mealType": "LUNCH"}, headers=resident)
    assert resp.status_code == 400

    resp = client.post("/smart-mess/scan", json={"qrToken": qr_token}, headers=guard)
    assert resp.json() == {"message": "Meal Served Successfully", "mode": "IN", "type": "LUNCH"}
    resp = client.post("/smart-mess/scan", json={"qrToken": qr_token}, headers=guard)
    assert resp.json()["message"] == "Meal already claimed!"

def test_visitor_requested_and_approved_over_http():
    resident = bearer(login("alice@hostel.test", "password123"))
    guard = bearer(login())

    resp = client.post("/visitors", json={"visitorName": "Bob", "visitDate": date.today().isoformat()}, headers=resident)
    assert resp.status_code == 201
    visitor = resp.json()
    assert visitor["status"] == "PENDING"

    assert client.post(f"/visitors/{visitor['id']}/approve", headers=resident).status_code == 403
    resp = client.post(f"/visitors/{visitor['id']}/approve", headers=guard)
    assert resp.json()["status"] == "APPROVED"

    body = {"visitorId": visitor["id"], "entryCode": visitor["entryCode"]}
    resp = client.post("/visitors/verify", json=body, headers=guard)
    assert resp.json()["visitor"]["status"] == "CLOSED"
