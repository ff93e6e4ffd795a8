# Gate pass and smart mess endpoints: residents request passes and opt in to
# meals, security approves passes and scans both kinds of token.

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from app.routes.deps import get_current_user, require_role
from app.services.scan_service import ScanService

gate_router = APIRouter(prefix="/gate-pass", tags=["gate-pass"])
mess_router = APIRouter(prefix="/smart-mess", tags=["smart-mess"])


class ScanReq(BaseModel):
    qrToken: str

class ScanResp(BaseModel):
    message: str
    mode: str
    type: str | None = None

class GatePassReq(BaseModel):
    type: str

class GatePassResp(BaseModel):
    id: str
    type: str
    status: str
    qrToken: str | None = None

class OptInReq(BaseModel):
    mealType: str

class OptInResp(BaseModel):
    id: str
    mealType: str
    status: str
    qrToken: str


def _gate_pass(gate_pass: dict) -> dict:
    return {
        "id": gate_pass["id"],
        "type": gate_pass["type"],
        "status": gate_pass["status"],
        "qrToken": gate_pass["qr_token"],
    }


@gate_router.post("", response_model=GatePassResp, status_code=201)
def request_gate_pass(req: GatePassReq, user: dict = Depends(require_role("RESIDENT"))):
    try:
        return _gate_pass(ScanService.create_gate_pass(user["userId"], req.type))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@gate_router.post("/{pass_id}/approve", response_model=GatePassResp)
def approve_gate_pass(pass_id: str, user: dict = Depends(require_role("SECURITY"))):
    try:
        return _gate_pass(ScanService.approve_gate_pass(pass_id))
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@gate_router.post("/scan", response_model=ScanResp)
def scan_gate_pass(req: ScanReq, user: dict = Depends(get_current_user)):
    try:
        return ScanService.scan_gate_pass(req.qrToken)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@mess_router.post("/opt-in", response_model=OptInResp, status_code=201)
def opt_in(req: OptInReq, user: dict = Depends(require_role("RESIDENT"))):
    try:
        entry = ScanService.opt_in_meal(user["userId"], req.mealType)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "id": entry["id"],
        "mealType": entry["meal_type"],
        "status": entry["status"],
        "qrToken": entry["qr_token"],
    }


@mess_router.post("/scan", response_model=ScanResp)
def scan_mess(req: ScanReq, user: dict = Depends(get_current_user)):
    try:
        return ScanService.scan_mess_token(req.qrToken)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
