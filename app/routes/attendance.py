# Gate attendance: rotating one-time QR tokens and their consumption.

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from app.routes.deps import get_current_user
from app.services.qr_service import QRService

router = APIRouter(prefix="/attendance", tags=["attendance"])


class GenerateResp(BaseModel):
    token: str
    ttlSeconds: int

class VerifyReq(BaseModel):
    token: str

class VerifyResp(BaseModel):
    message: str
    mode: str


@router.get("/generate-qr", response_model=GenerateResp)
def generate_qr(user: dict = Depends(get_current_user)):
    return QRService.generate_attendance_token()


@router.post("/verify-qr", response_model=VerifyResp)
def verify_qr(req: VerifyReq, user: dict = Depends(get_current_user)):
    try:
        return QRService.verify_attendance_token(req.token, user["userId"])
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
