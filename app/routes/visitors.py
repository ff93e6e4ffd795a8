# Visitor requests, approval, today's list and one-time entry code verification.

from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from app.routes.deps import get_current_user, require_role
from app.services.limiter import entry_code_limiter
from app.services.visitor_service import VisitorService, serialize_visitor

router = APIRouter(prefix="/visitors", tags=["visitors"])


class VisitorResp(BaseModel):
    id: str
    visitorName: str
    entryCode: str
    visitDate: str
    status: str

class VisitorReq(BaseModel):
    visitorName: str
    visitDate: date

class VerifyReq(BaseModel):
    visitorId: str
    entryCode: str

class VerifyResp(BaseModel):
    message: str
    visitor: VisitorResp


@router.get("/today", response_model=list[VisitorResp])
def todays_visitors(user: dict = Depends(get_current_user)):
    return [serialize_visitor(r) for r in VisitorService.todays_visitors()]


@router.post("/verify", response_model=VerifyResp)
def verify(req: VerifyReq, request: Request, user: dict = Depends(get_current_user)):
    entry_code_limiter.check(request)
    try:
        return VisitorService.verify_entry_code(req.visitorId, req.entryCode)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("", response_model=VisitorResp, status_code=201)
def request_visit(req: VisitorReq, user: dict = Depends(require_role("RESIDENT"))):
    request = VisitorService.create_request(user["userId"], req.visitorName, req.visitDate)
    return serialize_visitor(request)


@router.post("/{visitor_id}/approve", response_model=VisitorResp)
def approve_visit(visitor_id: str, user: dict = Depends(require_role("SECURITY"))):
    try:
        return serialize_visitor(VisitorService.approve_request(visitor_id))
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
