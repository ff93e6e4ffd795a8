# Authentication-related routes: login, access token renewal and logout.

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from app.routes.deps import get_current_user
from app.services.auth_service import AuthService
from app.services.limiter import login_limiter

router = APIRouter(prefix="/auth", tags=["auth"])


class LoginReq(BaseModel):
    email: str
    password: str

class UserResp(BaseModel):
    id: str
    name: str
    email: str
    role: str

class LoginResp(BaseModel):
    user: UserResp
    accessToken: str
    refreshToken: str

class RefreshReq(BaseModel):
    refreshToken: str

class RefreshResp(BaseModel):
    accessToken: str

class MessageResp(BaseModel):
    message: str


@router.post("/login", response_model=LoginResp)
def login(req: LoginReq, request: Request):
    login_limiter.check(request)
    try:
        return AuthService.login(req.email, req.password)
    except ValueError as e:
        raise HTTPException(status_code=401, detail=str(e))


@router.post("/refresh", response_model=RefreshResp)
def refresh(req: RefreshReq):
    # A rejected renewal is 403, never 401, so the client cannot loop on it
    try:
        return AuthService.refresh(req.refreshToken)
    except ValueError as e:
        raise HTTPException(status_code=403, detail=str(e))


@router.post("/logout", response_model=MessageResp)
def logout(user: dict = Depends(get_current_user)):
    AuthService.logout(user)
    return MessageResp(message="Logged out successfully")
