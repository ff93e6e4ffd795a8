# FastAPI application entry point that initialises
# the reference portal backend and registers API routes.

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from app.routes.auth import router as auth_router
from app.routes.attendance import router as attendance_router
from app.routes.scan import gate_router, mess_router
from app.routes.visitors import router as visitors_router
from app.core.config import settings

app = FastAPI(title=settings.APP_NAME)
app.include_router(auth_router)
app.include_router(attendance_router)
app.include_router(gate_router)
app.include_router(mess_router)
app.include_router(visitors_router)


@app.exception_handler(StarletteHTTPException)
async def message_envelope(request: Request, exc: StarletteHTTPException):
    # Every error body is {"message": ...}; clients show it verbatim
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )

@app.get("/health")
def health():
    return {"ok": True}
