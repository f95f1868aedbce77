import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from peertutor.api.auth import router as auth_router
from peertutor.api.health import router as health_router
from peertutor.api.sessions import router as sessions_router
from peertutor.api.tutors import router as tutors_router
from peertutor.config import settings
from peertutor.database import engine
from peertutor.errors import PeerTutorError
from peertutor.models import Base

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with engine.begin() as conn:
        if settings.RESET_DB:
            logger.warning("RESET_DB set: dropping all tables")
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    logger.info("PeerTutor API ready")
    try:
        yield
    finally:
        await engine.dispose()


app = FastAPI(title="PeerTutor", version="0.1.0", lifespan=lifespan)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    logger.info(
        "%s %s - %s - %.2fms",
        request.method, request.url.path, response.status_code, (time.perf_counter() - start) * 1000,
    )
    return response


def _error_body(code: str, message: str, details=None) -> dict:
    return {"error": {"code": code, "message": message, "details": details}}


@app.exception_handler(PeerTutorError)
async def domain_error_handler(request: Request, exc: PeerTutorError):
    """Every domain error keeps its kind: forbidden, invalid data, duplicate review and so on."""
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.code, exc.message, exc.details))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_body("VALIDATION_ERROR", "Request validation failed", jsonable_errors(exc)),
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    # ctx may hold exception instances that JSON cannot encode
    return [{k: v for k, v in err.items() if k != "ctx"} for err in exc.errors()]


app.include_router(health_router, prefix="/api")
app.include_router(auth_router, prefix="/api")
app.include_router(tutors_router, prefix="/api")
app.include_router(sessions_router, prefix="/api")


@app.get("/api")
def api_root():
    return {"message": "PeerTutor API"}
