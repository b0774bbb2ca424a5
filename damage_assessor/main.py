from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from damage_assessor.api.deps import get_assessment_store, get_object_store
from damage_assessor.api.middleware import AuditMiddleware, CORSHeadersMiddleware
from damage_assessor.api.router import api_router
from damage_assessor.common.exceptions import AssessorException
from damage_assessor.common.logging import setup_logging
from damage_assessor.config import settings


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    # Backends are chosen once per process
    store = get_assessment_store()
    get_object_store()
    yield
    await store.close()


app = FastAPI(
    title="Damage Assessor API",
    description="Assessment persistence and photo upload for site damage reviews",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(AuditMiddleware)
app.add_middleware(CORSHeadersMiddleware, allowed_origins=settings.ALLOWED_ORIGINS)

app.include_router(api_router, prefix="/api")


# --- Error responses ---


@app.exception_handler(AssessorException)
async def assessor_exception_handler(request: Request, exc: AssessorException):
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    messages = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        messages.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return JSONResponse({"error": "; ".join(messages) or "Invalid request"}, status_code=400)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    # Unknown paths and unsupported methods look the same to clients
    if exc.status_code in (404, 405):
        return PlainTextResponse("Not Found", status_code=404)
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code)
