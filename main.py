import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

import database
import settings
from envelope import error_response, now_iso
from errors import AppError, InternalError
from middleware import limiter, log_requests, rate_limit_exceeded
from applications import router as applications_router
from contacts import router as contacts_router
from hackathons import router as hackathons_router
from messages import router as messages_router
from projects import router as projects_router
from users import router as users_router

logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    owns_connection = database.db is None
    if owns_connection:
        try:
            database.connect()
        except PyMongoError:
            logger.exception("Could not initialise MongoDB at startup")
    yield
    if owns_connection:
        database.close()


app = FastAPI(title="Team Formation API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL] if settings.FRONTEND_URL else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded)
app.add_middleware(SlowAPIMiddleware)
app.middleware("http")(log_requests)

# --------- Error handlers ---------

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=error_response(exc.message, exc.code, exc.details))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    messages = []
    for err in exc.errors():
        field = ".".join(str(p) for p in err.get("loc", ())[1:])
        messages.append(f"{field}: {err.get('msg')}" if field else err.get("msg"))
    return JSONResponse(status_code=400, content=error_response(", ".join(messages) or "Validation failed", "VALIDATION_ERROR", messages))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        message, code = f"Route {request.method} {request.url.path} not found", "NOT_FOUND"
    else:
        message, code = str(exc.detail), "HTTP_ERROR"
    return JSONResponse(status_code=exc.status_code, content=error_response(message, code))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    err = InternalError()
    details = None if settings.IS_PRODUCTION else repr(exc)
    return JSONResponse(status_code=err.status_code, content=error_response(err.message, err.code, details))


# --------- Routers ---------

app.include_router(users_router)
app.include_router(projects_router)
app.include_router(applications_router)
app.include_router(messages_router)
app.include_router(contacts_router)
app.include_router(hackathons_router)

# --------- Root & Health ---------

@app.get("/")
def read_root():
    return {"message": "Team Formation Backend Running"}


@app.get("/health")
@limiter.exempt
def health():
    return {
        "status": "OK",
        "message": "Server is running",
        "database": "connected" if database.db is not None and database.ping() else "unavailable",
        "timestamp": now_iso(),
    }


@app.get("/api")
def api_index():
    return {
        "message": "Team Formation API",
        "environment": settings.ENVIRONMENT,
        "endpoints": {
            "auth": "/api/auth",
            "users": "/api/users",
            "projects": "/api/projects",
            "applications": "/api/applications",
            "messages": "/api/projects/{id}/messages",
            "contact": "/api/contact",
            "hackathons": "/api/hackathons",
            "health": "/health",
        },
    }


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", settings.PORT))
    uvicorn.run(app, host="0.0.0.0", port=port)
