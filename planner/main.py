import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from planner.config import get_settings
from planner.database import init_db
from planner.errors import PlannerError
from planner.rate_limit import limiter
from planner.routers import admin, chat, comments, events, goodies, posts, stream
from planner.services.broadcast import BroadcastHub, SSEMirror

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Convention Planner",
    description="Event planner and goodie tracker with live updates and a tool-calling chat assistant",
    version="1.0.0",
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# One hub per process; the SSE room mirrors everything it publishes
app.state.sse_mirror = SSEMirror(maxsize=settings.ws_queue_size)
app.state.hub = BroadcastHub(mirror=app.state.sse_mirror)


# ============== Global Error Handlers ==============

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Return a consistent JSON format for validation errors."""
    errors = []
    for err in exc.errors():
        field = " -> ".join(str(loc) for loc in err["loc"] if loc != "body")
        errors.append(f"{field}: {err['msg']}" if field else err["msg"])
    return JSONResponse(
        status_code=422,
        content={"error": "Validation error", "detail": "; ".join(errors)},
    )


@app.exception_handler(PlannerError)
async def planner_exception_handler(request: Request, exc: PlannerError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error, "detail": exc.detail},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Catch-all for unhandled exceptions: log full traceback, return safe message."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "detail": "An unexpected error occurred."},
    )


# API routers (JSON endpoints, prefixed with /api)
api_prefix = "/api"
app.include_router(stream.router, prefix=api_prefix)  # before events: /events/stream
app.include_router(events.router, prefix=api_prefix)
app.include_router(comments.router, prefix=api_prefix)
app.include_router(goodies.router, prefix=api_prefix)
app.include_router(chat.router, prefix=api_prefix)
app.include_router(posts.router, prefix=api_prefix)
app.include_router(admin.router, prefix=api_prefix)


# ============== CORS Middleware ==============
_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()] if settings.cors_origins else ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup():
    """Initialize database and the broadcast hub on startup."""
    init_db()
    app.state.hub.init()
    logger.info("Broadcast hub ready")


@app.on_event("shutdown")
def on_shutdown():
    """Close live subscribers so their transports wind down."""
    app.state.hub.shutdown()


@app.get("/health")
def health_check():
    """Health check endpoint: verifies DB connectivity."""
    from sqlalchemy import text
    from planner.database import SessionLocal

    checks = {"db": "ok", "subscribers": len(app.state.hub)}
    status = "healthy"

    try:
        db = SessionLocal()
        db.execute(text("SELECT 1"))
        db.close()
    except Exception as e:
        checks["db"] = str(e)
        status = "unhealthy"

    code = 200 if status == "healthy" else 503
    return JSONResponse(status_code=code, content={"status": status, "checks": checks})


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("planner.main:app", host="0.0.0.0", port=8000, reload=True)
