import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from timecost.core.config import settings
from timecost.core.exceptions import AuthorizationError, TimerConflictError, ValidationError
from timecost.api.v1.time_entries import router as time_entries_router
from timecost.api.v1.cost_analytics import router as cost_analytics_router
from timecost.api.v1.budgets import router as budgets_router
from timecost.db.mongo import get_mongo_client, close_mongo_client
from timecost.db.mongo_indexes import ensure_indexes
from timecost.services.timer_engine import drain_events

logging.basicConfig(level=settings.LOG_LEVEL)

app = FastAPI(title="Timecost Backend")

# Build CORS allowlist from local dev + configured origins
_base_origins = {
    "http://localhost:5173",
    "http://127.0.0.1:5173",
}
if settings.FRONTEND_BASE_URL:
    _base_origins.add(settings.FRONTEND_BASE_URL)
for o in settings.ALLOWED_ORIGINS:
    _base_origins.add(o)
# Normalize by stripping trailing slashes to match Origin header format
_allowed_origins = sorted({o.rstrip('/') for o in _base_origins if o})

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_origin_regex=r"^http(s)?://(localhost|127\.0\.0\.1)(:\d+)?$",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(AuthorizationError)
async def authorization_error_handler(request: Request, exc: AuthorizationError):
    return JSONResponse(status_code=403, content={"detail": str(exc)})


@app.exception_handler(TimerConflictError)
async def timer_conflict_handler(request: Request, exc: TimerConflictError):
    logging.getLogger("uvicorn.error").warning("Timer conflict on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.get("/")
def read_root():
    return {"message": "Welcome to Timecost Backend"}


@app.get("/health")
def health_check():
    return {"status": "ok"}


# Mount API routers
app.include_router(time_entries_router, prefix="/api/v1")
app.include_router(cost_analytics_router, prefix="/api/v1")
app.include_router(budgets_router, prefix="/api/v1")


@app.on_event("startup")
async def on_startup():
    # Initialize Mongo client
    get_mongo_client()
    # Create required indexes (non-fatal on failure)
    try:
        await ensure_indexes()
    except Exception as exc:
        logging.getLogger("uvicorn.error").warning(
            "Mongo index initialization failed: %s", exc
        )


@app.on_event("shutdown")
async def on_shutdown():
    await drain_events()
    # Close Mongo client
    close_mongo_client()
