import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from syndicpro.core.config import settings
from syndicpro.core.database import SessionLocal
from syndicpro.core.exceptions import StoreError
from syndicpro.realtime.feed import ChangeFeed
from syndicpro.services.reconciler import PaymentReconciler
from syndicpro.api.routes.apartments import router as apartments_router
from syndicpro.api.routes.payments import router as payments_router
from syndicpro.api.routes.expenses import router as expenses_router
from syndicpro.api.routes.app_settings import router as settings_router
from syndicpro.api.routes.profiles import router as profiles_router
from syndicpro.api.routes.dashboard import router as dashboard_router
from syndicpro.api.routes.audit_logs import router as audit_logs_router
from syndicpro.api.routes.realtime import router as realtime_router

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)

# 1) Create the app FIRST
app = FastAPI(title="SyndicPro Backend")

# Shared per-process state: one change feed, one single-flight reconciler
app.state.change_feed = ChangeFeed()
app.state.reconciler = PaymentReconciler()

# 2) Add CORS Middleware BEFORE routes
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.warning("Store error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": str(exc)})


# 3) Include routers AFTER app is created
app.include_router(apartments_router)
app.include_router(payments_router)
app.include_router(expenses_router)
app.include_router(settings_router)
app.include_router(profiles_router)
app.include_router(dashboard_router)
app.include_router(audit_logs_router)
app.include_router(realtime_router)


# 4) Health check endpoints
@app.get("/health")
def health():
    return {"ok": True, "service": "syndicpro"}

@app.get("/db-health")
def db_health():
    db = SessionLocal()
    try:
        db.execute(text("select 1"))
        return {"ok": True, "db": "connected"}
    finally:
        db.close()
