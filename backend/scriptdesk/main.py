from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from .routes_activity import router as activity_router
from .routes_auth import router as auth_router
from .routes_contacts import admin_router as contacts_admin_router, router as contacts_router
from .routes_contractors import admin_router as contractors_admin_router, router as contractors_router
from .routes_dashboard import router as dashboard_router
from .routes_files import router as files_router
from .routes_pricing import payments_router, router as pricing_router
from .routes_reviews import admin_router as reviews_admin_router, router as reviews_router
from .routes_scripts import (
    admin_router as scripts_admin_router,
    contractor_router,
    router as scripts_router,
)
from .routes_scheduler import router as scheduler_router
from .routes_settings import router as settings_router

logger = logging.getLogger("app")

app = FastAPI(title="scriptdesk")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url)
    return PlainTextResponse("Internal Server Error", status_code=500)


@app.get("/ping")
async def ping():
    return {"status": "ok"}


app.include_router(auth_router)
app.include_router(scripts_router)
app.include_router(scripts_admin_router)
app.include_router(contractor_router)
app.include_router(contractors_router)
app.include_router(contractors_admin_router)
app.include_router(reviews_router)
app.include_router(reviews_admin_router)
app.include_router(pricing_router)
app.include_router(payments_router)
app.include_router(contacts_router)
app.include_router(contacts_admin_router)
app.include_router(settings_router)
app.include_router(dashboard_router)
app.include_router(activity_router)
app.include_router(files_router)
app.include_router(scheduler_router)


@app.on_event("startup")
async def startup_event():
    """Start scheduler on app startup."""
    from .services.scheduler import scheduler_service
    scheduler_service.start()


@app.on_event("shutdown")
async def shutdown_event():
    """Stop scheduler on app shutdown."""
    from .services.scheduler import scheduler_service
    scheduler_service.stop()
