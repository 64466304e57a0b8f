"""
Main FastAPI application for the gym payments API.
Serves gateway, bank transfer, refund request and report routes, health, metrics and receipts.
"""
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from gympay.api.middleware import RequestLoggingMiddleware
from gympay.api.routes import admin, bank_transfers, gateway, health, payments, refund_requests, reports
from gympay.core.config import settings
from gympay.core.errors import register_error_handlers
from gympay.core.logging import configure_logging
from gympay.utils.metrics import router as metrics_router


configure_logging()

app = FastAPI(
    title="Gym Payments API",
    description="Payments, bank transfers, refund requests and reports",
    version="1.0.0",
)

# CORS
origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
if not origins:
    origins = [settings.frontend_url, "http://localhost:3000", "http://127.0.0.1:3000"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

register_error_handlers(app)

# Routers
app.include_router(health.router, tags=["health"])
app.include_router(gateway.router)
app.include_router(bank_transfers.router)
app.include_router(payments.router)
app.include_router(refund_requests.router)
app.include_router(reports.router)
app.include_router(admin.router)
app.include_router(metrics_router)

# Uploaded receipts
os.makedirs(settings.uploads_dir, exist_ok=True)
app.mount(settings.uploads_url_prefix, StaticFiles(directory=settings.uploads_dir), name="uploads")
