"""
Comanda - Application Entry Point
===================================
FastAPI app initialization, background jobs, read models and router registration.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from apscheduler.schedulers.background import BackgroundScheduler

from config import settings
from config.database import SessionLocal, Base, engine
from common.exceptions import ComandaError, http_status_for

scheduler_logger = logging.getLogger("comanda.scheduler")

# ==========================================
# Import ALL models so Alembic/Base can see them
# ==========================================
from modules.user.models import User  # noqa: F401
from modules.order.models import Order  # noqa: F401
from modules.occupancy.models import OccupiedTable  # noqa: F401
from modules.settlement.models import RoomRecharge, EmployeeRecharge, EventRecharge, Invoice  # noqa: F401
from modules.report.models import ShiftReport  # noqa: F401

# Registers the session hooks that feed the change stream
import modules.realtime.feed  # noqa: F401

# ==========================================
# Import routers
# ==========================================
from modules.order.routes import router as order_router
from modules.occupancy.routes import router as occupancy_router
from modules.settlement.routes import router as settlement_router
from modules.kitchen.routes import router as kitchen_router
from modules.reception.routes import router as reception_router
from modules.report.routes import router as report_router
from modules.user.routes import router as user_router
from modules.realtime.routes import router as realtime_router

from modules.occupancy.tracker import occupancy_tracker
from modules.kitchen.projector import kitchen_projector


# ==========================================
# Background Scheduler: Shift Report Auto-Publish
# ==========================================
def _auto_publish_shift_report():
    """Background job: publish the shift report during the grace minute (13:59 / 21:59)."""
    db = SessionLocal()
    try:
        from modules.report.service import report_service
        report = report_service.auto_publish(db)
        if report:
            scheduler_logger.info(f"Auto-published report {report.business_date} {report.shift}")
    except Exception as e:
        db.rollback()
        scheduler_logger.error(f"Report auto-publish error: {e}")
    finally:
        db.close()


scheduler = BackgroundScheduler()


@asynccontextmanager
async def lifespan(app):
    # Auto-create any missing tables (safe for existing tables)
    Base.metadata.create_all(bind=engine)

    occupancy_tracker.start()
    kitchen_projector.start()

    if settings.REPORT_AUTO_PUBLISH:
        scheduler.add_job(_auto_publish_shift_report, 'interval', seconds=60, id='shift_report_auto_publish', replace_existing=True)
        scheduler.start()
        scheduler_logger.info("Background scheduler started (shift report: 60s)")
    yield
    if scheduler.running:
        scheduler.shutdown()
        scheduler_logger.info("Background scheduler stopped")

    kitchen_projector.stop()
    occupancy_tracker.stop()


# ==========================================
# Create App
# ==========================================
app = FastAPI(
    title="Comanda",
    description="Pedidos de restaurante: mesas, cocina, recepción y reportes por turno",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url=None,
    lifespan=lifespan,
)


# ==========================================
# Exception handler: business errors raised outside route try-blocks
# ==========================================
@app.exception_handler(ComandaError)
async def comanda_exception_handler(request: Request, exc: ComandaError):
    return JSONResponse({"detail": exc.message}, status_code=http_status_for(exc))


# ==========================================
# Register Routers
# ==========================================
app.include_router(order_router)
app.include_router(occupancy_router)
app.include_router(settlement_router)
app.include_router(kitchen_router)
app.include_router(reception_router)
app.include_router(report_router)
app.include_router(user_router)
app.include_router(realtime_router)


# ==========================================
# Health check
# ==========================================
@app.get("/health")
async def health():
    return {"status": "ok", "version": "1.0.0"}
