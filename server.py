from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from database.mongodb import db
from config import get_settings
from routes import auth, aircraft, daily_status, aog_events, maintenance, work_orders, discrepancies, budget, dashboard, import_export
import logging

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

settings = get_settings()

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for the app"""
    # Startup
    await db.connect(settings.mongo_url, settings.db_name)
    logger.info(f"Fleet Ops backend started ({settings.environment})")
    yield
    # Shutdown
    await db.disconnect()
    logger.info("Fleet Ops backend stopped")

# Create FastAPI app
app = FastAPI(
    title="Fleet Ops API",
    description="Fleet availability, AOG downtime, maintenance and budget tracking",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth.router)
app.include_router(aircraft.router)
app.include_router(daily_status.router)
app.include_router(aog_events.router)
app.include_router(maintenance.router)
app.include_router(work_orders.router)
app.include_router(discrepancies.router)
app.include_router(budget.router)
app.include_router(dashboard.router)
app.include_router(import_export.router)
app.include_router(import_export.export_router)

@app.get("/")
async def root():
    return {
        "message": "Fleet Ops API",
        "version": "1.0.0",
        "status": "running"
    }

@app.get("/api")
async def api_root():
    return {
        "message": "Fleet Ops API",
        "endpoints": {
            "auth": "/api/auth",
            "aircraft": "/api/aircraft",
            "daily_status": "/api/daily-status",
            "aog_events": "/api/aog-events",
            "maintenance_tasks": "/api/maintenance-tasks",
            "work_orders": "/api/work-orders",
            "discrepancies": "/api/discrepancies",
            "budget": "/api/budget",
            "dashboard": "/api/dashboard",
            "import": "/api/import",
            "export": "/api/export"
        }
    }

@app.get("/health")
async def health_check():
    return {"status": "healthy"}
