"""Main FastAPI application"""
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from app.core.config import settings
from app.core.logging_config import configure_logging
from app.core.redis import redis_client
from app.core.init import init_system
from app.services.dns_load_balancer import build_load_balancer_service
from app.services.scheduler import HealthCheckScheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    configure_logging()
    await redis_client.connect()
    await init_system()
    
    service = build_load_balancer_service()
    app.state.load_balancer_service = service
    scheduler = HealthCheckScheduler(service.run_cycle)
    app.state.scheduler = scheduler
    if settings.HEALTH_CHECKS_ENABLED:
        scheduler.start()
    yield
    # Shutdown
    await scheduler.stop()
    await redis_client.disconnect()


app = FastAPI(
    title=settings.APP_NAME,
    debug=settings.DEBUG,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Import and include routers
from app.api.v1 import dns, load_balancers

app.include_router(dns.router, prefix="/api/v1/dns", tags=["dns"])
app.include_router(load_balancers.router, prefix="/api/v1/dns-load-balancers", tags=["dns-load-balancers"])


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    scheduler = getattr(app.state, "scheduler", None)
    return {
        "status": "ok",
        "health_checks": "running" if scheduler and scheduler.is_running else "stopped",
    }
