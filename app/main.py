import asyncio
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, status
from app.core.db import init_db, close_db
from app.core.logging_config import setup_logging
from app.api.v1.orders import router as orders_router
from app.api.v1.admin import router as admin_router
from app.api.v1.menu import router as menu_router
from app.api.v1.notifications import router as notifications_router
from app.core.config import PROJECT_NAME, VERSION
from app.core.exception_handlers import setup_exception_handlers
from app.services.context import EngineContext
from app.workers.watchdog import StaleOrderWatchdog

setup_logging()
log = logging.getLogger("uvicorn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handles startup and shutdown events."""
    log.info(f"Starting {PROJECT_NAME} v{VERSION}...")
    await init_db() # Connect to DB and generate schemas

    watchdog = StaleOrderWatchdog(app.state.engine)
    watchdog.attach(app.state.engine.change_feed)
    watchdog_task = asyncio.create_task(watchdog.run())
    yield
    watchdog.stop()
    await watchdog_task
    await close_db()
    log.info(f"{PROJECT_NAME} stopped.")

app = FastAPI(
    title=PROJECT_NAME,
    version=VERSION,
    lifespan=lifespan,
    # Configure API documentation and paths
    docs_url="/docs",
    redoc_url="/redoc"
)

# Notifications and the change feed are shared by every request and the watchdog
app.state.engine = EngineContext()

# Include routers for modular API structure
app.include_router(orders_router, prefix="/api/v1/orders", tags=["Order Management"])
app.include_router(menu_router, prefix="/api/v1/menu", tags=["Menu Management"])
app.include_router(notifications_router, prefix="/api/v1/notifications", tags=["Notifications"])
app.include_router(admin_router, prefix="/api/v1/admin", tags=["Administration"])


setup_exception_handlers(app)

@app.get("/health", status_code=status.HTTP_200_OK)
async def health_check():
    """Simple health check endpoint."""
    return {"status": "ok", "app_name": PROJECT_NAME}
