import asyncio
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.deps import get_notifier
from app.api.routes import bookings, services, slots, users
from app.core.config import settings, _ENV_FILE
from app.core.db import async_session_maker
from app.services.catalog_service import seed_services
from app.services.reminder_service import run_reminders
from app.services.slot_service import ensure_slot_horizon

if os.getenv("ENV") != "production":
    logging.basicConfig(level=logging.DEBUG)
else:
    logging.basicConfig(
        level=logging.INFO,
        format='{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s"}',
    )
logger = logging.getLogger(__name__)

HORIZON_INTERVAL_SECONDS = 24 * 60 * 60  # 24 hours


async def _prepare_catalog_and_slots() -> None:
    """Seed the default services (if enabled) and top up the slot horizon."""
    try:
        async with async_session_maker() as session:
            try:
                if settings.seed_catalog:
                    n = await seed_services(session)
                    if n:
                        logger.info("Seeded %d default service(s)", n)
                created = await ensure_slot_horizon(session, settings.slot_horizon_days)
                await session.commit()
                if created:
                    logger.info("Slot horizon: created %d slot(s) for the next %d days", created, settings.slot_horizon_days)
            except Exception:
                await session.rollback()
                raise
    except Exception as e:
        logger.exception("Slot horizon generation failed: %s", e)


async def _run_reminder_job() -> None:
    try:
        async with async_session_maker() as session:
            try:
                sent = await run_reminders(session, get_notifier())
                logger.debug("Reminder run finished: %s", sent)
            except Exception:
                await session.rollback()
                raise
    except Exception as e:
        logger.exception("Reminder run failed: %s", e)


async def _horizon_loop() -> None:
    while True:
        await asyncio.sleep(HORIZON_INTERVAL_SECONDS)
        await _prepare_catalog_and_slots()


async def _reminder_loop() -> None:
    while True:
        await _run_reminder_job()
        await asyncio.sleep(settings.reminder_interval_minutes * 60)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Loading .env from: %s (exists: %s)", _ENV_FILE, _ENV_FILE.exists())
    if not settings.telegram_enabled:
        logger.warning("Telegram: NOT configured. Confirmations and reminders will not be delivered.")
    if not settings.google_calendar_enabled:
        logger.warning("Google Calendar: NOT configured. Bookings will not be synced.")
    # Startup: seed and generate slots once
    await _prepare_catalog_and_slots()
    # Background: reminder scan every reminder_interval_minutes, slot horizon every 24h.
    # Single process only; a second instance would send duplicate reminders.
    tasks = [asyncio.create_task(_reminder_loop()), asyncio.create_task(_horizon_loop())]
    logger.info("Reminder job scheduled every %d minutes", settings.reminder_interval_minutes)
    yield
    for task in tasks:
        task.cancel()
    for task in tasks:
        try:
            await task
        except asyncio.CancelledError:
            pass


app = FastAPI(
    title="Booking Bot API",
    description="Slot allocation, booking lifecycle and reminders for the booking bot",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type"],
)

app.include_router(services.router, prefix="/api/v1")
app.include_router(users.router, prefix="/api/v1")
app.include_router(slots.router, prefix="/api/v1")
app.include_router(bookings.router, prefix="/api/v1")


def _cors_headers(origin: str | None) -> dict[str, str]:
    """Add CORS headers to error responses so the browser doesn't block them."""
    headers = {
        "Access-Control-Allow-Credentials": "true",
        "Access-Control-Allow-Methods": "GET, POST, PUT, PATCH, DELETE, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type",
    }
    if origin and origin in settings.cors_origins_list:
        headers["Access-Control-Allow-Origin"] = origin
    elif settings.cors_origins_list:
        headers["Access-Control-Allow-Origin"] = settings.cors_origins_list[0]
    return headers


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Return actual error in JSON; include CORS so 500 responses are not blocked by browser."""
    origin = request.headers.get("origin")
    headers = _cors_headers(origin)
    if isinstance(exc, HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=headers,
        )
    logger.exception("Unhandled exception: %s", exc)
    detail = f"{type(exc).__name__}: {str(exc)}"
    return JSONResponse(
        status_code=500,
        content={"detail": detail},
        headers=headers,
    )


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}
