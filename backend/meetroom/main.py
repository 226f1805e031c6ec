from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from meetroom.config import settings
from meetroom.error_handlers import register_exception_handlers
from meetroom.middleware import RateLimitHeaderMiddleware
from meetroom.routers import debug_router, rooms_router, websocket_router
from meetroom.services.container import MeetingServices
from meetroom.utils.logging_config import fastapi_logger, setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    setup_logging()
    fastapi_logger.info(
        "Starting application",
        extra={"app": settings.APP_NAME, "debug": settings.DEBUG}
    )
    yield
    # Shutdown
    fastapi_logger.info("Shutting down application")
    await app.state.meeting.close()
    fastapi_logger.info("Pending room timers cancelled")


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description="Signaling and room coordination for peer-to-peer video meetings",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.meeting = MeetingServices()

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Rate Limit Headers Middleware (must be added after CORS)
    if settings.RATE_LIMIT_ENABLED:
        app.add_middleware(RateLimitHeaderMiddleware)

    # Global Exception Handlers
    register_exception_handlers(app)

    # API Routers
    app.include_router(rooms_router)
    app.include_router(websocket_router)
    if settings.DEBUG:
        app.include_router(debug_router)

    @app.get("/", response_class=PlainTextResponse)
    async def index():
        return f"{settings.APP_NAME} is running"

    # Health Check
    @app.get("/health")
    async def health_check():
        store = app.state.meeting.store
        return {
            "status": "healthy",
            "service": settings.APP_NAME,
            "active_rooms": len(store.rooms),
            "active_connections": len(app.state.meeting.broadcaster.connections),
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("meetroom.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)
