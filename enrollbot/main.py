from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException

from enrollbot.config.logging import get_logger, setup_logging
from enrollbot.config.settings import settings
from enrollbot.v1.core.exceptions import (
    EnrollBotException,
    RequestContextMiddleware,
    enrollbot_exception_handler,
    general_exception_handler,
    http_exception_handler,
)
from enrollbot.v1.healthz import router as health_router
from enrollbot.v1.infra.queue.service import QueueRuntime

logger = get_logger(__name__)


def create_app(runtime: QueueRuntime | None = None) -> FastAPI:
    """Create the read-only status API, optionally bound to a queue runtime."""

    # Initialize structured logging
    setup_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        # Drain and stop workers with the configured deadline on shutdown
        if runtime is not None:
            result = await runtime.stop_workers(settings.shutdown_timeout_s)
            logger.info("Queue runtime stopped", drained=result.drained)

    app = FastAPI(
        title=settings.app_name,
        description="Group enrollment job queue status",
        version=settings.version,
        debug=settings.debug,
        openapi_url="/v1/openapi.json" if settings.debug else None,
        docs_url="/v1/docs" if settings.debug else None,
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.queue_runtime = runtime

    app.add_middleware(RequestContextMiddleware)

    app.add_exception_handler(EnrollBotException, enrollbot_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(health_router, prefix="/v1", tags=["health"])

    return app


# Create the app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    # The queue lives in process memory, so never more than one worker
    uvicorn.run(
        "enrollbot.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        workers=1,
    )
