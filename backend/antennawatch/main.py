"""FastAPI application for the live antenna feed."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from antennawatch.api.v1.api import api_router
from antennawatch.core.config import settings
from antennawatch.core.exceptions import NotFoundException, StoreUnavailableException
from antennawatch.core.logging import LoggerConfigurator, logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging on startup."""
    LoggerConfigurator.setup()
    logger.info(
        f"🚀 Antenna feed starting (tail view: {settings.TAIL_VIEW}, "
        f"environment: {settings.ENVIRONMENT})"
    )
    yield
    logger.info("Antenna feed stopped")


app = FastAPI(title="Antennawatch", lifespan=lifespan)
app.include_router(api_router, prefix="/api/v1")


@app.exception_handler(NotFoundException)
async def not_found_exception_handler(request: Request, exc: NotFoundException) -> JSONResponse:
    """Map missing resources to 404."""
    return JSONResponse(status_code=404, content={"detail": exc.message})


@app.exception_handler(StoreUnavailableException)
async def store_unavailable_exception_handler(
    request: Request, exc: StoreUnavailableException
) -> JSONResponse:
    """Map store failures to 503."""
    logger.error(f"Store unavailable for {request.url.path}: {exc.message}")
    return JSONResponse(status_code=503, content={"detail": exc.message})


@app.get("/health")
async def health() -> dict:
    """Liveness check."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "antennawatch.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.LOCAL_DEVELOPMENT,
    )
