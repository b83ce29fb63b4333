# The module provides a FastAPI application that serves as the main entry point for the toolstream service.
# Date: 2025-06-14
# Version: 0.2.0

from contextlib import asynccontextmanager

from fastapi import FastAPI

from toolstream.api.v1.api import api_router
from toolstream.core.config import get_settings
from toolstream.utils.logger import console


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    console.set_level(settings.LOG_LEVEL)
    console.display_data_as_table(settings.masked_dump(), title="Active Configuration")
    yield
    console.info("toolstream is shutting down.")


app = FastAPI(
    title="toolstream",
    version="0.1.0",
    description="A tool-augmented conversation service that streams model answers and tool activity.",
    lifespan=lifespan,
)


@app.get("/", summary="Health Check", tags=["Status"])
def read_root():
    """Root endpoint to check if the service is alive."""
    console.info("Health check endpoint was hit.")
    return {"message": "toolstream is alive and running!"}


# Include the v1 router with a global '/v1' prefix
app.include_router(api_router, prefix="/v1")
