"""Library Insights ASGI application.

Run with ``uvicorn library_insights.main:app``.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from library_insights.api.catalog_routes import router as catalog_router
from library_insights.api.search_routes import router as search_router
from library_insights.core.config import settings

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log the active providers on startup."""
    logger.info(
        "Starting Library Insights (llm=%s, cache=%s)",
        settings.llm_provider,
        settings.cache_backend,
    )
    yield
    logger.info("Shutting down Library Insights")


app = FastAPI(
    title="Library Insights",
    description="AI-assisted discovery of books held by nearby public libraries",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET"],
    allow_headers=["*"],
)

app.include_router(search_router)
app.include_router(catalog_router)


@app.get("/health")
async def health_check():
    """Liveness probe."""
    return {"status": "healthy"}
