import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from rarepath import __version__
from rarepath.core.config import settings
from rarepath.api.routes import eligibility, patterns, trials
from rarepath.services.clinical_trials_api import clinical_trials_service
from rarepath.services.pubmed_api import pubmed_client

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"Starting {settings.PROJECT_NAME}...")
    yield
    # Shutdown
    await clinical_trials_service.close()
    await pubmed_client.close()
    logger.info("Shutdown complete.")


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Clinical trial eligibility matching and cross-trial pattern mining",
    version=__version__,
    lifespan=lifespan
)

# Configure CORS
allowed_origins = [
    settings.FRONTEND_URL,
    "http://localhost:3000",
]
# Add any additional origins from ALLOWED_ORIGINS env var
if settings.ALLOWED_ORIGINS:
    allowed_origins.extend([o.strip() for o in settings.ALLOWED_ORIGINS.split(",") if o.strip()])

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(
    eligibility.router,
    prefix=f"{settings.API_V1_STR}/eligibility",
    tags=["Eligibility"]
)

app.include_router(
    patterns.router,
    prefix=f"{settings.API_V1_STR}/patterns",
    tags=["Pattern Mining"]
)

app.include_router(
    trials.router,
    prefix=f"{settings.API_V1_STR}/trials",
    tags=["Trials"]
)


@app.get("/")
async def root():
    return {
        "name": settings.PROJECT_NAME,
        "version": __version__,
        "status": "running",
        "docs": "/docs"
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
