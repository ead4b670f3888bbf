import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.core.config import settings
from app.core.logging_config import setup_logging
from app.controllers import result_controller, subject_controller
from app.repositories.result_repository import result_repository

setup_logging()
logger = logging.getLogger("main")

@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        await result_repository.ensure_indexes(settings.result_identity)
    except Exception as e:
        # Mongo may come up after the API; queries still work without the indexes
        logger.error(f"Could not create result indexes: {e}")
    yield

app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

API_PREFIX = getattr(settings, "api_prefix", "/api/v1")

# Include routers
app.include_router(result_controller.router, prefix=API_PREFIX)
app.include_router(subject_controller.router, prefix=API_PREFIX)

# Health check endpoint
@app.get("/")
async def root():
    return {
        "message": "School Result Ranking API",
        "version": "1.0.0",
        "status": "running",
        "endpoints": [
            "/api/v1/results/",
            "/api/v1/subjects/",
            "/docs"
        ]
    }

@app.get("/health")
async def health_check():
    return {"status": "healthy", "app": settings.app_name}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=settings.debug
    )
