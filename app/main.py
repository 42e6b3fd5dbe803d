from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .api import cron, health, stats
from .config import settings
from .logging_config import setup_logging
from .middleware.logging_middleware import RequestLoggingMiddleware

setup_logging(settings.log_level)

# Create FastAPI app
app = FastAPI(
    title="DCA on Ink Executor",
    description="Scheduled dollar-cost-averaging execution on Ink",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(RequestLoggingMiddleware)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(cron.router)
app.include_router(stats.router)


@app.get("/")
async def root():
    """Root endpoint with basic info"""
    return {
        "name": "DCA on Ink Executor",
        "version": "0.1.0",
        "description": "Scheduled dollar-cost-averaging execution on Ink",
        "docs": "/docs",
        "health": "/healthz"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=True,
        log_level=settings.log_level.lower()
    )
