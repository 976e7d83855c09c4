from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from vote_processor.config.database_config import database_configured
from vote_processor.config.settings import ALLOWED_ORIGINS, REQUIRED_API_KEY
from vote_processor.routers import router as api_router
from vote_processor.services.connection_pool import DatabaseUnavailableError, close_results_pool, get_results_pool
from vote_processor.utils.logger import logger

logger.info("Vote Processor starting up...")

app = FastAPI(title="Vote Processor", version="0.1.0")

logger.info(f"Allowed origins: {ALLOWED_ORIGINS}")
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["*"],
)


@app.get("/healthz")
def healthz() -> dict:
    """Health check with results database status."""
    health_status = {"status": "ok"}

    if not database_configured():
        health_status["database"] = "not configured"
        health_status["status"] = "degraded"
    else:
        pool = get_results_pool()
        try:
            pool.ping()
            health_status["database"] = "connected"
        except DatabaseUnavailableError as e:
            health_status["database"] = "backoff mode" if pool.in_backoff else f"unavailable: {str(e)[:100]}"
            health_status["status"] = "degraded"
        except Exception as e:
            health_status["database"] = f"error: {str(e)[:100]}"
            health_status["status"] = "degraded"
        health_status["pool_stats"] = pool.status()

    health_status["config"] = "ok" if REQUIRED_API_KEY else "missing: VOTE_PROCESSOR_TOKEN"
    if not REQUIRED_API_KEY:
        health_status["status"] = "error"
    return health_status


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Shutting down Vote Processor...")
    close_results_pool()


app.include_router(api_router)
