from fastapi import APIRouter

from .routes_results import router as results_router

router = APIRouter()
router.include_router(results_router)
