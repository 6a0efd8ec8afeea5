"""
results_pipeline/routes/__init__.py
Route registration
"""
from fastapi import APIRouter

from results_pipeline.routes import lifecycle, scoring, votes, results, credentials

router = APIRouter()

router.include_router(lifecycle.router)
router.include_router(scoring.router)
router.include_router(votes.router)
router.include_router(results.router)
router.include_router(credentials.router)
router.include_router(credentials.student_router)
