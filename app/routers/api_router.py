from fastapi import APIRouter
from app.routers import cycles, goals, reports, reviews

# Centralized API router hub
# Routers are aggregated here, and main.py only imports this single hub.
api_router = APIRouter()

api_router.include_router(cycles.router, tags=["Review Cycles"])
api_router.include_router(goals.router, tags=["Goals"])
api_router.include_router(reviews.router, tags=["Reviews"])
api_router.include_router(reports.router, tags=["Reports"])
