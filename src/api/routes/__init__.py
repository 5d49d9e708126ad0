from fastapi import APIRouter

from src.api.routes.events import router as events_router
from src.api.routes.jobs import router as jobs_router
from src.api.routes.leaderboard import router as leaderboard_router

router = APIRouter()

router.include_router(leaderboard_router, prefix="/leaderboards", tags=["leaderboards"])
router.include_router(events_router, prefix="/events", tags=["events"])
router.include_router(jobs_router, prefix="/jobs", tags=["jobs"])
