from fastapi import APIRouter

from event_calendar.api.v1.auth import router as auth_router
from event_calendar.api.v1.events import router as events_router
from event_calendar.api.v1.users import router as users_router

router = APIRouter()
router.include_router(auth_router)
router.include_router(events_router)
router.include_router(users_router)
