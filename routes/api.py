from fastapi import APIRouter

from routes.display import router as display_router
from routes.health import router as health_router
from routes.suggestions import router as suggestions_router
from routes.voice import router as voice_router


router = APIRouter()

router.include_router(health_router)
router.include_router(display_router)
router.include_router(suggestions_router)
router.include_router(voice_router)
