from fastapi import APIRouter

from helpdesk.api.ai import router as ai_router
from helpdesk.api.documents import router as documents_router
from helpdesk.api.realtime import router as realtime_router
from helpdesk.api.tickets import router as tickets_router

router = APIRouter()
router.include_router(tickets_router)
router.include_router(documents_router)
router.include_router(ai_router)
router.include_router(realtime_router)
