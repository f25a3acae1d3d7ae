from fastapi import APIRouter
from . import conversations, documents, projects, security


router = APIRouter()
router.include_router(projects.router, prefix="/projects", tags=["projects"])
router.include_router(documents.router)
router.include_router(conversations.router, prefix="/conversations", tags=["conversations"])
router.include_router(security.router, prefix="/security", tags=["security"])
