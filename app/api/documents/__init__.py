"""
Planning document API.
Aggregates the document routers.
"""
from fastapi import APIRouter

from .crud import router as crud_router
from .workflow import router as workflow_router
from .versioning import router as versioning_router

router = APIRouter()

# Specific routes (pending-approvals) before the /{document_id} routes
router.include_router(workflow_router, tags=["Document Workflow"])
router.include_router(versioning_router, tags=["Document Versioning"])
router.include_router(crud_router, tags=["Documents"])

__all__ = ["router"]
