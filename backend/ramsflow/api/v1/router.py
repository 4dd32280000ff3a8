"""API v1 router aggregator."""

from fastapi import APIRouter

from ramsflow.api.v1 import (
    admin,
    ai,
    audit,
    auth,
    dashboard,
    library,
    method_steps,
    notifications,
    rams_documents,
    risk_assessments,
)

router = APIRouter(prefix="/api/v1")
router.include_router(auth.router)
router.include_router(admin.router)
router.include_router(audit.router)
# Fixed /rams/* prefixes go before /rams/{document_id}
router.include_router(library.router)
router.include_router(ai.router)
router.include_router(notifications.router)
router.include_router(dashboard.router)
router.include_router(rams_documents.router)
router.include_router(risk_assessments.router)
router.include_router(method_steps.router)
