"""RAMS dashboard endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from ramsflow.api.deps import Ctx, DbSession, Directory
from ramsflow.schemas.dashboard import DashboardOut, OverdueDocument, PendingApproval
from ramsflow.services.reporting.dashboard import RamsDashboardService

router = APIRouter(prefix="/rams/dashboard", tags=["rams-dashboard"])


@router.get("", response_model=DashboardOut, summary="Summary, distributions, trends and queues")
async def get_dashboard(db: DbSession, ctx: Ctx, directory: Directory) -> DashboardOut:
    return await RamsDashboardService(db, ctx, employees=directory).get_dashboard()


@router.get(
    "/pending-approvals",
    response_model=list[PendingApproval],
    summary="Documents waiting for review, oldest first",
)
async def pending_approvals(db: DbSession, ctx: Ctx) -> list[PendingApproval]:
    return await RamsDashboardService(db, ctx).get_pending_approvals()


@router.get(
    "/overdue",
    response_model=list[OverdueDocument],
    summary="Unapproved documents past their proposed end date",
)
async def overdue_documents(db: DbSession, ctx: Ctx, directory: Directory) -> list[OverdueDocument]:
    return await RamsDashboardService(db, ctx, employees=directory).get_overdue_documents()
