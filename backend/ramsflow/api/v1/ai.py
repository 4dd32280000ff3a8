"""AI-assisted control measure suggestions."""

# No postponed annotations here: the slowapi wrapper would hide this
# module's globals from FastAPI's signature resolution.

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from ramsflow.api.deps import Ctx, DbSession, EditorUser
from ramsflow.core.rate_limit import ai_limit, limiter
from ramsflow.schemas.ai import (
    AcceptSuggestionRequest,
    ControlMeasureSuggestionRequest,
    ControlMeasureSuggestionResponse,
)
from ramsflow.services.ai.client import AnthropicClient
from ramsflow.services.ai.suggestions import RamsAiService

router = APIRouter(prefix="/rams/ai", tags=["rams-ai"])


def get_ai_client(request: Request) -> AnthropicClient | None:
    """The app-wide client, so the circuit breaker sees every call."""
    return getattr(request.app.state, "ai_client", None)


AiClient = Annotated[AnthropicClient | None, Depends(get_ai_client)]


@router.post(
    "/suggest-controls",
    response_model=ControlMeasureSuggestionResponse,
    summary="Suggest control measures, legislation and SOPs for a task and hazard",
    dependencies=[EditorUser],
)
@limiter.limit(ai_limit)
async def suggest_controls(
    request: Request,
    body: ControlMeasureSuggestionRequest,
    db: DbSession,
    ctx: Ctx,
    client: AiClient,
    rams_document_id: str | None = Query(default=None),
    risk_assessment_id: str | None = Query(default=None),
) -> ControlMeasureSuggestionResponse:
    """
    Always answers 200: a failed suggestion comes back with
    ``success=false`` and the audit log id describing the failure.
    """
    service = RamsAiService(db, ctx, client=client)
    return await service.suggest_controls(
        body, rams_document_id=rams_document_id, risk_assessment_id=risk_assessment_id
    )


@router.post(
    "/accept",
    status_code=204,
    summary="Record whether a suggestion was used",
    dependencies=[EditorUser],
)
async def accept_suggestion(body: AcceptSuggestionRequest, db: DbSession, ctx: Ctx) -> None:
    await RamsAiService(db, ctx).mark_suggestion_accepted(body.audit_log_id, body.accepted)
