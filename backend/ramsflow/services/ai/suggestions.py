"""
RamsAiService: control-measure suggestions for a risk assessment line.

Pipeline:
  1. Extract search terms from the task and hazard text.
  2. Score every active library entry by term overlap and keep the best.
  3. Optionally ask the LLM to fill in controls, legislation and a
     residual rating, embedding the library matches in the prompt.
  4. Write one McpAuditLog row whatever the outcome.

Failures never propagate: the caller gets success=False and the id of
the audit row describing what went wrong.
"""

from __future__ import annotations

import json
import time
from collections.abc import Callable, Iterable, Sequence
from typing import TypeVar

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ramsflow.config.settings import Settings, get_settings
from ramsflow.core.context import RequestContext
from ramsflow.core.errors import NotFoundError, ServiceUnavailableError
from ramsflow.core.metrics import AI_SUGGESTIONS
from ramsflow.db.base import utcnow
from ramsflow.db.models.library import ControlHierarchy
from ramsflow.db.models.mcp_audit import McpAuditLog
from ramsflow.schemas.ai import (
    ControlMatch,
    ControlMeasureSuggestionRequest,
    ControlMeasureSuggestionResponse,
    HazardMatch,
    LegislationMatch,
    SopMatch,
)
from ramsflow.services.ai.client import AnthropicAPIError, AnthropicClient, CompletionResponse
from ramsflow.services.ai.keywords import MIN_MATCH_SCORE, extract_keywords, match_score
from ramsflow.services.ai.prompt import ParseResult, build_prompt, parse_response
from ramsflow.services.library.service import RamsLibraryService

_log = structlog.get_logger(__name__)

REQUEST_TYPE = "ControlMeasureSuggestion"
FAILURE_MESSAGE = "Failed to generate suggestions. Please try again."

HAZARD_LIMIT = 5
CONTROL_LIMIT = 10
LEGISLATION_LIMIT = 5
SOP_LIMIT = 3
CATEGORY_BONUS = 0.3
SPARSE_CONTROL_COUNT = 3

T = TypeVar("T")


def _ranked(
    items: Iterable[T],
    score: Callable[[T], float],
    limit: int,
    tier: Callable[[T], int] | None = None,
) -> list[tuple[T, float]]:
    scored = [(item, score(item)) for item in items]
    kept = [(item, value) for item, value in scored if value > MIN_MATCH_SCORE]
    # sorted() is stable so equal scores keep library order
    if tier is None:
        kept.sort(key=lambda pair: -pair[1])
    else:
        kept.sort(key=lambda pair: (tier(pair[0]), -pair[1]))
    return kept[:limit]


class RamsAiService:
    def __init__(
        self,
        db: AsyncSession,
        ctx: RequestContext,
        client: AnthropicClient | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._db = db
        self._ctx = ctx
        self._settings = settings or get_settings()
        self._client = client or AnthropicClient(self._settings)
        self._library = RamsLibraryService(db, ctx)

    async def suggest_controls(
        self,
        request: ControlMeasureSuggestionRequest,
        rams_document_id: str | None = None,
        risk_assessment_id: str | None = None,
    ) -> ControlMeasureSuggestionResponse:
        started = time.perf_counter()
        audit = McpAuditLog(
            tenant_id=self._ctx.tenant_id,
            rams_document_id=rams_document_id,
            risk_assessment_id=risk_assessment_id,
            request_type=REQUEST_TYPE,
            input_prompt=f"Task: {request.task_activity}, Hazard: {request.hazard_identified}",
            input_context=request.model_dump_json(),
            requested_at=utcnow(),
            created_by=self._ctx.user_id,
        )

        try:
            hazards = await self._search_hazards(request)
            controls = await self._search_controls(request, hazards)
            legislation = await self._search_legislation(request)
            sops = await self._search_sops(request)

            response = ControlMeasureSuggestionResponse(
                success=True,
                matched_hazards=hazards,
                suggested_controls=controls,
                relevant_legislation=legislation,
                relevant_sops=sops,
            )

            should_use_ai = self._settings.rams_ai_enabled and (
                len(controls) < SPARSE_CONTROL_COUNT or bool(request.hazard_identified)
            )
            if should_use_ai:
                completion = await self._generate(request, controls, legislation)
                if completion is not None and completion.text:
                    parsed = parse_response(completion.text)
                    self._apply(response, parsed)
                    audit.ai_response = completion.text
                    audit.extracted_content = json.dumps(
                        {
                            "control_measures": parsed.control_measures,
                            "legislation": parsed.legislation,
                            "residual_likelihood": parsed.residual_likelihood,
                            "residual_severity": parsed.residual_severity,
                        }
                    )
                    audit.parse_warnings = json.dumps(list(parsed.warnings)) if parsed.warnings else None
                    audit.model_used = completion.model
                    audit.input_tokens = completion.input_tokens
                    audit.output_tokens = completion.output_tokens

            audit.response_time_ms = int((time.perf_counter() - started) * 1000)
            audit.is_success = True
            self._db.add(audit)
            await self._db.flush()

            response.audit_log_id = audit.id
            AI_SUGGESTIONS.labels(outcome="ai" if response.used_ai else "library").inc()
            _log.info(
                "ai_suggestion_completed",
                hazards=len(hazards),
                controls=len(controls),
                used_ai=response.used_ai,
                audit_log_id=audit.id,
            )
            return response
        except Exception as exc:
            _log.error("ai_suggestion_failed", error=str(exc), exc_info=True)
            AI_SUGGESTIONS.labels(outcome="failed").inc()
            if not self._db.is_active:
                # A failed flush leaves the session unusable until rolled back
                await self._db.rollback()
            audit.response_time_ms = int((time.perf_counter() - started) * 1000)
            audit.is_success = False
            audit.error_message = str(exc)
            self._db.add(audit)
            await self._db.flush()
            return ControlMeasureSuggestionResponse(
                success=False,
                error_message=FAILURE_MESSAGE,
                audit_log_id=audit.id,
            )

    async def mark_suggestion_accepted(self, audit_log_id: str, accepted: bool) -> McpAuditLog:
        result = await self._db.execute(
            select(McpAuditLog).where(
                McpAuditLog.id == audit_log_id,
                McpAuditLog.tenant_id == self._ctx.tenant_id,
            )
        )
        audit = result.scalar_one_or_none()
        if audit is None:
            raise NotFoundError("Suggestion audit log", audit_log_id)
        audit.was_accepted = accepted
        audit.accepted_at = utcnow()
        await self._db.flush()
        _log.info("ai_suggestion_marked", audit_log_id=audit_log_id, accepted=accepted)
        return audit

    # ── Library search ────────────────────────────────────────────────── #

    async def _search_hazards(self, request: ControlMeasureSuggestionRequest) -> list[HazardMatch]:
        terms = extract_keywords(request.task_activity, request.hazard_identified)
        entries = await self._library.list_hazards()
        ranked = _ranked(
            entries,
            lambda h: match_score(terms, h.name, h.keywords, h.description),
            HAZARD_LIMIT,
        )
        return [
            HazardMatch(
                id=h.id,
                code=h.code,
                name=h.name,
                description=h.description,
                category=str(h.category),
                default_likelihood=h.default_likelihood,
                default_severity=h.default_severity,
                match_score=score,
            )
            for h, score in ranked
        ]

    async def _search_controls(
        self,
        request: ControlMeasureSuggestionRequest,
        hazards: Sequence[HazardMatch],
    ) -> list[ControlMatch]:
        terms = extract_keywords(request.task_activity, request.hazard_identified)
        categories = {h.category for h in hazards}
        entries = await self._library.list_controls()

        def score(control) -> float:
            value = match_score(terms, control.name, control.keywords, control.description)
            if control.applicable_to_category is not None and str(control.applicable_to_category) in categories:
                value += CATEGORY_BONUS
            return value

        ranked = _ranked(entries, score, CONTROL_LIMIT, tier=lambda c: c.hierarchy)
        return [
            ControlMatch(
                id=c.id,
                code=c.code,
                name=c.name,
                description=c.description,
                hierarchy=ControlHierarchy(c.hierarchy).label,
                likelihood_reduction=c.typical_likelihood_reduction,
                severity_reduction=c.typical_severity_reduction,
                match_score=value,
            )
            for c, value in ranked
        ]

    async def _search_legislation(
        self, request: ControlMeasureSuggestionRequest
    ) -> list[LegislationMatch]:
        terms = extract_keywords(request.task_activity, request.hazard_identified)
        entries = await self._library.list_legislation()
        ranked = _ranked(
            entries,
            lambda item: match_score(
                terms, item.name, item.keywords, item.description, item.applicable_categories
            ),
            LEGISLATION_LIMIT,
        )
        return [
            LegislationMatch(
                id=item.id,
                code=item.code,
                name=item.name,
                short_name=item.short_name,
                match_score=value,
            )
            for item, value in ranked
        ]

    async def _search_sops(self, request: ControlMeasureSuggestionRequest) -> list[SopMatch]:
        terms = extract_keywords(request.task_activity)
        entries = await self._library.list_sops()
        ranked = _ranked(
            entries,
            lambda sop: match_score(terms, sop.topic, sop.task_keywords, sop.description),
            SOP_LIMIT,
        )
        return [
            SopMatch(
                id=sop.id,
                sop_id=sop.sop_id,
                topic=sop.topic,
                policy_snippet=sop.policy_snippet,
                match_score=value,
            )
            for sop, value in ranked
        ]

    # ── LLM ───────────────────────────────────────────────────────────── #

    async def _generate(
        self,
        request: ControlMeasureSuggestionRequest,
        controls: Sequence[ControlMatch],
        legislation: Sequence[LegislationMatch],
    ) -> CompletionResponse | None:
        if not self._client.is_configured:
            _log.warning("anthropic_api_key_missing", detail="skipping AI suggestions")
            return None
        prompt = build_prompt(request, controls, legislation)
        try:
            return await self._client.complete(prompt)
        except (AnthropicAPIError, ServiceUnavailableError) as exc:
            _log.warning("ai_completion_unavailable", error=str(exc))
            return None

    @staticmethod
    def _apply(response: ControlMeasureSuggestionResponse, parsed: ParseResult) -> None:
        response.ai_generated_control_measures = parsed.control_measures
        response.ai_generated_legislation = parsed.legislation
        response.suggested_residual_likelihood = parsed.residual_likelihood
        response.suggested_residual_severity = parsed.residual_severity
        response.parse_warnings = list(parsed.warnings)
        response.used_ai = True
