"""
RAMS document state machine.

A single transition table decides which actions are allowed in which
status. Every service method that mutates a document or its children
calls `DocumentWorkflow.ensure` before touching the database, so the
rules cannot drift apart between services.

    Draft ──submit──▶ PendingReview ──approve──▶ Approved
      ▲                    │
      │                    └──reject──▶ Rejected ──submit──▶ PendingReview
      └── edit / delete

Approved and Archived are terminal.
"""

from __future__ import annotations

from enum import StrEnum

from ramsflow.core.errors import ErrorCode, InvalidOperationError
from ramsflow.db.models.rams import RamsStatus


class WorkflowAction(StrEnum):
    EDIT = "edit"
    DELETE = "delete"
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"


# action -> (statuses the action is allowed from, resulting status or None)
_TRANSITIONS: dict[WorkflowAction, tuple[frozenset[RamsStatus], RamsStatus | None]] = {
    WorkflowAction.EDIT: (
        frozenset({RamsStatus.DRAFT, RamsStatus.REJECTED}),
        None,
    ),
    WorkflowAction.DELETE: (
        frozenset({RamsStatus.DRAFT}),
        None,
    ),
    WorkflowAction.SUBMIT: (
        frozenset({RamsStatus.DRAFT, RamsStatus.REJECTED}),
        RamsStatus.PENDING_REVIEW,
    ),
    WorkflowAction.APPROVE: (
        frozenset({RamsStatus.PENDING_REVIEW}),
        RamsStatus.APPROVED,
    ),
    WorkflowAction.REJECT: (
        frozenset({RamsStatus.PENDING_REVIEW}),
        RamsStatus.REJECTED,
    ),
}

_FAILURE_MESSAGES: dict[WorkflowAction, str] = {
    WorkflowAction.EDIT: "Can only modify documents in Draft or Rejected status",
    WorkflowAction.DELETE: "Can only delete documents in Draft status",
    WorkflowAction.SUBMIT: "Can only submit documents in Draft or Rejected status",
    WorkflowAction.APPROVE: "Can only approve documents pending review",
    WorkflowAction.REJECT: "Can only reject documents pending review",
}


class DocumentWorkflow:
    """Stateless lookup over the transition table."""

    @staticmethod
    def is_allowed(status: RamsStatus, action: WorkflowAction) -> bool:
        allowed_from, _ = _TRANSITIONS[action]
        return status in allowed_from

    @staticmethod
    def ensure(status: RamsStatus, action: WorkflowAction) -> RamsStatus | None:
        """
        Raise InvalidOperationError unless `action` is allowed from `status`.

        Returns the status the document moves to, or None when the
        action does not change status.
        """
        allowed_from, target = _TRANSITIONS[action]
        if status not in allowed_from:
            raise InvalidOperationError(
                _FAILURE_MESSAGES[action],
                detail={"status": status.value, "action": action.value},
            )
        return target

    @staticmethod
    def allowed_actions(status: RamsStatus) -> list[WorkflowAction]:
        return [action for action, (allowed, _) in _TRANSITIONS.items() if status in allowed]

    @staticmethod
    def ensure_submittable(risk_assessment_count: int, method_step_count: int) -> None:
        if risk_assessment_count < 1:
            raise InvalidOperationError(
                "Document must have at least one risk assessment",
                code=ErrorCode.RAMS_INCOMPLETE,
            )
        if method_step_count < 1:
            raise InvalidOperationError(
                "Document must have at least one method step",
                code=ErrorCode.RAMS_INCOMPLETE,
            )

    @staticmethod
    def ensure_rejection_comments(comments: str | None) -> str:
        if comments is None or not comments.strip():
            raise InvalidOperationError(
                "Rejection comments are required",
                code=ErrorCode.RAMS_COMMENTS_REQUIRED,
            )
        return comments.strip()
