"""Integration tests: RAMS documents, risk assessments, method steps and exports."""

import pytest
from sqlalchemy import select

from ramsflow.db.models.notification import NotificationLog
from ramsflow.services.notifications.dispatcher import NotificationDispatcher

pytestmark = pytest.mark.asyncio

RISK = {
    "task_activity": "Erecting scaffold",
    "hazard_identified": "Fall from height",
    "initial_likelihood": 4,
    "initial_severity": 5,
    "control_measures": "Edge protection",
    "residual_likelihood": 2,
    "residual_severity": 2,
}


def _document(reference: str = "RAMS-100", **fields) -> dict:
    body = {
        "project_name": "Basement waterproofing",
        "project_reference": reference,
        "project_type": "RemedialInjection",
        "client_name": "Acme Homes",
        "proposed_start_date": "2026-04-01",
        "proposed_end_date": "2026-04-30",
    }
    body.update(fields)
    return body


async def _create(client, headers, reference: str = "RAMS-100", **fields) -> dict:
    resp = await client.post("/api/v1/rams", json=_document(reference, **fields), headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _ready(client, headers, reference: str = "RAMS-100") -> str:
    """Draft with one risk assessment and one step."""
    document_id = (await _create(client, headers, reference))["id"]
    await client.post(f"/api/v1/rams/{document_id}/risk-assessments", json=RISK, headers=headers)
    await client.post(
        f"/api/v1/rams/{document_id}/method-steps", json={"step_title": "Set up"}, headers=headers
    )
    return document_id


async def _deliver(app, session_factory, sender) -> None:
    dispatcher = NotificationDispatcher(
        app.state.notification_queue, session_factory=session_factory, sender=sender
    )
    for event in app.state.notification_queue.drain_nowait():
        await dispatcher.process(event)


# ─── Documents ────────────────────────────────────────────────────────────────


async def test_create_and_get(client, editor_headers):
    created = await _create(client, editor_headers)
    assert created["status"] == "Draft"
    assert created["created_by"]

    resp = await client.get(f"/api/v1/rams/{created['id']}", headers=editor_headers)
    assert resp.status_code == 200
    detail = resp.json()
    assert detail["project_reference"] == "RAMS-100"
    assert detail["risk_assessment_count"] == 0
    assert detail["allowed_actions"] == ["edit", "delete", "submit"]


async def test_create_requires_editor(client, viewer_headers, reviewer_headers):
    for headers in (viewer_headers, reviewer_headers):
        resp = await client.post("/api/v1/rams", json=_document(), headers=headers)
        assert resp.status_code == 403


async def test_reads_open_to_every_role(client, editor_headers, viewer_headers):
    document_id = (await _create(client, editor_headers))["id"]
    assert (await client.get(f"/api/v1/rams/{document_id}", headers=viewer_headers)).status_code == 200
    assert (await client.get("/api/v1/rams", headers=viewer_headers)).json()["total"] == 1


async def test_duplicate_reference_conflicts(client, editor_headers):
    await _create(client, editor_headers)
    resp = await client.post("/api/v1/rams", json=_document(), headers=editor_headers)
    assert resp.status_code == 409
    error = resp.json()["error"]
    assert error["code"] == "RAMS_002"
    assert error["detail"] == {"project_reference": "RAMS-100"}


async def test_end_date_before_start_is_rejected(client, editor_headers):
    resp = await client.post(
        "/api/v1/rams",
        json=_document(proposed_start_date="2026-05-01", proposed_end_date="2026-04-01"),
        headers=editor_headers,
    )
    assert resp.status_code == 422


async def test_update_document(client, editor_headers):
    document_id = (await _create(client, editor_headers))["id"]
    resp = await client.put(
        f"/api/v1/rams/{document_id}",
        json=_document("RAMS-101", project_name="Renamed"),
        headers=editor_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["project_name"] == "Renamed"
    assert resp.json()["project_reference"] == "RAMS-101"


async def test_list_filters_and_search(client, editor_headers):
    await _create(client, editor_headers, "RAMS-A", project_name="Car park deck")
    await _create(client, editor_headers, "RAMS-B", project_type="CarParkCoating")
    ready_id = await _ready(client, editor_headers, "RAMS-C")
    await client.post(f"/api/v1/rams/{ready_id}/submit", headers=editor_headers)

    search = await client.get("/api/v1/rams", params={"search": "car park"}, headers=editor_headers)
    assert [i["project_reference"] for i in search.json()["items"]] == ["RAMS-A"]

    by_status = await client.get("/api/v1/rams", params={"status": "PendingReview"}, headers=editor_headers)
    assert [i["project_reference"] for i in by_status.json()["items"]] == ["RAMS-C"]

    by_type = await client.get("/api/v1/rams", params={"project_type": "CarParkCoating"}, headers=editor_headers)
    assert by_type.json()["total"] == 1

    paged = await client.get(
        "/api/v1/rams",
        params={"sort_by": "projectreference", "sort_descending": "false", "page": 2, "page_size": 2},
        headers=editor_headers,
    )
    body = paged.json()
    assert body["total"] == 3
    assert [i["project_reference"] for i in body["items"]] == ["RAMS-C"]


async def test_delete_draft(client, editor_headers):
    document_id = (await _create(client, editor_headers))["id"]
    assert (await client.delete(f"/api/v1/rams/{document_id}", headers=editor_headers)).status_code == 204
    assert (await client.get(f"/api/v1/rams/{document_id}", headers=editor_headers)).status_code == 404
    # The reference is free again once the draft is gone
    await _create(client, editor_headers)


async def test_unknown_document(client, editor_headers):
    resp = await client.get("/api/v1/rams/missing", headers=editor_headers)
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "GEN_003"


async def test_documents_are_tenant_isolated(client, editor_headers, outsider_headers):
    document_id = (await _create(client, editor_headers))["id"]

    assert (await client.get(f"/api/v1/rams/{document_id}", headers=outsider_headers)).status_code == 404
    assert (await client.get("/api/v1/rams", headers=outsider_headers)).json()["total"] == 0
    resp = await client.post(
        f"/api/v1/rams/{document_id}/risk-assessments", json=RISK, headers=outsider_headers
    )
    assert resp.status_code == 404
    # Same reference is fine in another tenant
    await _create(client, outsider_headers)


# ─── Workflow ─────────────────────────────────────────────────────────────────


async def test_full_approval_flow(app, client, session_factory, sender, editor_headers, reviewer_headers):
    document_id = await _ready(client, editor_headers)

    submitted = await client.post(f"/api/v1/rams/{document_id}/submit", headers=editor_headers)
    assert submitted.status_code == 200
    assert submitted.json()["status"] == "PendingReview"

    edit = await client.put(f"/api/v1/rams/{document_id}", json=_document(), headers=editor_headers)
    assert edit.status_code == 409

    approved = await client.post(
        f"/api/v1/rams/{document_id}/approve", json={"comments": "Looks good"}, headers=reviewer_headers
    )
    assert approved.status_code == 200
    body = approved.json()
    assert body["status"] == "Approved"
    assert body["date_approved"]
    assert body["approval_comments"] == "Looks good"

    detail = (await client.get(f"/api/v1/rams/{document_id}", headers=editor_headers)).json()
    assert detail["allowed_actions"] == []

    await _deliver(app, session_factory, sender)
    # No safety officer or approver list: only the approval mail goes out
    [mail] = sender.sent
    assert mail["to"] == "testeditor@example.com"
    assert mail["subject"] == "RAMS Approved: RAMS-100 - Basement waterproofing"


async def test_rejection_and_resubmit(app, client, session_factory, sender, editor_headers, reviewer_headers):
    document_id = await _ready(client, editor_headers)
    await client.post(f"/api/v1/rams/{document_id}/submit", headers=editor_headers)

    blank = await client.post(
        f"/api/v1/rams/{document_id}/reject", json={"comments": "  "}, headers=reviewer_headers
    )
    assert blank.status_code == 400
    assert blank.json()["error"]["code"] == "RAMS_004"

    rejected = await client.post(
        f"/api/v1/rams/{document_id}/reject", json={"comments": "Add rescue plan"}, headers=reviewer_headers
    )
    assert rejected.json()["status"] == "Rejected"
    assert rejected.json()["approval_comments"] == "Add rescue plan"

    await _deliver(app, session_factory, sender)
    assert "Add rescue plan" in sender.sent[-1]["text"]

    # Rejected documents are editable and can go round again
    edit = await client.put(
        f"/api/v1/rams/{document_id}", json=_document(project_name="Fixed"), headers=editor_headers
    )
    assert edit.status_code == 200
    again = await client.post(f"/api/v1/rams/{document_id}/submit", headers=editor_headers)
    assert again.json()["status"] == "PendingReview"


async def test_submit_requires_content(client, editor_headers):
    document_id = (await _create(client, editor_headers))["id"]
    resp = await client.post(f"/api/v1/rams/{document_id}/submit", headers=editor_headers)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "RAMS_003"


async def test_approve_requires_pending_review(client, editor_headers, reviewer_headers):
    document_id = await _ready(client, editor_headers)
    resp = await client.post(f"/api/v1/rams/{document_id}/approve", headers=reviewer_headers)
    assert resp.status_code == 409
    error = resp.json()["error"]
    assert error["code"] == "RAMS_001"
    assert error["detail"] == {"status": "Draft", "action": "approve"}


async def test_approve_requires_reviewer(client, editor_headers):
    document_id = await _ready(client, editor_headers)
    await client.post(f"/api/v1/rams/{document_id}/submit", headers=editor_headers)
    resp = await client.post(f"/api/v1/rams/{document_id}/approve", headers=editor_headers)
    assert resp.status_code == 403


async def test_cannot_delete_submitted_document(client, editor_headers):
    document_id = await _ready(client, editor_headers)
    await client.post(f"/api/v1/rams/{document_id}/submit", headers=editor_headers)
    resp = await client.delete(f"/api/v1/rams/{document_id}", headers=editor_headers)
    assert resp.status_code == 409


async def test_failed_request_publishes_nothing(app, client, session_factory, sender, editor_headers):
    document_id = (await _create(client, editor_headers))["id"]
    await client.post(f"/api/v1/rams/{document_id}/submit", headers=editor_headers)
    assert app.state.notification_queue.drain_nowait() == []


async def test_failed_send_is_logged(app, client, session_factory, sender, editor_headers, reviewer_headers):
    document_id = await _ready(client, editor_headers)
    await client.post(f"/api/v1/rams/{document_id}/submit", headers=editor_headers)
    await client.post(f"/api/v1/rams/{document_id}/approve", headers=reviewer_headers)

    sender.fail_with = ConnectionError("smtp down")
    await _deliver(app, session_factory, sender)

    async with session_factory() as session:
        [log] = (await session.execute(select(NotificationLog))).scalars().all()
    assert log.was_sent is False
    assert log.error_message == "smtp down"


# ─── Risk assessments ─────────────────────────────────────────────────────────


async def test_risk_assessment_crud(client, editor_headers):
    document_id = (await _create(client, editor_headers))["id"]
    base = f"/api/v1/rams/{document_id}/risk-assessments"

    created = await client.post(base, json=RISK, headers=editor_headers)
    assert created.status_code == 201
    risk = created.json()
    assert (risk["initial_risk_rating"], risk["initial_risk_level"]) == (20, "High")
    assert (risk["residual_risk_rating"], risk["residual_risk_level"]) == (4, "Low")
    assert risk["sort_order"] == 1

    updated = await client.put(
        f"{base}/{risk['id']}", json={**RISK, "residual_likelihood": 3, "residual_severity": 3},
        headers=editor_headers,
    )
    assert updated.json()["residual_risk_level"] == "Medium"

    assert (await client.delete(f"{base}/{risk['id']}", headers=editor_headers)).status_code == 204
    assert (await client.get(base, headers=editor_headers)).json() == []


async def test_risk_rating_bounds(client, editor_headers):
    document_id = (await _create(client, editor_headers))["id"]
    resp = await client.post(
        f"/api/v1/rams/{document_id}/risk-assessments",
        json={**RISK, "initial_likelihood": 6},
        headers=editor_headers,
    )
    assert resp.status_code == 422


async def test_risk_insert_and_reorder(client, editor_headers):
    document_id = (await _create(client, editor_headers))["id"]
    base = f"/api/v1/rams/{document_id}/risk-assessments"
    first = (await client.post(base, json={**RISK, "task_activity": "A"}, headers=editor_headers)).json()
    second = (await client.post(base, json={**RISK, "task_activity": "B"}, headers=editor_headers)).json()

    inserted = await client.post(
        f"{base}/insert-at", params={"position": 1}, json={**RISK, "task_activity": "Z"}, headers=editor_headers
    )
    assert inserted.status_code == 201
    listed = (await client.get(base, headers=editor_headers)).json()
    assert [r["task_activity"] for r in listed] == ["Z", "A", "B"]

    reordered = await client.post(
        f"{base}/reorder", json={"ordered_ids": [second["id"], first["id"]]}, headers=editor_headers
    )
    assert [r["task_activity"] for r in reordered.json()] == ["B", "A", "Z"]

    bad = await client.post(f"{base}/reorder", json={"ordered_ids": ["nope"]}, headers=editor_headers)
    assert bad.status_code == 400
    assert bad.json()["error"]["code"] == "RAMS_005"

    zero = await client.post(f"{base}/insert-at", params={"position": 0}, json=RISK, headers=editor_headers)
    assert zero.status_code == 400


async def test_children_locked_once_submitted(client, editor_headers):
    document_id = await _ready(client, editor_headers)
    await client.post(f"/api/v1/rams/{document_id}/submit", headers=editor_headers)
    resp = await client.post(f"/api/v1/rams/{document_id}/risk-assessments", json=RISK, headers=editor_headers)
    assert resp.status_code == 409


# ─── Method steps ─────────────────────────────────────────────────────────────


async def test_method_steps_numbering(client, editor_headers):
    document_id = (await _create(client, editor_headers))["id"]
    base = f"/api/v1/rams/{document_id}/method-steps"
    risk = (
        await client.post(f"/api/v1/rams/{document_id}/risk-assessments", json=RISK, headers=editor_headers)
    ).json()

    one = (await client.post(base, json={"step_title": "One"}, headers=editor_headers)).json()
    two = (
        await client.post(
            base, json={"step_title": "Two", "linked_risk_assessment_id": risk["id"]}, headers=editor_headers
        )
    ).json()
    assert (one["step_number"], two["step_number"]) == (1, 2)
    assert two["linked_risk_assessment_summary"] == "Erecting scaffold - Fall from height"

    await client.post(f"{base}/insert-at", params={"position": 2}, json={"step_title": "Mid"}, headers=editor_headers)
    assert [s["step_title"] for s in (await client.get(base, headers=editor_headers)).json()] == ["One", "Mid", "Two"]

    await client.delete(f"{base}/{one['id']}", headers=editor_headers)
    steps = (await client.get(base, headers=editor_headers)).json()
    assert [(s["step_number"], s["step_title"]) for s in steps] == [(1, "Mid"), (2, "Two")]

    # Deleting the linked risk leaves the step but clears the link
    await client.delete(f"/api/v1/rams/{document_id}/risk-assessments/{risk['id']}", headers=editor_headers)
    step = (await client.get(f"{base}/{two['id']}", headers=editor_headers)).json()
    assert step["linked_risk_assessment_id"] is None


async def test_method_step_link_must_be_same_document(client, editor_headers):
    first_id = await _ready(client, editor_headers, "RAMS-1")
    other_id = (await _create(client, editor_headers, "RAMS-2"))["id"]
    risk_id = (
        await client.get(f"/api/v1/rams/{first_id}/risk-assessments", headers=editor_headers)
    ).json()[0]["id"]

    resp = await client.post(
        f"/api/v1/rams/{other_id}/method-steps",
        json={"step_title": "Bad link", "linked_risk_assessment_id": risk_id},
        headers=editor_headers,
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "RAMS_006"


# ─── Exports ──────────────────────────────────────────────────────────────────


async def test_excel_export(client, editor_headers, viewer_headers):
    await _ready(client, editor_headers)
    resp = await client.get("/api/v1/rams/export/excel", params={"status": "Draft"}, headers=viewer_headers)
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )
    assert 'filename="RAMS_Export_' in resp.headers["content-disposition"]
    assert resp.content[:2] == b"PK"


async def test_pdf_export(client, editor_headers):
    document_id = await _ready(client, editor_headers)
    resp = await client.get(f"/api/v1/rams/{document_id}/export/pdf", headers=editor_headers)
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/pdf"
    assert resp.content.startswith(b"%PDF")


async def test_pdf_export_other_tenant(client, editor_headers, outsider_headers):
    document_id = await _ready(client, editor_headers)
    resp = await client.get(f"/api/v1/rams/{document_id}/export/pdf", headers=outsider_headers)
    assert resp.status_code == 404
