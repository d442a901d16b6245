from datetime import datetime, timedelta

import httpx
import pytest

from app.core.exceptions import ReportRenderError
from app.main import app
from app.services.AssessmentStore import assessment_store_scope
from app.services.MicrosoftGraphClientPublic import get_mailer
from app.services.PdfReportGenerator import get_pdf_generator
from app.utils.clock import utcnow

ANSWERS = {"1": 0, "2": 1, "3": 3, "4": 0}


def _submission(email="zhangsan@example.com", answers=None):
    return {
        "answers": ANSWERS if answers is None else answers,
        "userInfo": {"name": "张三", "email": email, "company": "Acme"},
        "clientInfo": {"computerName": "DESKTOP-01"},
    }


async def test_health_check_reports_connected_database(client):
    response = await client.get("/")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


async def test_questions_are_normalized_and_grouped(client, seeded_questions):
    response = await client.get("/api/v1/assessment/questions")

    assert response.status_code == 200
    body = response.json()
    assert body["totalQuestions"] == 4
    assert list(body["questionsByDimension"]) == [
        "time_management",
        "resource_coordination",
        "risk_control",
        "team_collaboration",
    ]
    risk = body["questionsByDimension"]["risk_control"][0]
    assert risk["options"] == [
        {"index": 0, "text": "C1"},
        {"index": 1, "text": "C2"},
        {"index": 3, "text": "C4"},
    ]
    assert body["dimensions"]["time_management"] == "时间管理"


async def test_submit_scores_persists_and_emails(client, seeded_questions, mailer):
    response = await client.post(
        "/api/v1/assessment/submit",
        json=_submission(),
        headers={"x-forwarded-for": "203.0.113.7, 10.0.0.1"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["dimensionScores"] == {
        "time_management": 100,
        "resource_coordination": 75,
        "risk_control": 20,
        "team_collaboration": 100,
    }
    assert body["totalScore"] == 73.75
    assert body["advice"]["level"] == "intermediate"
    assert body["advice"]["nextSteps"][-1] == "🎯 重点提升风险控制能力"
    assert body["id"]
    assert body["name"] == "张三"
    answer_key = {q["id"]: q for q in body["questions"]}
    assert answer_key[4]["explanation"] == "学生综合症"
    assert answer_key[4]["correct_answer"] == "A"

    async with assessment_store_scope() as store:
        record = await store.get_assessment_record(body["id"])
        history = await store.list_email_history(email="zhangsan@example.com")
    assert record["ip_address"] == "203.0.113.7"
    assert record["computer_name"] == "DESKTOP-01"
    assert record["assessment_level"] == "intermediate"

    assert len(mailer.sent) == 1
    assert mailer.sent[0]["subject"] == "您的项目管理思维诊断报告 - CCPM360"
    # the download link goes through the click redirect
    assert "%2Fapi%2Fv1%2Fdownload%2Fpdf%2F" in mailer.sent[0]["html"]
    assert history[0]["status"] == "sent"
    assert history[0]["assessment_id"] == body["id"]


async def test_submit_without_email_sends_nothing(client, seeded_questions, mailer):
    payload = _submission()
    payload["userInfo"]["email"] = ""

    response = await client.post("/api/v1/assessment/submit", json=payload)

    assert response.status_code == 200
    assert mailer.sent == []


async def test_submit_rejects_malformed_answers(client, seeded_questions):
    response = await client.post("/api/v1/assessment/submit", json=_submission(answers="A,B,C"))

    assert response.status_code == 400
    assert response.json() == {"detail": "Invalid answers format"}


async def test_submit_rate_limited(client, seeded_questions):
    responses = [
        await client.post("/api/v1/assessment/submit", json=_submission(email=""))
        for _ in range(21)
    ]

    assert [r.status_code for r in responses[:20]] == [200] * 20
    assert responses[20].status_code == 429


async def test_result_by_id_regenerates_advice(client, make_record):
    record = await make_record()

    response = await client.get("/api/v1/assessment/result", params={"id": record["id"]})

    assert response.status_code == 200
    body = response.json()
    assert body["totalScore"] == 82.5
    assert body["advice"]["nextSteps"][-1] == "🎯 重点提升时间管理能力"
    assert body["userInfo"] == {"name": "张三", "email": "zhangsan@example.com", "company": "Acme"}


async def test_result_by_email_lists_newest_first(client, make_record):
    older = await make_record(completed_at=datetime(2026, 1, 1))
    newer = await make_record(completed_at=datetime(2026, 2, 1), total_score=90, assessment_level="advanced")

    response = await client.get("/api/v1/assessment/result", params={"email": "zhangsan@example.com"})

    body = response.json()
    assert body["total"] == 2
    assert [r["id"] for r in body["records"]] == [newer["id"], older["id"]]
    assert body["records"][0]["assessmentLevel"] == "advanced"


@pytest.mark.parametrize(
    "params, status, detail",
    [
        ({}, 400, "Either id or email parameter is required"),
        ({"id": "missing"}, 404, "Assessment record not found"),
        ({"email": "nobody@example.com"}, 404, "No assessment records found"),
    ],
)
async def test_result_errors(client, params, status, detail):
    response = await client.get("/api/v1/assessment/result", params=params)

    assert response.status_code == status
    assert response.json() == {"detail": detail}


def _pdf_request():
    return {
        "userInfo": {"name": "张三", "email": "zhangsan@example.com", "company": "Acme"},
        "totalScore": 82.5,
        "dimensionScores": [{"dimension": "时间管理", "score": 60, "maxScore": 100}],
        "personalizedAdvice": {"overallLevel": "CCPM进阶级", "nextSteps": ["参加培训"]},
        "completedAt": "2026-03-01T10:30:00",
    }


async def test_pdf_from_client_data(client, pdf_generator):
    response = await client.post("/api/v1/assessment/pdf", json=_pdf_request())

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.headers["content-disposition"].startswith('attachment; filename="CCPM360-assessment-report-')
    assert response.content == b"%PDF-1.4 fake report"
    data = pdf_generator.calls[0]
    assert data.respondent.name == "张三"
    assert data.dimension_scores[0].score == 60
    assert data.advice.next_steps == ["参加培训"]


async def test_pdf_render_failure_maps_to_500(client, pdf_generator):
    pdf_generator.error = ReportRenderError("headless-server", "chrome crashed")

    response = await client.post("/api/v1/assessment/pdf", json=_pdf_request())

    assert response.status_code == 500
    assert response.json() == {"detail": "PDF generation failed"}


async def test_download_flow(client, make_record, pdf_generator, admin_headers):
    record = await make_record()

    issued = await client.post(f"/api/v1/assessment/{record['id']}/download-token")
    assert issued.status_code == 200
    token = issued.json()["token"]
    assert issued.json()["downloadUrl"].endswith(f"/api/v1/download/pdf/{token}")

    response = await client.get(f"/api/v1/download/pdf/{token}")
    assert response.status_code == 200
    assert response.content == b"%PDF-1.4 fake report"
    assert "filename*=UTF-8''CCPM360-" in response.headers["content-disposition"]
    assert response.headers["cache-control"] == "no-cache, no-store, must-revalidate"
    assert pdf_generator.calls[0].respondent.name == "张三"

    stats = await client.get(
        f"/api/v1/assessment/{record['id']}/download-token/stats", headers=admin_headers
    )
    assert stats.status_code == 200
    assert stats.json()["downloadCount"] == 1


async def test_download_token_email_override(client, make_record):
    record = await make_record(user_email=None)

    missing = await client.post(f"/api/v1/assessment/{record['id']}/download-token")
    issued = await client.post(
        f"/api/v1/assessment/{record['id']}/download-token",
        json={"participantEmail": "hr@example.com"},
    )

    assert missing.status_code == 400
    assert issued.status_code == 200
    async with assessment_store_scope() as store:
        row = await store.get_download_token(issued.json()["token"])
    assert row["participant_email"] == "hr@example.com"


async def test_download_failure_is_not_counted(client, make_record, pdf_generator, admin_headers):
    record = await make_record()
    token = (await client.post(f"/api/v1/assessment/{record['id']}/download-token")).json()["token"]
    pdf_generator.error = ReportRenderError("interactive", "timeout")

    response = await client.get(f"/api/v1/download/pdf/{token}")

    assert response.status_code == 500
    stats = await client.get(
        f"/api/v1/assessment/{record['id']}/download-token/stats", headers=admin_headers
    )
    assert stats.json()["downloadCount"] == 0


async def test_download_with_expired_or_unknown_token(client, make_record):
    record = await make_record()
    async with assessment_store_scope() as store:
        await store.insert_download_token(
            token="e" * 64,
            assessment_id=record["id"],
            participant_email="a@example.com",
            expires_at=utcnow() - timedelta(minutes=1),
        )

    first = await client.get(f"/api/v1/download/pdf/{'e' * 64}")
    second = await client.get(f"/api/v1/download/pdf/{'e' * 64}")
    unknown = await client.get(f"/api/v1/download/pdf/{'0' * 64}")

    assert (first.status_code, first.json()) == (404, {"detail": "expired"})
    assert (second.status_code, second.json()) == (404, {"detail": "invalid token"})
    assert unknown.json() == {"detail": "invalid token"}


async def test_send_templated_email(client, make_record, mailer, admin_headers):
    record = await make_record()

    response = await client.post(
        "/api/v1/assessment/email",
        json={"type": "follow_up_1", "recipientEmail": "zhangsan@example.com", "data": {"id": record["id"]}},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert f"trackingId={body['trackingId']}" in mailer.sent[0]["html"]

    history = await client.get(
        "/api/v1/assessment/email", params={"assessmentId": record["id"]}, headers=admin_headers
    )
    assert history.status_code == 200
    assert history.json()["emails"][0]["tracking_id"] == body["trackingId"]


async def test_send_email_rejects_unknown_template(client):
    response = await client.post(
        "/api/v1/assessment/email",
        json={"type": "newsletter", "recipientEmail": "zhangsan@example.com"},
    )

    assert response.status_code == 400
    assert response.json() == {"detail": "Invalid email template type"}


async def test_result_email_renders_scores_as_numbers(client, mailer):
    response = await client.post(
        "/api/v1/assessment/email",
        json={
            "type": "assessment_result",
            "recipientEmail": "zhangsan@example.com",
            "data": {
                "name": "<b>张三</b>",
                "totalScore": "82.5",
                "dimensionScores": {"time_management": 60, "risk_control": 140},
                "advice": {"level": "intermediate", "levelDescription": None},
            },
        },
    )

    assert response.status_code == 200
    html = mailer.sent[0]["html"]
    assert "82.5分" in html
    assert "60分" in html
    assert "width: 100%;" in html
    assert "&lt;b&gt;张三&lt;/b&gt;" in html
    assert "<b>" not in html


@pytest.mark.parametrize(
    "data, field",
    [
        ({"totalScore": "<img src=x onerror=alert(1)>"}, "totalScore"),
        ({"dimensionScores": {"time_management": "high"}}, "dimensionScores.time_management"),
        ({"advice": "work harder"}, "advice"),
        ({"advice": {"nextSteps": [{"step": 1}]}}, "advice.nextSteps.0"),
    ],
)
async def test_result_email_rejects_malformed_data(client, mailer, data, field):
    response = await client.post(
        "/api/v1/assessment/email",
        json={"type": "assessment_result", "recipientEmail": "zhangsan@example.com", "data": data},
    )

    assert response.status_code == 400
    assert response.json()["detail"].startswith(f"Invalid assessment result data: {field}: ")
    assert mailer.sent == []


async def test_send_email_failure_is_recorded(client, mailer, admin_headers):
    mailer.succeed = False

    response = await client.post(
        "/api/v1/assessment/email",
        json={"type": "follow_up_2", "recipientEmail": "zhangsan@example.com"},
    )

    assert response.status_code == 500
    assert response.json() == {"detail": "Failed to send email"}
    history = await client.get(
        "/api/v1/assessment/email", params={"email": "zhangsan@example.com"}, headers=admin_headers
    )
    assert history.json()["emails"][0]["status"] == "failed"


async def test_analytics(client, make_record, admin_headers):
    await make_record(total_score=90, assessment_level="advanced", completed_at=datetime(2026, 3, 1))
    await make_record(total_score=50, assessment_level="beginner", completed_at=datetime(2026, 3, 5))

    everything = await client.get("/api/v1/assessment/analytics", headers=admin_headers)
    march_first = await client.get(
        "/api/v1/assessment/analytics",
        params={"startDate": "2026-03-01T00:00:00", "endDate": "2026-03-02T00:00:00"},
        headers=admin_headers,
    )

    assert everything.json()["summary"]["totalAssessments"] == 2
    assert everything.json()["summary"]["averageScore"] == 70
    assert march_first.json()["summary"]["totalAssessments"] == 1
    assert march_first.json()["levelDistribution"]["advanced"] == 1


@pytest.mark.parametrize(
    "method, path",
    [
        ("GET", "/api/v1/assessment/analytics"),
        ("GET", "/api/v1/assessment/email"),
        ("GET", "/api/v1/assessment/some-id/download-token/stats"),
    ],
)
async def test_admin_routes_require_api_key(client, method, path):
    response = await client.request(method, path, headers={"X-API-Key": "wrong"})

    assert response.status_code == 401


@pytest.fixture
async def unconfigured_client(mailer, pdf_generator):
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_pdf_generator] = lambda: pdf_generator
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


async def test_unconfigured_backend(unconfigured_client):
    health = await unconfigured_client.get("/")
    questions = await unconfigured_client.get("/api/v1/assessment/questions")
    pixel = await unconfigured_client.get("/api/v1/email/track/open", params={"trackingId": "x"})

    assert health.json()["status"] == "degraded"
    assert questions.status_code == 503
    assert questions.json() == {"detail": "Service unavailable"}
    assert pixel.status_code == 200
