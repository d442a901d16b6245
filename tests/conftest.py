from datetime import datetime

import httpx
import pytest

from app.core.database import session_manager
from app.core.limiter import limiter
from app.main import app
from app.models.assessment import AssessmentQuestion
from app.services.AssessmentStore import assessment_store_scope
from app.services.MicrosoftGraphClientPublic import get_mailer
from app.services.PdfReportGenerator import get_pdf_generator

API_KEY = "test-admin-key"

QUESTION_ROWS = [
    {
        "id": 1,
        "question_text": "项目计划中，您如何估算任务工期？",
        "dimension": "time_management",
        "options": ["A1", "A2", "A3", "A4"],
    },
    {
        "id": 2,
        "question_text": "当多个项目争夺同一资源时，您会？",
        "dimension": "resource_coordination",
        "options": {"A": "B1", "B": "B2", "C": "B3", "D": "B4"},
    },
    {
        "id": 3,
        "question_text": "您如何监控项目风险？",
        "dimension": "risk_control",
        "options": [
            {"text": "C1", "score": 100},
            {"text": "C2", "score": 80},
            {"text": "  ", "score": 60},
            {"text": "C4", "score": 20},
        ],
    },
    {
        "id": 4,
        "question_text": "团队成员习惯在截止日期前才开始工作，您会？",
        "dimension": "team_collaboration",
        "options": ["D1", "D2", "D3", "D4"],
        "explanation": "学生综合症",
        "correct_answer": "A",
    },
]


class FakeMailer:
    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.sent = []

    async def send_email(self, to, subject, html, **kwargs):
        self.sent.append({"to": to, "subject": subject, "html": html})
        return self.succeed


class FakePdfGenerator:
    def __init__(self):
        self.calls = []
        self.error = None

    async def generate(self, data):
        self.calls.append(data)
        if self.error:
            raise self.error
        return b"%PDF-1.4 fake report"


@pytest.fixture
async def db():
    await session_manager.init("sqlite+aiosqlite://")
    yield session_manager
    await session_manager.close()


@pytest.fixture
async def seeded_questions(db):
    async with session_manager.get_session() as session:
        session.add_all([AssessmentQuestion(**row) for row in QUESTION_ROWS])
    return QUESTION_ROWS


@pytest.fixture
async def make_record(db):
    async def _make(**overrides):
        fields = {
            "user_name": "张三",
            "user_email": "zhangsan@example.com",
            "user_company": "Acme",
            "answers": {"1": 0},
            "scores": {
                "time_management": 60,
                "resource_coordination": 90,
                "risk_control": 90,
                "team_collaboration": 90,
            },
            "total_score": 82.5,
            "assessment_level": "intermediate",
            "completed_at": datetime(2026, 3, 1, 10, 30),
        }
        fields.update(overrides)
        async with assessment_store_scope() as store:
            return await store.create_assessment_record(**fields)

    return _make


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def pdf_generator():
    return FakePdfGenerator()


@pytest.fixture
def admin_headers(monkeypatch):
    from app.core.config import settings
    from app.core.security import hash_key

    monkeypatch.setattr(settings, "HASHED_API_KEY", hash_key(API_KEY))
    return {"X-API-Key": API_KEY}


@pytest.fixture
async def client(db, mailer, pdf_generator):
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_pdf_generator] = lambda: pdf_generator
    limiter.reset()
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
