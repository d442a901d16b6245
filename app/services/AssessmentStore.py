"""Narrow async contract over the relational backend.

Two implementations exist: ``SqlAssessmentStore`` over a SQLAlchemy
``AsyncSession``, and ``UnconfiguredAssessmentStore`` used when no database
URL is configured, which fails every operation with ``BackendUnavailableError``.
Rows cross this boundary as plain dicts keyed by column name.
"""

import functools
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncGenerator, AsyncIterator, Callable, Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.constants.constants import EmailStatus
from app.core.database import session_manager
from app.core.exceptions import BackendError, BackendUnavailableError, NotFoundError
from app.models.adminuser import AdminUser
from app.models.assessment import AssessmentQuestion, AssessmentRecord
from app.models.downloadtoken import PdfDownloadToken
from app.models.emailhistory import EmailHistory
from app.utils.assessment.normalize_questions import Question, normalize_question

logger = logging.getLogger(__name__)


def _row_to_dict(row) -> Dict[str, Any]:
    return {column.name: getattr(row, column.name) for column in row.__table__.columns}


class AssessmentStore(ABC):
    """Backend operations needed by the assessment service."""

    @abstractmethod
    async def ping(self) -> None: ...

    # Questions & records
    @abstractmethod
    async def list_questions(self) -> List[Question]: ...

    @abstractmethod
    async def create_assessment_record(self, **fields: Any) -> Dict[str, Any]: ...

    @abstractmethod
    async def get_assessment_record(self, assessment_id: str) -> Dict[str, Any]: ...

    @abstractmethod
    async def list_assessment_records(self, email: str) -> List[Dict[str, Any]]: ...

    @abstractmethod
    async def list_assessment_summaries(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> List[Dict[str, Any]]: ...

    # Download tokens
    @abstractmethod
    async def insert_download_token(
        self, token: str, assessment_id: str, participant_email: str, expires_at: datetime
    ) -> Dict[str, Any]: ...

    @abstractmethod
    async def get_download_token(self, token: str) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    async def get_active_download_token(self, token: str) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    async def deactivate_download_token(self, token: str) -> bool: ...

    @abstractmethod
    async def increment_download_count(self, token: str, now: datetime) -> None: ...

    @abstractmethod
    async def deactivate_expired_tokens(self, now: datetime) -> int: ...

    @abstractmethod
    async def get_latest_token_stats(self, assessment_id: str) -> Optional[Dict[str, Any]]: ...

    # Email history
    @abstractmethod
    async def create_email_history(self, **fields: Any) -> Dict[str, Any]: ...

    @abstractmethod
    async def mark_email_opened(self, tracking_id: str, now: datetime) -> bool: ...

    @abstractmethod
    async def mark_email_clicked(self, tracking_id: str, now: datetime) -> bool: ...

    @abstractmethod
    async def list_email_history(
        self, email: Optional[str] = None, assessment_id: Optional[str] = None, limit: int = 50
    ) -> List[Dict[str, Any]]: ...

    @abstractmethod
    async def count_email_engagement(self) -> Dict[str, int]: ...

    # Admin
    @abstractmethod
    async def get_admin_user(self, user_id: str) -> Optional[Dict[str, Any]]: ...


def backend_operation(name: str) -> Callable:
    """Wrap SQLAlchemy failures of a store method into ``BackendError(name)``."""

    def decorator(method):
        @functools.wraps(method)
        async def wrapper(self: "SqlAssessmentStore", *args, **kwargs):
            try:
                return await method(self, *args, **kwargs)
            except SQLAlchemyError as e:
                await self.session.rollback()
                logger.error(f"❌ Backend operation {name} failed: {e}")
                raise BackendError(name, str(e)) from e

        return wrapper

    return decorator


class SqlAssessmentStore(AssessmentStore):
    """Store backed by an ``AsyncSession``; writes are committed immediately."""

    def __init__(self, session: AsyncSession):
        self.session = session

    @backend_operation("ping")
    async def ping(self) -> None:
        await self.session.execute(select(1))

    @backend_operation("list_questions")
    async def list_questions(self) -> List[Question]:
        result = await self.session.execute(
            select(AssessmentQuestion).order_by(AssessmentQuestion.dimension, AssessmentQuestion.id)
        )
        return [normalize_question(_row_to_dict(row)) for row in result.scalars().all()]

    @backend_operation("create_assessment_record")
    async def create_assessment_record(self, **fields: Any) -> Dict[str, Any]:
        record = AssessmentRecord(**fields)
        self.session.add(record)
        await self.session.commit()
        await self.session.refresh(record)
        return _row_to_dict(record)

    @backend_operation("get_assessment_record")
    async def get_assessment_record(self, assessment_id: str) -> Dict[str, Any]:
        result = await self.session.execute(
            select(AssessmentRecord).where(AssessmentRecord.id == assessment_id)
        )
        record = result.scalar_one_or_none()
        if not record:
            raise NotFoundError("Assessment record not found")
        return _row_to_dict(record)

    @backend_operation("list_assessment_records")
    async def list_assessment_records(self, email: str) -> List[Dict[str, Any]]:
        result = await self.session.execute(
            select(AssessmentRecord)
            .where(AssessmentRecord.user_email == email)
            .order_by(AssessmentRecord.completed_at.desc())
        )
        return [_row_to_dict(row) for row in result.scalars().all()]

    @backend_operation("list_assessment_summaries")
    async def list_assessment_summaries(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        query = select(
            AssessmentRecord.total_score,
            AssessmentRecord.scores,
            AssessmentRecord.assessment_level,
            AssessmentRecord.completed_at,
        ).order_by(AssessmentRecord.completed_at)
        if start:
            query = query.where(AssessmentRecord.completed_at >= start)
        if end:
            query = query.where(AssessmentRecord.completed_at <= end)
        result = await self.session.execute(query)
        return [dict(row._mapping) for row in result.all()]

    @backend_operation("insert_download_token")
    async def insert_download_token(
        self, token: str, assessment_id: str, participant_email: str, expires_at: datetime
    ) -> Dict[str, Any]:
        row = PdfDownloadToken(
            token=token,
            assessment_id=assessment_id,
            participant_email=participant_email,
            expires_at=expires_at,
            is_active=True,
            download_count=0,
        )
        self.session.add(row)
        await self.session.commit()
        await self.session.refresh(row)
        return _row_to_dict(row)

    @backend_operation("get_download_token")
    async def get_download_token(self, token: str) -> Optional[Dict[str, Any]]:
        result = await self.session.execute(
            select(PdfDownloadToken).where(PdfDownloadToken.token == token)
        )
        row = result.scalar_one_or_none()
        return _row_to_dict(row) if row else None

    @backend_operation("get_active_download_token")
    async def get_active_download_token(self, token: str) -> Optional[Dict[str, Any]]:
        result = await self.session.execute(
            select(PdfDownloadToken).where(
                PdfDownloadToken.token == token,
                PdfDownloadToken.is_active.is_(True),
            )
        )
        row = result.scalar_one_or_none()
        return _row_to_dict(row) if row else None

    @backend_operation("deactivate_download_token")
    async def deactivate_download_token(self, token: str) -> bool:
        result = await self.session.execute(
            update(PdfDownloadToken)
            .where(PdfDownloadToken.token == token)
            .values(is_active=False)
        )
        await self.session.commit()
        return result.rowcount > 0

    @backend_operation("increment_download_count")
    async def increment_download_count(self, token: str, now: datetime) -> None:
        await self.session.execute(
            update(PdfDownloadToken)
            .where(PdfDownloadToken.token == token)
            .values(
                download_count=PdfDownloadToken.download_count + 1,
                last_downloaded_at=now,
            )
        )
        await self.session.commit()

    @backend_operation("deactivate_expired_tokens")
    async def deactivate_expired_tokens(self, now: datetime) -> int:
        result = await self.session.execute(
            update(PdfDownloadToken)
            .where(
                PdfDownloadToken.is_active.is_(True),
                PdfDownloadToken.expires_at < now,
            )
            .values(is_active=False)
        )
        await self.session.commit()
        return result.rowcount or 0

    @backend_operation("get_latest_token_stats")
    async def get_latest_token_stats(self, assessment_id: str) -> Optional[Dict[str, Any]]:
        result = await self.session.execute(
            select(
                PdfDownloadToken.download_count,
                PdfDownloadToken.last_downloaded_at,
                PdfDownloadToken.created_at,
            )
            .where(
                PdfDownloadToken.assessment_id == assessment_id,
                PdfDownloadToken.is_active.is_(True),
            )
            .order_by(PdfDownloadToken.created_at.desc())
            .limit(1)
        )
        row = result.first()
        return dict(row._mapping) if row else None

    @backend_operation("create_email_history")
    async def create_email_history(self, **fields: Any) -> Dict[str, Any]:
        row = EmailHistory(**fields)
        self.session.add(row)
        await self.session.commit()
        await self.session.refresh(row)
        return _row_to_dict(row)

    @backend_operation("mark_email_opened")
    async def mark_email_opened(self, tracking_id: str, now: datetime) -> bool:
        result = await self.session.execute(
            update(EmailHistory)
            .where(
                EmailHistory.tracking_id == tracking_id,
                EmailHistory.opened_at.is_(None),
            )
            .values(opened_at=now)
        )
        await self.session.commit()
        return result.rowcount > 0

    @backend_operation("mark_email_clicked")
    async def mark_email_clicked(self, tracking_id: str, now: datetime) -> bool:
        result = await self.session.execute(
            update(EmailHistory)
            .where(
                EmailHistory.tracking_id == tracking_id,
                EmailHistory.clicked_at.is_(None),
            )
            .values(clicked_at=now)
        )
        await self.session.commit()
        return result.rowcount > 0

    @backend_operation("list_email_history")
    async def list_email_history(
        self, email: Optional[str] = None, assessment_id: Optional[str] = None, limit: int = 50
    ) -> List[Dict[str, Any]]:
        query = select(EmailHistory).order_by(EmailHistory.sent_at.desc())
        if email:
            query = query.where(EmailHistory.recipient_email == email)
        if assessment_id:
            query = query.where(EmailHistory.assessment_id == assessment_id)
        result = await self.session.execute(query.limit(limit))
        return [_row_to_dict(row) for row in result.scalars().all()]

    @backend_operation("count_email_engagement")
    async def count_email_engagement(self) -> Dict[str, int]:
        result = await self.session.execute(
            select(
                func.count(EmailHistory.id),
                func.count(EmailHistory.opened_at),
                func.count(EmailHistory.clicked_at),
            ).where(EmailHistory.status == EmailStatus.sent.value)
        )
        sent, opened, clicked = result.one()
        return {"sent": sent or 0, "opened": opened or 0, "clicked": clicked or 0}

    @backend_operation("get_admin_user")
    async def get_admin_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        result = await self.session.execute(select(AdminUser).where(AdminUser.id == user_id))
        row = result.scalar_one_or_none()
        return _row_to_dict(row) if row else None


class UnconfiguredAssessmentStore(AssessmentStore):
    """Stand-in used when no backend is configured."""

    def _unavailable(self, operation: str):
        raise BackendUnavailableError(operation, "DATABASE_URL is not configured")

    async def ping(self) -> None:
        self._unavailable("ping")

    async def list_questions(self) -> List[Question]:
        self._unavailable("list_questions")

    async def create_assessment_record(self, **fields: Any) -> Dict[str, Any]:
        self._unavailable("create_assessment_record")

    async def get_assessment_record(self, assessment_id: str) -> Dict[str, Any]:
        self._unavailable("get_assessment_record")

    async def list_assessment_records(self, email: str) -> List[Dict[str, Any]]:
        self._unavailable("list_assessment_records")

    async def list_assessment_summaries(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        self._unavailable("list_assessment_summaries")

    async def insert_download_token(
        self, token: str, assessment_id: str, participant_email: str, expires_at: datetime
    ) -> Dict[str, Any]:
        self._unavailable("insert_download_token")

    async def get_download_token(self, token: str) -> Optional[Dict[str, Any]]:
        self._unavailable("get_download_token")

    async def get_active_download_token(self, token: str) -> Optional[Dict[str, Any]]:
        self._unavailable("get_active_download_token")

    async def deactivate_download_token(self, token: str) -> bool:
        self._unavailable("deactivate_download_token")

    async def increment_download_count(self, token: str, now: datetime) -> None:
        self._unavailable("increment_download_count")

    async def deactivate_expired_tokens(self, now: datetime) -> int:
        self._unavailable("deactivate_expired_tokens")

    async def get_latest_token_stats(self, assessment_id: str) -> Optional[Dict[str, Any]]:
        self._unavailable("get_latest_token_stats")

    async def create_email_history(self, **fields: Any) -> Dict[str, Any]:
        self._unavailable("create_email_history")

    async def mark_email_opened(self, tracking_id: str, now: datetime) -> bool:
        self._unavailable("mark_email_opened")

    async def mark_email_clicked(self, tracking_id: str, now: datetime) -> bool:
        self._unavailable("mark_email_clicked")

    async def list_email_history(
        self, email: Optional[str] = None, assessment_id: Optional[str] = None, limit: int = 50
    ) -> List[Dict[str, Any]]:
        self._unavailable("list_email_history")

    async def count_email_engagement(self) -> Dict[str, int]:
        self._unavailable("count_email_engagement")

    async def get_admin_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        self._unavailable("get_admin_user")


@asynccontextmanager
async def assessment_store_scope() -> AsyncIterator[AssessmentStore]:
    """Open a store for work outside a request, such as background tasks and scripts."""
    if not session_manager.is_configured:
        yield UnconfiguredAssessmentStore()
        return
    async with session_manager.get_session() as session:
        yield SqlAssessmentStore(session)


async def get_assessment_store() -> AsyncGenerator[AssessmentStore, None]:
    """
    FastAPI dependency for the assessment store
    Usage:
    @router.get("/")
    async def endpoint(store: AssessmentStore = Depends(get_assessment_store)):
        ...
    """
    async with assessment_store_scope() as store:
        yield store
