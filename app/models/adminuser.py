from sqlalchemy import Boolean, Column, String

from app.models.base import Base, TimestampMixin


class AdminUser(Base, TimestampMixin):
    """Back-office administrator profile. Credentials live with the auth provider."""

    __tablename__ = "admin_users"

    id = Column(String, primary_key=True, index=True)
    email = Column(String, nullable=False, unique=True)
    name = Column(String, nullable=True)
    role = Column(String(50), default="admin", nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
