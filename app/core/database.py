"""
Async Database Manager for the assessment store with SQLAlchemy
- Optional: without DATABASE_URL the service runs against the unconfigured store
- Automatic database creation if missing (PostgreSQL)
- Table initialization from the registered models
"""
import logging
from importlib import import_module
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
from sqlalchemy import text
import sqlalchemy
from sqlalchemy.engine.url import make_url
from sqlalchemy.pool import StaticPool
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
    AsyncEngine
)
import asyncpg
from app.core.config import settings
from app.models.base import Base

logger = logging.getLogger(__name__)


class DatabaseSessionManager:
    """Manages async database sessions with auto-creation and setup."""

    def __init__(self):
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker] = None

    @property
    def is_configured(self) -> bool:
        return self.session_factory is not None

    async def init(self, database_url: Optional[str] = None):
        """Initialize database connection with auto-creation fallback"""
        db_url = database_url or settings.DATABASE_URL
        if not db_url:
            logger.warning("⚠️ DATABASE_URL not set, assessment store is unconfigured")
            return

        try:
            self.engine = self._create_engine(db_url)

            try:
                async with self.engine.begin() as conn:
                    await self._setup_database(conn)
            except asyncpg.exceptions.InvalidCatalogNameError:
                if not await self._create_database(db_url):
                    raise
                await self._setup_database_after_creation(db_url)

            self.session_factory = async_sessionmaker(
                bind=self.engine,
                expire_on_commit=False,
                autoflush=False
            )

        except Exception as e:
            logger.error(f"❌ Database initialization failed: {e}")
            raise

    def _create_engine(self, db_url: str) -> AsyncEngine:
        url = make_url(db_url)
        if url.get_backend_name() == "sqlite":
            # In-memory databases live per connection; share a single one
            if url.database in (None, "", ":memory:"):
                return create_async_engine(
                    db_url,
                    echo=settings.DATABASE_ECHO,
                    poolclass=StaticPool,
                    connect_args={"check_same_thread": False}
                )
            return create_async_engine(db_url, echo=settings.DATABASE_ECHO)
        return create_async_engine(
            db_url,
            pool_size=15,
            max_overflow=5,
            pool_timeout=30,
            pool_recycle=300,
            pool_pre_ping=True,
            echo=settings.DATABASE_ECHO,
            connect_args={"prepared_statement_cache_size": 0}
        )

    async def _setup_database(self, conn):
        """Initialize database schema"""
        try:
            await conn.execute(text("SELECT 1"))
            for model in settings.DB_MODELS:
                import_module(model)

            logger.info(f"📝 Models registered: {list(Base.metadata.tables.keys())}")
            await conn.run_sync(Base.metadata.create_all)
            logger.info("✅ Tables ready")

        except Exception as e:
            logger.error(f"❌ Database setup failed: {e}")
            raise

    async def _setup_database_after_creation(self, db_url: str):
        """Reinitialize after database creation"""
        logger.info("🔄 Setting up newly created database...")
        self.engine = self._create_engine(db_url)
        async with self.engine.begin() as conn:
            await self._setup_database(conn)

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Context manager for safe session handling; one new session per scope"""
        if not self.session_factory:
            raise RuntimeError("DatabaseSessionManager not initialized")
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    async def _create_database(self, database_url: str) -> bool:
        """Create the database if it does not exist"""
        try:
            db_url = make_url(database_url)
            db_name = db_url.database

            # Connect to the default database (usually 'postgres')
            default_url = db_url.set(database="postgres")
            engine = create_async_engine(default_url, isolation_level="AUTOCOMMIT")
            async with engine.begin() as conn:
                await conn.execute(text(f'CREATE DATABASE "{db_name}"'))
            await engine.dispose()
            logger.info(f"✅ Database '{db_name}' created successfully.")
            return True
        except (asyncpg.exceptions.PostgresError, sqlalchemy.exc.SQLAlchemyError) as e:
            logger.error(f"❌ Failed to create database: {e}")
            return False

    async def close(self):
        """Cleanup connection pool"""
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self.session_factory = None

# Initialize session manager
session_manager = DatabaseSessionManager()
