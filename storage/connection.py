"""
Database connection management for the jewelry quote system.
"""

from contextlib import contextmanager
from typing import Generator, Optional
import logging

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool, StaticPool

from config.settings import settings
from models import Base

logger = logging.getLogger(__name__)


class DatabaseManager:
    """데이터베이스 연결 관리자"""

    def __init__(self, url: Optional[str] = None):
        self._url = url
        self._engine: Engine = None
        self._session_factory: sessionmaker = None
        self._initialized = False

    @property
    def url(self) -> str:
        return self._url or settings.database.url

    def initialize(self) -> None:
        """데이터베이스 연결 초기화"""
        if self._initialized:
            return

        try:
            if self.url.startswith("sqlite"):
                # 로컬 개발/테스트용 단일 연결
                self._engine = create_engine(
                    self.url,
                    connect_args={"check_same_thread": False},
                    poolclass=StaticPool,
                    echo=settings.database.echo
                )
            else:
                self._engine = create_engine(
                    self.url,
                    pool_size=settings.database.pool_size,
                    max_overflow=settings.database.max_overflow,
                    pool_timeout=settings.database.pool_timeout,
                    pool_recycle=settings.database.pool_recycle,
                    pool_pre_ping=True,  # 연결 상태 확인
                    poolclass=QueuePool,
                    echo=settings.database.echo
                )

            # 세션 팩토리 생성
            self._session_factory = sessionmaker(
                bind=self._engine,
                autocommit=False,
                autoflush=False,
                expire_on_commit=False
            )

            # 엔진 이벤트 리스너 등록
            self._register_event_listeners()

            self._initialized = True
            logger.info("Database connection initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize database connection: {e}")
            raise

    def _register_event_listeners(self) -> None:
        """SQLAlchemy 이벤트 리스너 등록"""

        @event.listens_for(self._engine, "connect")
        def set_session_options(dbapi_connection, connection_record):
            """연결 시 PostgreSQL 설정"""
            if self.url.startswith("postgresql"):
                with dbapi_connection.cursor() as cursor:
                    cursor.execute("SET timezone='UTC'")
                    cursor.execute("SET statement_timeout='30s'")

        @event.listens_for(self._engine, "checkout")
        def receive_checkout(dbapi_connection, connection_record, connection_proxy):
            """연결 풀에서 연결을 가져올 때"""
            logger.debug("Connection checked out from pool")

    def create_tables(self) -> None:
        """테이블 생성 (스키마 설정은 저장소 측 일회성 작업)"""
        Base.metadata.create_all(bind=self.get_engine())
        logger.info("Database tables created")

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """동기 데이터베이스 세션 컨텍스트 매니저"""
        if not self._initialized:
            self.initialize()

        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"Database session error: {e}")
            raise
        finally:
            session.close()

    def get_engine(self) -> Engine:
        """동기 엔진 반환"""
        if not self._initialized:
            self.initialize()
        return self._engine

    def check_connection(self) -> bool:
        """데이터베이스 연결 상태 확인"""
        try:
            with self.get_session() as session:
                session.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Database connection check failed: {e}")
            return False

    def close(self) -> None:
        """데이터베이스 연결 종료"""
        if self._engine:
            self._engine.dispose()
            logger.info("Database engine disposed")

        self._initialized = False


# 전역 데이터베이스 매니저 인스턴스
db_manager = DatabaseManager()


# 편의 함수들
def get_db_session() -> Generator[Session, None, None]:
    """데이터베이스 세션 획득 (동기)"""
    return db_manager.get_session()


def init_db() -> None:
    """데이터베이스 연결 초기화"""
    db_manager.initialize()


def close_db() -> None:
    """데이터베이스 연결 종료"""
    db_manager.close()
