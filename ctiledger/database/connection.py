from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from ctiledger.config import settings


def create_ledger_engine(database_url: str, echo: bool = False) -> Engine:
    """원장 상태 저장소 엔진 생성 (SQLite / PostgreSQL)"""
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
        )
    return create_engine(
        database_url,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_pre_ping=True,  # 연결 유효성 검사
        pool_recycle=3600,
        echo=echo,
    )


# SQL 로그는 logging_config 의 sqlalchemy.engine 로거로 제어
engine = create_ledger_engine(settings.DATABASE_URL)

# Use expire_on_commit=False to avoid DetachedInstanceError when accessing
# attributes after commit within the same request scope.
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,
)
