import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from ctiledger.config import settings
from ctiledger.database.connection import SessionLocal
from ctiledger.repositories.ledger_state import SqlLedgerState

logger = logging.getLogger(__name__)


def get_db():
    """요청 단위 세션 (컨테이너 Resource)

    커밋은 SqlLedgerState 가 담당하므로 여기서는 정리만 한다.
    """
    db = SessionLocal()
    try:
        yield db
    except Exception:
        if db.in_transaction():
            logger.warning("Rolling back unfinished ledger session")
            db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def get_ledger_context(timezone: Optional[str] = None) -> Iterator[SqlLedgerState]:
    """스크립트용 원장 컨텍스트 - 블록 전체가 하나의 원장 트랜잭션"""
    db = SessionLocal()
    ledger = SqlLedgerState(db, timezone=timezone or settings.TIMEZONE)
    try:
        with ledger.transaction():
            yield ledger
    finally:
        db.close()
