import base64
import json
from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ctiledger.config import Settings
from ctiledger.models.ledger import Base
from ctiledger.repositories.ledger_state import SqlLedgerState
from ctiledger.schemas.points import AccountRegisterRequest
from ctiledger.schemas.tx import TxMsgRawData
from ctiledger.services.nonce_service import NonceService
from ctiledger.services.point_service import PointService

FIXED_NOW = datetime(2024, 3, 15, 10, 30)


class MutableClock:
    """테스트용 시계 - now 를 바꿔 시간 경과를 흉내낸다"""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def settings():
    return Settings(
        DATABASE_URL="sqlite://",
        TIMEZONE="Asia/Shanghai",
        AUTO_CREATE_TABLES=False,
    )


@pytest.fixture
def db_session():
    """in-memory SQLite 세션"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    session = Session()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def clock():
    return MutableClock()


@pytest.fixture
def ledger(db_session, settings, clock):
    return SqlLedgerState(db_session, timezone=settings.TIMEZONE, clock=clock)


@pytest.fixture
def nonce_service(ledger, settings):
    return NonceService(ledger, settings)


@pytest.fixture
def point_service(ledger, settings, nonce_service):
    return PointService(ledger, settings, nonce_service=nonce_service)


@pytest.fixture
def make_account(point_service):
    def _make(user_id: str, points: str = "100", level: int = 1):
        return point_service.register_account(
            AccountRegisterRequest(user_id=user_id, initial_points=Decimal(points), level=level)
        )

    return _make


@pytest.fixture
def signed_tx(nonce_service):
    """nonce 를 발급받아 서명된 요청 메시지를 만든다"""

    def _sign(user_id: str, payload: dict, signature: str = "sig") -> TxMsgRawData:
        nonce = nonce_service.issue_nonce(user_id, signature)
        return TxMsgRawData(
            user_id=user_id,
            tx_data=base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii"),
            nonce=nonce,
            tx_signature=signature,
            nonce_signature=signature,
        )

    return _sign
