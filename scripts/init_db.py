import os
import sys

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ctiledger.config import settings
from ctiledger.database.connection import engine
from ctiledger.database.session import get_ledger_context
from ctiledger.models.ledger import Base
from ctiledger.services.point_service import PointService


def init_db():
    """원장 테이블 생성 및 관리자 계정 초기화"""
    try:
        Base.metadata.create_all(bind=engine)

        with get_ledger_context() as ledger:
            admin = PointService(ledger, settings).init_ledger()

        print(
            f"Ledger initialized at {settings.DATABASE_URL} "
            f"(admin {admin.user_id}: {admin.balance} points, level {admin.level})"
        )

    except Exception as e:
        print(f"Ledger initialization failed: {str(e)}")
        raise


if __name__ == "__main__":
    init_db()
