import logging
from decimal import Decimal
from typing import Optional

from ctiledger.config import Settings
from ctiledger.core.exceptions import ValidationError
from ctiledger.repositories.ledger_state import LedgerState
from ctiledger.repositories.points_repository import TransactionRepository
from ctiledger.schemas.common import AssetType
from ctiledger.schemas.pagination import BookmarkPageResult
from ctiledger.schemas.points import PointTransaction
from ctiledger.services.identifier_service import IdentifierService
from ctiledger.services.query_service import PageQueryExecutor

logger = logging.getLogger(__name__)


class TransactionRecorder:
    """양방향(출금/입금) 거래 기록"""

    def __init__(self, ledger: LedgerState, settings: Settings):
        self.ledger = ledger
        self.transaction_repo = TransactionRepository(ledger)
        self.identifier_service = IdentifierService(ledger, settings)
        self.query_executor = PageQueryExecutor(ledger, settings)

    def record_pair(
        self,
        from_user_id: str,
        to_user_id: str,
        points: Decimal,
        doc_id: str,
        nonce: str,
        asset_type: AssetType = AssetType.CTI,
    ) -> str:
        """출금/입금 기록 한 쌍을 같은 거래 ID 로 기록

        Args:
            from_user_id: 지불 계정
            to_user_id: 수취 계정
            points: 이동 포인트 (양수)
            doc_id: 관련 문서 ID
            nonce: 거래 ID 생성용 nonce

        Returns:
            str: 거래 ID
        """
        points = Decimal(str(points))
        if points < 0:
            raise ValidationError("points must not be negative", details={"points": str(points)})

        with self.ledger.transaction():
            transaction_id = self.identifier_service.generate_transaction_id(nonce)
            timestamp = self.ledger.tx_timestamp().isoformat()

            self.transaction_repo.append(
                PointTransaction(
                    transaction_id=transaction_id,
                    account_id=from_user_id,
                    transaction_type="out",
                    points=-points,
                    other_party=to_user_id,
                    info_id=doc_id,
                    asset_type=asset_type.value,
                    timestamp=timestamp,
                )
            )
            self.transaction_repo.append(
                PointTransaction(
                    transaction_id=transaction_id,
                    account_id=to_user_id,
                    transaction_type="in",
                    points=points,
                    other_party=from_user_id,
                    info_id=doc_id,
                    asset_type=asset_type.value,
                    timestamp=timestamp,
                )
            )

        logger.info(
            f"Recorded transaction {transaction_id}: {from_user_id} -> {to_user_id} ({points} points, doc {doc_id})"
        )
        return transaction_id

    def list_transactions(
        self, account_id: str, page_size: int = 20, bookmark: Optional[str] = ""
    ) -> BookmarkPageResult[PointTransaction]:
        """계정 거래 기록 조회 (북마크 페이지네이션)"""
        return self.query_executor.page_by_bookmark(
            self.transaction_repo.account_predicate(account_id),
            page_size,
            bookmark or "",
            PointTransaction,
        )
