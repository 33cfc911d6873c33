import logging
from decimal import Decimal
from typing import Optional

from ctiledger.config import Settings
from ctiledger.core.exceptions import (
    BaseAPIException,
    ConflictError,
    InsufficientBalanceError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from ctiledger.repositories.ledger_state import LedgerState
from ctiledger.repositories.points_repository import PointsRepository
from ctiledger.schemas.common import AssetType, LedgerOperationResponse
from ctiledger.schemas.pagination import BookmarkPageResult
from ctiledger.schemas.points import (
    AccountPointInfo,
    AccountRegisterRequest,
    PointTransaction,
    PurchaseResult,
    TransferResult,
)
from ctiledger.schemas.statistics import PurchaseEvent
from ctiledger.schemas.tx import PurchaseTxData, TxMsgRawData
from ctiledger.services.document_service import DocumentService
from ctiledger.services.incentive_service import IncentiveService
from ctiledger.services.nonce_service import NonceService, parse_tx_payload
from ctiledger.services.statistics_service import StatisticsService
from ctiledger.services.task_queue import FollowUpTaskQueue
from ctiledger.services.transaction_service import TransactionRecorder

logger = logging.getLogger(__name__)


class PointService:
    """포인트 계정, 양자 간 이체, 문서 구매를 담당하는 서비스"""

    def __init__(
        self,
        ledger: LedgerState,
        settings: Settings,
        document_service: Optional[DocumentService] = None,
        incentive_service: Optional[IncentiveService] = None,
        statistics_service: Optional[StatisticsService] = None,
        nonce_service: Optional[NonceService] = None,
    ):
        self.ledger = ledger
        self.settings = settings
        self.points_repo = PointsRepository(ledger)
        self.recorder = TransactionRecorder(ledger, settings)
        self.nonce_service = nonce_service or NonceService(ledger, settings)
        self.statistics_service = statistics_service or StatisticsService(ledger, settings)
        self.document_service = document_service or DocumentService(
            ledger, settings, nonce_service=self.nonce_service, statistics_service=self.statistics_service
        )
        self.incentive_service = incentive_service or IncentiveService(
            ledger,
            settings,
            document_store=self.document_service,
            account_counter=self.points_repo,
            statistics_service=self.statistics_service,
            nonce_service=self.nonce_service,
        )

    # ------------------------------------------------------------------
    # 계정
    # ------------------------------------------------------------------
    def register_account(self, request: AccountRegisterRequest) -> AccountPointInfo:
        """계정 생성

        Args:
            request: user_id 와 선택적 초기 포인트/등급

        Returns:
            AccountPointInfo: 생성된 계정
        """
        account = AccountPointInfo(
            user_id=request.user_id,
            balance=(
                request.initial_points
                if request.initial_points is not None
                else Decimal(str(self.settings.DEFAULT_USER_POINTS))
            ),
            level=request.level if request.level is not None else self.settings.DEFAULT_USER_LEVEL,
        )
        with self.ledger.transaction():
            self.points_repo.create_account(account)

        logger.info(f"Registered account {account.user_id} with {account.balance} points")
        return account

    def init_ledger(self) -> AccountPointInfo:
        """관리자 계정 초기화 (이미 있으면 그대로 반환)"""
        existing = self.points_repo.get_account(self.settings.ADMIN_USER_ID)
        if existing is not None:
            logger.info(f"Admin account {self.settings.ADMIN_USER_ID} already initialized")
            return existing

        try:
            return self.register_account(
                AccountRegisterRequest(
                    user_id=self.settings.ADMIN_USER_ID,
                    initial_points=Decimal(str(self.settings.ADMIN_USER_POINTS)),
                    level=self.settings.ADMIN_USER_LEVEL,
                )
            )
        except ConflictError:
            # 동시에 다른 요청이 먼저 생성한 경우
            return self.get_account(self.settings.ADMIN_USER_ID)

    def get_account(self, user_id: str) -> AccountPointInfo:
        account = self.points_repo.get_account(user_id)
        if account is None:
            raise NotFoundError(f"account {user_id} not found", details={"user_id": user_id})
        return account

    def _level_for(self, balance: Decimal, current: int) -> int:
        """잔액 기준 등급 (내려가지 않음)"""
        if balance >= Decimal(str(self.settings.LEVEL_EXPERT_POINTS)):
            level = 3
        elif balance >= Decimal(str(self.settings.LEVEL_ADVANCED_POINTS)):
            level = 2
        else:
            level = 1
        return max(level, current)

    # ------------------------------------------------------------------
    # 이체
    # ------------------------------------------------------------------
    def transfer_points(
        self,
        from_user_id: str,
        to_user_id: str,
        points: Decimal,
        doc_id: str,
        asset_type: AssetType = AssetType.CTI,
    ) -> TransferResult:
        """양자 간 포인트 이체

        두 계정 쓰기는 하나의 원장 트랜잭션에서 읽은 버전을 조건으로 수행된다.
        잔액이 부족하면 아무것도 쓰지 않는다.

        Raises:
            ValidationError: 음수 포인트, 자기 자신에게 이체
            NotFoundError: 계정 없음
            InsufficientBalanceError: 잔액 부족
            VersionConflictError: 동시 수정 감지
        """
        points = Decimal(str(points))
        if points < 0:
            raise ValidationError("points must not be negative", details={"points": str(points)})
        if from_user_id == to_user_id:
            raise ValidationError("cannot transfer points to the same account", details={"user_id": from_user_id})

        try:
            with self.ledger.transaction():
                found_from = self.points_repo.get_account_versioned(from_user_id)
                if found_from is None:
                    raise NotFoundError(f"account {from_user_id} not found", details={"user_id": from_user_id})
                found_to = self.points_repo.get_account_versioned(to_user_id)
                if found_to is None:
                    raise NotFoundError(f"account {to_user_id} not found", details={"user_id": to_user_id})

                payer, payer_version = found_from
                payee, payee_version = found_to

                if payer.balance < points:
                    raise InsufficientBalanceError(
                        f"Insufficient balance: {payer.balance} < {points}",
                        details={"balance": str(payer.balance), "required": str(points)},
                    )

                payer.balance -= points
                payer.bought(asset_type)[doc_id] = points
                payer.owned(asset_type)[doc_id] = points
                payer.level = self._level_for(payer.balance, payer.level)

                payee.balance += points
                payee.sold(asset_type)[doc_id] = points
                payee.level = self._level_for(payee.balance, payee.level)

                self.points_repo.save_account(payer, expected_version=payer_version)
                self.points_repo.save_account(payee, expected_version=payee_version)
        except BaseAPIException:
            raise
        except Exception as e:
            logger.error(f"Failed to transfer {points} points from {from_user_id} to {to_user_id}: {str(e)}")
            raise PersistenceError(f"Failed to transfer points: {str(e)}")

        logger.info(f"Transferred {points} points from {from_user_id} to {to_user_id} for {doc_id}")
        return TransferResult(
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            points=points,
            from_balance=payer.balance,
            to_balance=payee.balance,
        )

    # ------------------------------------------------------------------
    # 구매
    # ------------------------------------------------------------------
    def purchase_document(
        self, raw: TxMsgRawData, asset_type: AssetType = AssetType.CTI
    ) -> LedgerOperationResponse[PurchaseResult]:
        """서명된 메시지로 CTI/모델 구매

        이체와 거래 기록은 한 트랜잭션으로 커밋된다. 이후 통계 반영, 수요량 증가,
        가치 재산정은 후속 작업으로 실행되며 실패는 warnings 로만 전달된다.
        """
        doctype = asset_type.value
        with self.ledger.transaction():
            message = self.nonce_service.verify_tx_message(raw)
            data = parse_tx_payload(message, PurchaseTxData)
            document = self.document_service.require_document(data.doc_id, doctype)

            buyer_id = message.user_id
            seller_id = document.creator_user_id
            if buyer_id == seller_id:
                raise ValidationError("cannot purchase your own document", details={"doc_id": data.doc_id})

            price = Decimal(str(document.value))
            self.transfer_points(buyer_id, seller_id, price, data.doc_id, asset_type)
            transaction_id = self.recorder.record_pair(
                buyer_id, seller_id, price, data.doc_id, message.nonce, asset_type
            )

        logger.info(f"User {buyer_id} purchased {doctype} {data.doc_id} for {price} points")

        queue = FollowUpTaskQueue(context=f"purchase {transaction_id}")
        queue.enqueue(
            "statistics.on_purchase",
            self.statistics_service.on_purchase,
            PurchaseEvent(doctype=doctype, buyer_id=buyer_id, occurred_at=self.ledger.tx_timestamp()),
        )
        queue.enqueue("document.add_need", self.document_service.add_need, data.doc_id, doctype)
        queue.enqueue(
            "incentive.register_doc_incentive",
            self.incentive_service.register_doc_incentive,
            data.doc_id,
            doctype,
            message.nonce,
        )
        follow_up = queue.drain()

        return LedgerOperationResponse[PurchaseResult](
            data=PurchaseResult(
                transaction_id=transaction_id,
                doc_id=data.doc_id,
                doctype=doctype,
                buyer_id=buyer_id,
                seller_id=seller_id,
                points=price,
            ),
            warnings=follow_up.warnings,
        )

    def list_transactions(
        self, user_id: str, page_size: int = 20, bookmark: str = ""
    ) -> BookmarkPageResult[PointTransaction]:
        return self.recorder.list_transactions(user_id, page_size, bookmark)
