"""
문서 가치 재산정 서비스

문서/평가/계정 데이터는 아래 역할(Protocol)로 주입받아 사용한다.
구매 흐름의 후속 작업으로 호출되거나, 서명된 요청으로 직접 호출된다.
"""

import logging
from typing import List, Optional, Protocol, Union

from ctiledger.config import Settings
from ctiledger.core.exceptions import BaseAPIException, NotFoundError, ValidationError
from ctiledger.repositories.incentive_repository import IncentiveRepository
from ctiledger.repositories.ledger_state import LedgerState
from ctiledger.repositories.points_repository import PointsRepository
from ctiledger.schemas.common import DocType, LedgerOperationResponse
from ctiledger.schemas.documents import CtiInfo, ModelInfo
from ctiledger.schemas.incentive import DocIncentiveInfo, IncentiveInputs
from ctiledger.schemas.pagination import PageResult
from ctiledger.schemas.statistics import ValueChangedEvent
from ctiledger.schemas.tx import IncentiveTxData, TxMsgRawData
from ctiledger.services.comment_service import CommentService
from ctiledger.services.document_service import DocumentService
from ctiledger.services.identifier_service import IdentifierService
from ctiledger.services.incentive_calculator import IncentiveCalculator, comment_score
from ctiledger.services.nonce_service import NonceService, parse_tx_payload
from ctiledger.services.query_service import PageQueryExecutor
from ctiledger.services.statistics_service import StatisticsService
from ctiledger.services.task_queue import FollowUpTaskQueue

logger = logging.getLogger(__name__)

VALUED_DOCTYPES = (DocType.CTI.value, DocType.MODEL.value)


class DocumentStore(Protocol):
    def get_document(self, doc_id: str, doctype: str) -> Optional[Union[CtiInfo, ModelInfo]]: ...

    def update_value(self, doc_id: str, doctype: str, value: float): ...

    def add_need(self, doc_id: str, doctype: str, amount: int = 1): ...


class CommentReader(Protocol):
    def comment_scores(self, ref_id: str) -> List[float]: ...


class AccountCounter(Protocol):
    def count_accounts(self) -> int: ...


class IncentiveService:
    def __init__(
        self,
        ledger: LedgerState,
        settings: Settings,
        document_store: Optional[DocumentStore] = None,
        comment_reader: Optional[CommentReader] = None,
        account_counter: Optional[AccountCounter] = None,
        statistics_service: Optional[StatisticsService] = None,
        nonce_service: Optional[NonceService] = None,
    ):
        self.ledger = ledger
        self.settings = settings
        self.incentive_repo = IncentiveRepository(ledger)
        self.identifier_service = IdentifierService(ledger, settings)
        self.calculator = IncentiveCalculator.from_settings(settings)
        self.query_executor = PageQueryExecutor(ledger, settings)

        self.document_store = document_store or DocumentService(ledger, settings)
        self.comment_reader = comment_reader or CommentService(ledger, settings)
        self.account_counter = account_counter or PointsRepository(ledger)
        self.statistics_service = statistics_service or StatisticsService(ledger, settings)
        self.nonce_service = nonce_service or NonceService(ledger, settings)

    @staticmethod
    def _check_doctype(doctype: str) -> None:
        if doctype not in VALUED_DOCTYPES:
            raise ValidationError(
                f"Unsupported incentive doctype: {doctype}",
                details={"allowed": list(VALUED_DOCTYPES)},
            )

    def recompute(self, ref_id: str, doctype: str, nonce: str) -> DocIncentiveInfo:
        """문서 가치 재산정 및 이력 기록

        Args:
            ref_id: 문서 ID
            doctype: "cti" 또는 "model"
            nonce: 이력 ID 생성용 nonce

        Returns:
            DocIncentiveInfo: 새로 기록된 이력
        """
        self._check_doctype(doctype)

        with self.ledger.transaction():
            document = self.document_store.get_document(ref_id, doctype)
            if document is None:
                raise NotFoundError(f"{doctype} {ref_id} does not exist", details={"ref_id": ref_id})

            scores = self.comment_reader.comment_scores(ref_id)
            inputs = IncentiveInputs(
                history_value=document.value,
                comment_score=self._score(scores),
                need=document.need,
                total_user_num=self.account_counter.count_accounts(),
                incentive_value=document.value,
            )
            new_value = self.calculator.compute(document.incentive_mechanism, inputs)

            info = DocIncentiveInfo(
                incentive_id=self.identifier_service.generate_incentive_id(ref_id, doctype, nonce),
                ref_id=ref_id,
                incentive_doctype=doctype,
                history_value=document.value,
                incentive_mechanism=document.incentive_mechanism,
                incentive_value=new_value,
                comment_score=inputs.comment_score,
                need=inputs.need,
                total_user_num=inputs.total_user_num,
                create_time=self.ledger.tx_timestamp().isoformat(),
            )
            self.incentive_repo.create(info)
            self.document_store.update_value(ref_id, doctype, new_value)

        logger.info(f"Recomputed value of {doctype} {ref_id}: {info.history_value} -> {new_value}")
        return info

    def _score(self, scores: List[float]) -> float:
        return comment_score(scores, self.calculator.params.comment_baseline)

    def register_doc_incentive(
        self, ref_id: str, doctype: str, nonce: str
    ) -> LedgerOperationResponse[DocIncentiveInfo]:
        """재산정 후 통계(총 가치) 보정을 후속 작업으로 실행"""
        try:
            info = self.recompute(ref_id, doctype, nonce)
        except BaseAPIException:
            raise
        except Exception as e:
            logger.error(f"Error recomputing incentive for {doctype} {ref_id}: {str(e)}")
            raise

        return self._after_recompute(info)

    def _after_recompute(self, info: DocIncentiveInfo) -> LedgerOperationResponse[DocIncentiveInfo]:
        queue = FollowUpTaskQueue(context=f"incentive {info.incentive_id}")
        queue.enqueue(
            "statistics.on_value_changed",
            self.statistics_service.on_value_changed,
            ValueChangedEvent(
                doctype=info.incentive_doctype,
                old_value=info.history_value,
                new_value=info.incentive_value,
            ),
        )
        result = queue.drain()
        return LedgerOperationResponse[DocIncentiveInfo](data=info, warnings=result.warnings)

    def register_from_tx(self, raw: TxMsgRawData) -> LedgerOperationResponse[DocIncentiveInfo]:
        """서명된 요청으로 재산정 (nonce 소비 포함)"""
        with self.ledger.transaction():
            message = self.nonce_service.verify_tx_message(raw)
            data = parse_tx_payload(message, IncentiveTxData)
            info = self.recompute(data.ref_id, data.doctype, message.nonce)
        return self._after_recompute(info)

    def get_doc_incentives(self, ref_id: str, doctype: str) -> List[DocIncentiveInfo]:
        self._check_doctype(doctype)
        return self.incentive_repo.find_by_doc(ref_id, doctype)

    def list_doc_incentives(
        self, ref_id: str, doctype: str, page: int = 1, page_size: int = 10
    ) -> PageResult[DocIncentiveInfo]:
        """문서별 가치 산정 이력 (최신순)"""
        self._check_doctype(doctype)
        return self.query_executor.page(
            self.incentive_repo.doc_predicate(ref_id, doctype),
            page,
            page_size,
            DocIncentiveInfo,
        )
