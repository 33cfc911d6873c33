import logging
from typing import List, Optional, Union

from ctiledger.config import Settings
from ctiledger.core.exceptions import NotFoundError, ValidationError
from ctiledger.repositories.document_repository import (
    CtiRepository,
    DocumentRepository,
    ModelRepository,
)
from ctiledger.repositories.ledger_state import LedgerState
from ctiledger.repositories.points_repository import PointsRepository
from ctiledger.schemas.common import DocType, LedgerOperationResponse
from ctiledger.schemas.documents import (
    CtiInfo,
    CtiSummaryInfo,
    CtiTxData,
    IncentiveMechanism,
    ModelInfo,
    ModelTxData,
    UserOwnCtiInfos,
)
from ctiledger.schemas.pagination import BookmarkPageResult, PageResult, QueryPredicate
from ctiledger.schemas.statistics import DocumentRegisteredEvent
from ctiledger.schemas.tx import TxMsgRawData
from ctiledger.services.identifier_service import IdentifierService
from ctiledger.services.nonce_service import NonceService, parse_tx_payload
from ctiledger.services.query_service import PageQueryExecutor
from ctiledger.services.statistics_service import StatisticsService
from ctiledger.services.task_queue import FollowUpTaskQueue

logger = logging.getLogger(__name__)

Document = Union[CtiInfo, ModelInfo]


class DocumentService:
    """CTI / 모델 문서 등록 및 조회

    가치 산정 엔진과 구매 흐름에는 문서 저장소(get_document, update_value, add_need)
    역할로 주입된다.
    """

    def __init__(
        self,
        ledger: LedgerState,
        settings: Settings,
        nonce_service: Optional[NonceService] = None,
        statistics_service: Optional[StatisticsService] = None,
    ):
        self.ledger = ledger
        self.settings = settings
        self.cti_repo = CtiRepository(ledger)
        self.model_repo = ModelRepository(ledger)
        self.points_repo = PointsRepository(ledger)
        self.identifier_service = IdentifierService(ledger, settings)
        self.nonce_service = nonce_service or NonceService(ledger, settings)
        self.statistics_service = statistics_service or StatisticsService(ledger, settings)
        self.query_executor = PageQueryExecutor(ledger, settings)

    def _repo(self, doctype: str) -> DocumentRepository:
        if doctype == DocType.CTI.value:
            return self.cti_repo
        if doctype == DocType.MODEL.value:
            return self.model_repo
        raise ValidationError(f"Unsupported document type: {doctype}", details={"doctype": doctype})

    # ------------------------------------------------------------------
    # 문서 저장소 역할
    # ------------------------------------------------------------------
    def get_document(self, doc_id: str, doctype: str) -> Optional[Document]:
        return self._repo(doctype).get_document(doc_id)

    def require_document(self, doc_id: str, doctype: str) -> Document:
        document = self.get_document(doc_id, doctype)
        if document is None:
            raise NotFoundError(f"{doctype} {doc_id} does not exist", details={"doc_id": doc_id})
        return document

    def update_value(self, doc_id: str, doctype: str, value: float) -> Document:
        """가치 갱신 - 가치 산정 엔진 전용"""
        with self.ledger.transaction():
            return self._repo(doctype).update_value(doc_id, value)

    def add_need(self, doc_id: str, doctype: str, amount: int = 1) -> Document:
        """수요량 증가 (add-only)"""
        with self.ledger.transaction():
            document = self._repo(doctype).add_need(doc_id, amount)
        logger.info(f"Increased need of {doctype} {doc_id} to {document.need}")
        return document

    # ------------------------------------------------------------------
    # 등록
    # ------------------------------------------------------------------
    def _registered_event(self, document: Document) -> DocumentRegisteredEvent:
        if isinstance(document, CtiInfo):
            return DocumentRegisteredEvent(
                doctype=DocType.CTI.value,
                type_code=document.cti_type,
                data_size=document.data_size,
                iocs=document.iocs,
                value=document.value,
                creator_user_id=document.creator_user_id,
                occurred_at=self.ledger.tx_timestamp(),
            )
        return DocumentRegisteredEvent(
            doctype=DocType.MODEL.value,
            type_code=document.model_type,
            data_size=document.model_data_size,
            value=document.value,
            creator_user_id=document.creator_user_id,
            occurred_at=self.ledger.tx_timestamp(),
        )

    def _after_registration(self, document: Document) -> List[str]:
        event = self._registered_event(document)
        queue = FollowUpTaskQueue(context=f"register {event.doctype} {document.doc_id}")
        queue.enqueue("statistics.on_document_registered", self.statistics_service.on_document_registered, event)
        return queue.drain().warnings

    def register_cti(self, raw: TxMsgRawData) -> LedgerOperationResponse[CtiInfo]:
        """서명된 메시지로 CTI 등록

        ID 는 cti_type + 트랜잭션 시각 + nonce 접미사로 만들며, 통계 갱신은
        등록 커밋 후 후속 작업으로 실행된다.
        """
        with self.ledger.transaction():
            message = self.nonce_service.verify_tx_message(raw)
            data = parse_tx_payload(message, CtiTxData)
            cti_id = self.identifier_service.generate_id(data.cti_type, message.nonce)
            cti = CtiInfo(
                cti_id=cti_id,
                creator_user_id=message.user_id,
                create_time=self.ledger.tx_timestamp().isoformat(),
                **data.model_dump(),
            )
            cti.incentive_mechanism = int(IncentiveMechanism.coerce(cti.incentive_mechanism))
            self.cti_repo.create(cti)

        logger.info(f"Registered CTI {cti_id} by {message.user_id}")
        return LedgerOperationResponse[CtiInfo](data=cti, warnings=self._after_registration(cti))

    def register_model(self, raw: TxMsgRawData) -> LedgerOperationResponse[ModelInfo]:
        """서명된 메시지로 모델 등록 (ID 타입 코드 = model_type)"""
        with self.ledger.transaction():
            message = self.nonce_service.verify_tx_message(raw)
            data = parse_tx_payload(message, ModelTxData)
            model_id = self.identifier_service.generate_id(data.model_type, message.nonce)
            model = ModelInfo(
                model_id=model_id,
                creator_user_id=message.user_id,
                create_time=self.ledger.tx_timestamp().isoformat(),
                **data.model_dump(),
            )
            model.incentive_mechanism = int(IncentiveMechanism.coerce(model.incentive_mechanism))
            self.model_repo.create(model)

        logger.info(f"Registered model {model_id} by {message.user_id}")
        return LedgerOperationResponse[ModelInfo](data=model, warnings=self._after_registration(model))

    # ------------------------------------------------------------------
    # 조회
    # ------------------------------------------------------------------
    def get_cti(self, cti_id: str) -> CtiInfo:
        return self.require_document(cti_id, DocType.CTI.value)

    def get_model(self, model_id: str) -> ModelInfo:
        return self.require_document(model_id, DocType.MODEL.value)

    def get_cti_by_hash(self, cti_hash: str) -> CtiInfo:
        cti = self.cti_repo.find_by_hash(cti_hash)
        if cti is None:
            raise NotFoundError(f"CTI with hash {cti_hash} does not exist")
        return cti

    def _list_predicate(
        self,
        doctype: str,
        type_code: Optional[int] = None,
        incentive_mechanism: Optional[int] = None,
        creator_user_id: Optional[str] = None,
    ) -> QueryPredicate:
        repo = self._repo(doctype)
        selector = {"doctype": doctype}
        if type_code is not None:
            selector[repo.type_field] = type_code
        if incentive_mechanism is not None:
            selector["incentive_mechanism"] = incentive_mechanism
        if creator_user_id:
            selector["creator_user_id"] = creator_user_id
        return QueryPredicate(selector=selector, sort=[{"create_time": "desc"}])

    def list_cti(
        self,
        page: int = 1,
        page_size: int = 10,
        cti_type: Optional[int] = None,
        incentive_mechanism: Optional[int] = None,
        creator_user_id: Optional[str] = None,
    ) -> PageResult[CtiInfo]:
        predicate = self._list_predicate(DocType.CTI.value, cti_type, incentive_mechanism, creator_user_id)
        return self.query_executor.page(predicate, page, page_size, CtiInfo)

    def list_models(
        self,
        page: int = 1,
        page_size: int = 10,
        model_type: Optional[int] = None,
        incentive_mechanism: Optional[int] = None,
        creator_user_id: Optional[str] = None,
    ) -> PageResult[ModelInfo]:
        predicate = self._list_predicate(DocType.MODEL.value, model_type, incentive_mechanism, creator_user_id)
        return self.query_executor.page(predicate, page, page_size, ModelInfo)

    def browse_cti(self, page_size: int = 10, bookmark: str = "") -> BookmarkPageResult[CtiInfo]:
        """전체 CTI 커서 조회 (ID 순)"""
        return self.query_executor.page_by_bookmark(
            QueryPredicate.for_doctype(DocType.CTI.value), page_size, bookmark, CtiInfo
        )

    def models_by_ref_cti(self, cti_id: str) -> List[ModelInfo]:
        return self.model_repo.find_by_ref_cti(cti_id)

    def latest_cti_summaries(self, limit: Optional[int] = None) -> List[CtiSummaryInfo]:
        limit = limit or self.settings.LATEST_SUMMARY_DEFAULT_LIMIT
        if limit < 1 or limit > self.settings.PAGINATION_MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {self.settings.PAGINATION_MAX_PAGE_SIZE}")
        predicate = QueryPredicate(
            selector={"doctype": DocType.CTI.value},
            sort=[{"create_time": "desc"}],
            limit=limit,
        )
        return [
            CtiSummaryInfo(
                cti_id=cti.cti_id,
                cti_hash=cti.cti_hash,
                cti_type=cti.cti_type,
                tags=cti.tags,
                creator_user_id=cti.creator_user_id,
                create_time=cti.create_time,
            )
            for cti in self.cti_repo.find_all(predicate)
        ]

    def user_purchased_documents(self, user_id: str, doctype: str) -> List[Document]:
        account = self.points_repo.get_account(user_id)
        if account is None:
            raise NotFoundError(f"account {user_id} not found")
        bought = account.cti_bought if doctype == DocType.CTI.value else account.model_bought
        return self._repo(doctype).find_by_ids(list(bought))

    def user_own_cti(self, user_id: str) -> UserOwnCtiInfos:
        """사용자가 업로드한 CTI 와 구매한 CTI"""
        uploads = self.cti_repo.find_by_creator(user_id)
        account = self.points_repo.get_account(user_id)
        purchases = self.cti_repo.find_by_ids(list(account.cti_bought)) if account else []
        return UserOwnCtiInfos(
            upload_cti_infos=uploads,
            purchase_cti_infos=purchases,
            total=len(uploads) + len(purchases),
        )
