import logging
from decimal import Decimal
from typing import List, Optional

from ctiledger.config import Settings
from ctiledger.core.exceptions import AuthorizationError, NotFoundError
from ctiledger.repositories.comment_repository import CommentRepository
from ctiledger.repositories.document_repository import CtiRepository, ModelRepository
from ctiledger.repositories.ledger_state import LedgerState
from ctiledger.repositories.points_repository import PointsRepository
from ctiledger.schemas.common import DocType
from ctiledger.schemas.documents import CommentInfo, CommentStatus, CommentTxData
from ctiledger.schemas.pagination import PageResult
from ctiledger.schemas.tx import ApproveCommentTxData, TxMsgRawData
from ctiledger.services.identifier_service import IdentifierService
from ctiledger.services.nonce_service import NonceService, parse_tx_payload
from ctiledger.services.query_service import PageQueryExecutor

logger = logging.getLogger(__name__)

# 평가 ID 타입 코드
COMMENT_TYPE_CODES = {DocType.CTI.value: 1, DocType.MODEL.value: 2}


class CommentService:
    """문서 평가(댓글) 등록/승인/조회

    가치 산정 엔진에는 comment_scores() 로 점수 목록을 제공한다.
    """

    def __init__(
        self,
        ledger: LedgerState,
        settings: Settings,
        nonce_service: Optional[NonceService] = None,
    ):
        self.ledger = ledger
        self.settings = settings
        self.comment_repo = CommentRepository(ledger)
        self.cti_repo = CtiRepository(ledger)
        self.model_repo = ModelRepository(ledger)
        self.points_repo = PointsRepository(ledger)
        self.identifier_service = IdentifierService(ledger, settings)
        self.nonce_service = nonce_service or NonceService(ledger, settings)
        self.query_executor = PageQueryExecutor(ledger, settings)

    def register_comment(self, raw: TxMsgRawData) -> CommentInfo:
        """평가 등록 - 대상 문서가 있어야 하며 상태는 PENDING 으로 시작"""
        with self.ledger.transaction():
            message = self.nonce_service.verify_tx_message(raw)
            data = parse_tx_payload(message, CommentTxData)

            doc_type = data.comment_doc_type
            if doc_type not in COMMENT_TYPE_CODES:
                doc_type = DocType.CTI.value
            repo = self.cti_repo if doc_type == DocType.CTI.value else self.model_repo
            repo.require(data.comment_ref_id)

            account = self.points_repo.get_account(message.user_id)
            comment = CommentInfo(
                comment_id=self.identifier_service.generate_id(COMMENT_TYPE_CODES[doc_type], message.nonce),
                user_id=message.user_id,
                user_level=account.level if account else self.settings.DEFAULT_USER_LEVEL,
                comment_doc_type=doc_type,
                comment_ref_id=data.comment_ref_id,
                comment_score=data.comment_score,
                comment_status=int(CommentStatus.PENDING),
                comment_content=data.comment_content,
                create_time=self.ledger.tx_timestamp().isoformat(),
            )
            self.comment_repo.create(comment)

        logger.info(f"Registered comment {comment.comment_id} on {doc_type} {comment.comment_ref_id}")
        return comment

    def approve_comment(self, raw: TxMsgRawData) -> CommentInfo:
        """평가 승인/거절 - 일정 포인트 이상 보유한 사용자만 가능"""
        with self.ledger.transaction():
            message = self.nonce_service.verify_tx_message(raw)
            data = parse_tx_payload(message, ApproveCommentTxData)

            reviewer = self.points_repo.get_account(message.user_id)
            min_points = Decimal(str(self.settings.COMMENT_REVIEWER_MIN_POINTS))
            if reviewer is None or reviewer.balance < min_points:
                raise AuthorizationError(
                    "Not enough points to review comments",
                    details={"user_id": message.user_id, "required": str(min_points)},
                )

            status = CommentStatus.APPROVED if data.status == 1 else CommentStatus.REJECTED
            comment = self.comment_repo.update_status(data.comment_id, int(status))
            if comment is None:
                raise NotFoundError(f"comment {data.comment_id} does not exist")

        logger.info(f"Comment {data.comment_id} set to {status.name} by {message.user_id}")
        return comment

    def get_comment(self, comment_id: str) -> CommentInfo:
        comment = self.comment_repo.get_comment(comment_id)
        if comment is None:
            raise NotFoundError(f"comment {comment_id} does not exist")
        return comment

    def comment_scores(self, ref_id: str) -> List[float]:
        # 승인 상태와 무관하게 모든 평가를 반영
        return [c.comment_score for c in self.comment_repo.find_by_ref(ref_id)]

    def list_comments(self, ref_id: str, page: int = 1, page_size: int = 10) -> PageResult[CommentInfo]:
        return self.query_executor.page(self.comment_repo.ref_predicate(ref_id), page, page_size, CommentInfo)
