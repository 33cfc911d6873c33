from typing import List, Optional

from ctiledger.repositories.base import BaseRepository
from ctiledger.repositories.ledger_state import LedgerState
from ctiledger.schemas.common import DocType
from ctiledger.schemas.documents import CommentInfo
from ctiledger.schemas.pagination import QueryPredicate


class CommentRepository(BaseRepository[CommentInfo]):
    """문서 평가(댓글) 리포지토리 (key = comment_id)"""

    doctype = DocType.COMMENT.value

    def __init__(self, ledger: LedgerState):
        super().__init__(CommentInfo, ledger)

    def get_comment(self, comment_id: str) -> Optional[CommentInfo]:
        return self.get(comment_id)

    def create(self, comment: CommentInfo) -> int:
        return self.insert(comment.comment_id, comment)

    def ref_predicate(self, ref_id: str) -> QueryPredicate:
        return QueryPredicate(
            selector={"doctype": self.doctype, "comment_ref_id": ref_id},
            sort=[{"create_time": "desc"}],
        )

    def find_by_ref(self, ref_id: str) -> List[CommentInfo]:
        """승인 여부와 관계없이 문서에 달린 모든 평가"""
        return self.find_all(self._predicate(comment_ref_id=ref_id))

    def update_status(self, comment_id: str, status: int) -> Optional[CommentInfo]:
        found = self.get_versioned(comment_id)
        if found is None:
            return None
        comment, version = found
        updated = comment.model_copy(update={"comment_status": status})
        self.put(comment_id, updated, expected_version=version)
        return updated
