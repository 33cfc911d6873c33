from typing import List

from ctiledger.repositories.base import BaseRepository
from ctiledger.repositories.ledger_state import LedgerState
from ctiledger.schemas.common import DocType
from ctiledger.schemas.incentive import DocIncentiveInfo
from ctiledger.schemas.pagination import QueryPredicate


class IncentiveRepository(BaseRepository[DocIncentiveInfo]):
    """가치 산정 이력 리포지토리 - insert-only"""

    doctype = DocType.INCENTIVE.value

    def __init__(self, ledger: LedgerState):
        super().__init__(DocIncentiveInfo, ledger)

    def create(self, info: DocIncentiveInfo) -> int:
        return self.insert(info.incentive_id, info)

    def doc_predicate(self, ref_id: str, doctype: str) -> QueryPredicate:
        return QueryPredicate(
            selector={
                "doctype": self.doctype,
                "ref_id": ref_id,
                "incentive_doctype": doctype,
            },
            sort=[{"create_time": "desc"}],
        )

    def find_by_doc(self, ref_id: str, doctype: str) -> List[DocIncentiveInfo]:
        return self.find_all(self.doc_predicate(ref_id, doctype))
