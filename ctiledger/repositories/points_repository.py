"""
포인트 리포지토리 - 계정 포인트 레코드와 거래 기록 접근

키 구조:
- <user_id>_point_info: 계정 잔액, 등급, 보유/구매/판매 맵
- <user_id>_transactions_<transaction_id>_<in|out>: 거래 기록 한 건 (insert-only)

거래 기록을 계정별 리스트 하나에 누적하지 않고 건별 레코드로 저장하므로
기록 수가 늘어나도 쓰기 크기가 일정하며, 조회는 북마크로 페이지를 나눈다.
"""

from typing import List, Optional, Tuple

from ctiledger.repositories.base import BaseRepository
from ctiledger.repositories.ledger_state import LedgerState
from ctiledger.schemas.common import DocType
from ctiledger.schemas.pagination import QueryPredicate
from ctiledger.schemas.points import AccountPointInfo, PointTransaction


def point_info_key(user_id: str) -> str:
    return f"{user_id}_point_info"


def transaction_key(account_id: str, transaction_id: str, direction: str) -> str:
    return f"{account_id}_transactions_{transaction_id}_{direction}"


class PointsRepository(BaseRepository[AccountPointInfo]):
    """계정 포인트 레코드 리포지토리"""

    doctype = DocType.POINT_INFO.value

    def __init__(self, ledger: LedgerState):
        super().__init__(AccountPointInfo, ledger)

    def get_account(self, user_id: str) -> Optional[AccountPointInfo]:
        return self.get(point_info_key(user_id))

    def get_account_versioned(self, user_id: str) -> Optional[Tuple[AccountPointInfo, int]]:
        return self.get_versioned(point_info_key(user_id))

    def create_account(self, account: AccountPointInfo) -> int:
        return self.insert(point_info_key(account.user_id), account)

    def save_account(self, account: AccountPointInfo, expected_version: Optional[int] = None) -> int:
        return self.put(point_info_key(account.user_id), account, expected_version)

    def count_accounts(self) -> int:
        return self.count()


class TransactionRepository(BaseRepository[PointTransaction]):
    """거래 기록 리포지토리 - 기록은 생성 후 변경되지 않는다"""

    doctype = DocType.POINT_TRANSACTION.value

    def __init__(self, ledger: LedgerState):
        super().__init__(PointTransaction, ledger)

    def append(self, entry: PointTransaction) -> int:
        key = transaction_key(entry.account_id, entry.transaction_id, entry.transaction_type)
        return self.insert(key, entry)

    def account_predicate(self, account_id: str) -> QueryPredicate:
        return self._predicate(account_id=account_id)

    def find_by_transaction_id(self, transaction_id: str) -> List[PointTransaction]:
        return self.find_all(self._predicate(transaction_id=transaction_id))
