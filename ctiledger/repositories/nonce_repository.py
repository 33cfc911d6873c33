from typing import List, Optional, Tuple

from ctiledger.repositories.base import BaseRepository
from ctiledger.repositories.ledger_state import LedgerState
from ctiledger.schemas.common import DocType
from ctiledger.schemas.nonce import NonceRecord


class NonceRepository(BaseRepository[NonceRecord]):
    """nonce 기록 리포지토리 (key = nonce 값)"""

    doctype = DocType.NONCE.value

    def __init__(self, ledger: LedgerState):
        super().__init__(NonceRecord, ledger)

    def get_nonce(self, nonce: str) -> Optional[NonceRecord]:
        return self.get(nonce)

    def create(self, nonce: str, record: NonceRecord) -> int:
        return self.insert(nonce, record)

    def all_nonces(self) -> List[Tuple[str, NonceRecord]]:
        return list(self.iterate(self._predicate()))
