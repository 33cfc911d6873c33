from typing import Generic, List, Optional, Tuple, Type

from ctiledger.core.exceptions import NotFoundError, ValidationError
from ctiledger.repositories.base import BaseRepository, SchemaType
from ctiledger.repositories.ledger_state import LedgerState
from ctiledger.schemas.common import DocType
from ctiledger.schemas.documents import CtiInfo, ModelInfo


class DocumentRepository(BaseRepository[SchemaType], Generic[SchemaType]):
    """CTI/모델 문서 리포지토리 공통부 (key = 문서 ID)

    문서는 삭제되지 않으며, 등록 이후에는 value(가치 산정)와 need(수요 증가)만
    버전 조건부로 갱신된다.
    """

    id_field: str = ""
    type_field: str = ""

    def __init__(self, schema_class: Type[SchemaType], ledger: LedgerState):
        super().__init__(schema_class, ledger)

    def get_document(self, doc_id: str) -> Optional[SchemaType]:
        return self.get(doc_id)

    def require(self, doc_id: str) -> Tuple[SchemaType, int]:
        found = self.get_versioned(doc_id)
        if found is None:
            raise NotFoundError(f"{self.doctype} {doc_id} does not exist", details={"doc_id": doc_id})
        return found

    def create(self, document: SchemaType) -> int:
        return self.insert(getattr(document, self.id_field), document)

    def update_value(self, doc_id: str, value: float) -> SchemaType:
        document, version = self.require(doc_id)
        updated = document.model_copy(update={"value": value})
        self.put(doc_id, updated, expected_version=version)
        return updated

    def add_need(self, doc_id: str, amount: int = 1) -> SchemaType:
        """수요량 증가 (감소 불가)"""
        if amount < 0:
            raise ValidationError("need can only be increased", details={"amount": amount})
        document, version = self.require(doc_id)
        updated = document.model_copy(update={"need": document.need + amount})
        self.put(doc_id, updated, expected_version=version)
        return updated

    def find_by_creator(self, user_id: str) -> List[SchemaType]:
        return self.find_all(self._predicate(creator_user_id=user_id))

    def find_by_ids(self, doc_ids: List[str]) -> List[SchemaType]:
        if not doc_ids:
            return []
        return self.find_all(self._predicate(**{self.id_field: {"$in": list(doc_ids)}}))


class CtiRepository(DocumentRepository[CtiInfo]):
    doctype = DocType.CTI.value
    id_field = "cti_id"
    type_field = "cti_type"

    def __init__(self, ledger: LedgerState):
        super().__init__(CtiInfo, ledger)

    def find_by_hash(self, cti_hash: str) -> Optional[CtiInfo]:
        found = self.find_all(self._predicate(cti_hash=cti_hash).with_limit(1))
        return found[0] if found else None


class ModelRepository(DocumentRepository[ModelInfo]):
    doctype = DocType.MODEL.value
    id_field = "model_id"
    type_field = "model_type"

    def __init__(self, ledger: LedgerState):
        super().__init__(ModelInfo, ledger)

    def find_by_ref_cti(self, cti_id: str) -> List[ModelInfo]:
        return self.find_all(self._predicate(ref_cti_id=cti_id))
