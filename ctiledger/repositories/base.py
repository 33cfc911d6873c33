from abc import ABC
from typing import Generic, Iterator, List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ctiledger.core.exceptions import ConflictError, PersistenceError
from ctiledger.repositories.ledger_state import LedgerState, extract_doctype
from ctiledger.schemas.pagination import QueryPredicate

SchemaType = TypeVar("SchemaType", bound=BaseModel)


class BaseRepository(Generic[SchemaType], ABC):
    """모든 원장 리포지토리의 베이스 클래스 - Pydantic 응답 보장"""

    doctype: str = ""

    def __init__(self, schema_class: Type[SchemaType], ledger: LedgerState):
        self.schema_class = schema_class
        self.ledger = ledger

    def _to_schema(self, raw: Optional[bytes]) -> Optional[SchemaType]:
        """원장 JSON 을 Pydantic 스키마로 변환"""
        if raw is None:
            return None
        try:
            return self.schema_class.model_validate_json(raw)
        except PydanticValidationError as e:
            raise PersistenceError(
                f"Corrupted {self.schema_class.__name__} record",
                details={"error": str(e)},
            )

    @staticmethod
    def _serialize(instance: BaseModel) -> bytes:
        return instance.model_dump_json().encode("utf-8")

    def _predicate(self, **conditions) -> QueryPredicate:
        return QueryPredicate.for_doctype(self.doctype, **conditions)

    def _is_foreign(self, raw: bytes) -> bool:
        """다른 doctype 문서가 같은 키를 점유하고 있는지"""
        if not self.doctype:
            return False
        stored = extract_doctype(raw)
        return stored is not None and stored != self.doctype

    def get(self, key: str) -> Optional[SchemaType]:
        """키로 조회 - Pydantic 스키마 반환 (다른 doctype 레코드는 없는 것으로 취급)"""
        raw = self.ledger.get_state(key)
        if raw is None or self._is_foreign(raw):
            return None
        return self._to_schema(raw)

    def get_versioned(self, key: str) -> Optional[Tuple[SchemaType, int]]:
        """키로 조회 - (스키마, 버전) 반환"""
        record = self.ledger.get_versioned(key)
        if record is None or self._is_foreign(record.value):
            return None
        return self._to_schema(record.value), record.version

    def exists(self, key: str) -> bool:
        return self.ledger.get_state(key) is not None

    def put(
        self, key: str, instance: SchemaType, expected_version: Optional[int] = None
    ) -> int:
        return self.ledger.put_state(key, self._serialize(instance), expected_version)

    def insert(self, key: str, instance: SchemaType) -> int:
        """신규 생성 - 이미 존재하면 ConflictError"""
        if self.exists(key):
            raise ConflictError(f"{key} already exists", details={"key": key})
        return self.put(key, instance, expected_version=0)

    def delete(self, key: str) -> None:
        self.ledger.delete_state(key)

    def iterate(self, predicate: QueryPredicate) -> Iterator[Tuple[str, SchemaType]]:
        for record in self.ledger.query(predicate):
            yield record.key, self._to_schema(record.value)

    def find_all(self, predicate: Optional[QueryPredicate] = None) -> List[SchemaType]:
        """조건에 맞는 모든 레코드 조회 - Pydantic 스키마 리스트 반환"""
        return [item for _, item in self.iterate(predicate or self._predicate())]

    def count(self, predicate: Optional[QueryPredicate] = None) -> int:
        return sum(1 for _ in self.ledger.query(predicate or self._predicate()))
