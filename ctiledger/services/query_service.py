"""
페이지네이션 조회 실행기

두 가지 방식을 제공한다.
- page(): 페이지 번호 방식. 전체 개수를 먼저 센 뒤 앞쪽 결과를 건너뛰므로
  페이지마다 O(n) 이다. 페이지 번호가 필요한 화면용.
- page_by_bookmark(): 저장소의 네이티브 커서 사용. 큰 목록은 이쪽을 사용한다.
"""

import logging
from itertools import islice
from typing import Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ctiledger.config import Settings
from ctiledger.core.exceptions import PersistenceError, ValidationError
from ctiledger.repositories.ledger_state import LedgerRecord, LedgerState
from ctiledger.schemas.pagination import BookmarkPageResult, PageResult, QueryPredicate

logger = logging.getLogger(__name__)

ItemT = TypeVar("ItemT", bound=BaseModel)


class PageQueryExecutor:
    def __init__(self, ledger: LedgerState, settings: Settings):
        self.ledger = ledger
        self.max_page_size = settings.PAGINATION_MAX_PAGE_SIZE
        self.count_limit = settings.PAGINATION_COUNT_LIMIT

    def _validate_size(self, page_size: int) -> None:
        if page_size < 1 or page_size > self.max_page_size:
            raise ValidationError(
                f"page_size must be between 1 and {self.max_page_size}",
                details={"page_size": page_size},
            )

    @staticmethod
    def _parse(record: LedgerRecord, schema_class: Type[ItemT]) -> ItemT:
        try:
            return schema_class.model_validate_json(record.value)
        except PydanticValidationError as e:
            logger.error(f"Failed to parse ledger record {record.key}: {str(e)}")
            raise PersistenceError(
                f"Corrupted record {record.key}", details={"error": str(e)}
            )

    def page(
        self,
        predicate: QueryPredicate,
        page: int,
        page_size: int,
        schema_class: Type[ItemT],
    ) -> PageResult[ItemT]:
        """페이지 번호 기반 조회

        Args:
            predicate: 조회 조건
            page: 1부터 시작하는 페이지 번호
            page_size: 페이지 크기

        Returns:
            PageResult: 해당 페이지 항목과 전체 개수
        """
        if page < 1:
            raise ValidationError("page must be >= 1", details={"page": page})
        self._validate_size(page_size)

        total = sum(1 for _ in self.ledger.query(predicate.with_limit(self.count_limit)))

        start = page_size * (page - 1)
        records = self.ledger.query(predicate.model_copy(update={"limit": None}))
        items = [self._parse(r, schema_class) for r in islice(records, start, start + page_size)]

        return PageResult[schema_class](
            items=items,
            total=total,
            page=page,
            page_size=page_size,
            has_next=start + page_size < total,
        )

    def page_by_bookmark(
        self,
        predicate: QueryPredicate,
        page_size: int,
        bookmark: str,
        schema_class: Type[ItemT],
    ) -> BookmarkPageResult[ItemT]:
        """북마크 기반 조회 - 응답의 bookmark 를 다음 호출에 그대로 전달"""
        self._validate_size(page_size)
        records, next_bookmark, fetched = self.ledger.query_paged(predicate, page_size, bookmark or "")
        return BookmarkPageResult[schema_class](
            items=[self._parse(r, schema_class) for r in records],
            bookmark=next_bookmark,
            fetched_count=fetched,
        )
