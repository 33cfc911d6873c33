from pydantic import BaseModel, Field
from typing import Any, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


class QueryPredicate(BaseModel):
    """Mango 스타일 rich query 조건"""

    selector: Dict[str, Any] = Field(default_factory=dict)
    sort: Optional[List[Any]] = None
    limit: Optional[int] = Field(None, ge=1)

    @classmethod
    def for_doctype(cls, doctype: str, **conditions: Any) -> "QueryPredicate":
        return cls(selector={"doctype": doctype, **conditions})

    def with_limit(self, limit: int) -> "QueryPredicate":
        return self.model_copy(update={"limit": limit})


class PageResult(BaseModel, Generic[T]):
    """페이지 번호 기반 조회 결과"""

    items: List[T]
    total: int
    page: int
    page_size: int
    has_next: bool


class BookmarkPageResult(BaseModel, Generic[T]):
    """북마크(커서) 기반 조회 결과, bookmark 가 빈 문자열이면 마지막 페이지"""

    items: List[T]
    bookmark: str = ""
    fetched_count: int
