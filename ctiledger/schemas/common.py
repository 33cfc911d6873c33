from enum import Enum
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class DocType(str, Enum):
    """원장 레코드의 doctype 값"""

    CTI = "cti"
    MODEL = "model"
    COMMENT = "comment"
    INCENTIVE = "incentive"
    NONCE = "nonce"
    POINT_INFO = "user_point_info"
    POINT_TRANSACTION = "point_transaction"
    STATISTICS = "statistics"
    USER_STATISTICS = "user_statistics"


class AssetType(str, Enum):
    """포인트로 거래되는 자산 종류"""

    CTI = "cti"
    MODEL = "model"


class LedgerOperationResponse(BaseModel, Generic[T]):
    """주요 작업 결과 + 후속 작업 경고

    주요 작업(이체, 레코드 기록)이 성공하면 success=True 이며, 통계/수요/인센티브
    같은 후속 작업의 실패는 warnings 에만 담긴다.
    """

    success: bool = True
    data: Optional[T] = None
    warnings: List[str] = Field(default_factory=list)


class BaseResponse(BaseModel):
    success: bool = True
    data: Optional[dict] = None
