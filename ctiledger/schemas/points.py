from decimal import Decimal
from typing import Dict, Optional

from pydantic import BaseModel, Field

from ctiledger.schemas.common import AssetType, DocType


class AccountPointInfo(BaseModel):
    """계정 포인트 레코드 (<user_id>_point_info)

    owned/bought/sold 맵은 문서 ID 별로 덮어쓰며 누적하지 않는다.
    """

    user_id: str
    balance: Decimal = Field(Decimal("0"), ge=0, description="현재 포인트 잔액")
    level: int = Field(1, ge=0, description="사용자 등급")
    cti_owned: Dict[str, Decimal] = Field(default_factory=dict)
    cti_bought: Dict[str, Decimal] = Field(default_factory=dict)
    cti_sold: Dict[str, Decimal] = Field(default_factory=dict)
    model_owned: Dict[str, Decimal] = Field(default_factory=dict)
    model_bought: Dict[str, Decimal] = Field(default_factory=dict)
    model_sold: Dict[str, Decimal] = Field(default_factory=dict)
    doctype: str = DocType.POINT_INFO.value

    def owned(self, asset: AssetType) -> Dict[str, Decimal]:
        return self.cti_owned if asset == AssetType.CTI else self.model_owned

    def bought(self, asset: AssetType) -> Dict[str, Decimal]:
        return self.cti_bought if asset == AssetType.CTI else self.model_bought

    def sold(self, asset: AssetType) -> Dict[str, Decimal]:
        return self.cti_sold if asset == AssetType.CTI else self.model_sold


class PointTransaction(BaseModel):
    """포인트 거래 기록 (한 방향)"""

    transaction_id: str
    account_id: str
    transaction_type: str = Field(..., pattern="^(in|out)$", description="in: 입금, out: 출금")
    points: Decimal = Field(..., description="부호 있는 포인트 변화량")
    other_party: str
    info_id: str = Field(..., description="관련 문서 ID")
    asset_type: str = AssetType.CTI.value
    timestamp: str
    status: str = "success"
    doctype: str = DocType.POINT_TRANSACTION.value


class TransferResult(BaseModel):
    from_user_id: str
    to_user_id: str
    points: Decimal
    from_balance: Decimal
    to_balance: Decimal


class PurchaseResult(BaseModel):
    transaction_id: str
    doc_id: str
    doctype: str
    buyer_id: str
    seller_id: str
    points: Decimal


class AccountRegisterRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=128)
    initial_points: Optional[Decimal] = Field(None, ge=0)
    level: Optional[int] = Field(None, ge=0)


class UserStatistics(BaseModel):
    """사용자별 통계"""

    total_cti_count: int = 0
    user_cti_count: int = 0
    user_upload_count: int = 0
    user_model_upload_count: int = 0
    user_purchase_count: int = 0
    doctype: str = DocType.USER_STATISTICS.value
