"""통계 싱글톤 레코드 및 이벤트 스키마"""

from datetime import datetime
from typing import Dict, List

from pydantic import BaseModel, Field

from ctiledger.schemas.common import DocType


class DataStatisticsInfo(BaseModel):
    """STATS - 문서 수/크기, 타입별 히스토그램"""

    total_cti_data_num: int = 0
    total_cti_data_size: int = 0
    total_model_data_num: int = 0
    total_model_data_size: int = 0
    cti_type_data_num: Dict[str, int] = Field(default_factory=dict)
    model_type_data_num: Dict[str, int] = Field(default_factory=dict)
    iocs_data_num: Dict[str, int] = Field(default_factory=dict)
    doctype: str = DocType.STATISTICS.value


class UpchainTrendAggregate(BaseModel):
    """UPCHAIN_TREND - 일별("%Y-%m-%d") / 시간별("%Y-%m-%d %H") 등록 수"""

    cti_daily: Dict[str, int] = Field(default_factory=dict)
    cti_hourly: Dict[str, int] = Field(default_factory=dict)
    model_daily: Dict[str, int] = Field(default_factory=dict)
    model_hourly: Dict[str, int] = Field(default_factory=dict)
    doctype: str = DocType.STATISTICS.value


class UpchainTrendInfo(BaseModel):
    time_range: str
    cti_upchain: Dict[str, int] = Field(default_factory=dict)
    model_upchain: Dict[str, int] = Field(default_factory=dict)


class RankItem(BaseModel):
    type: str
    count: int = 0


class AttackRankInfo(BaseModel):
    """ATTACK_RANK - 고정 라벨 목록, count 내림차순"""

    rankings: List[RankItem] = Field(default_factory=list)
    doctype: str = DocType.STATISTICS.value


class IOCsDistributionInfo(BaseModel):
    """IOCS_DIST - 절대 개수와 백분율"""

    total_count_map: Dict[str, int] = Field(default_factory=dict)
    distribution: Dict[str, float] = Field(default_factory=dict)
    doctype: str = DocType.STATISTICS.value


class SystemOverviewInfo(BaseModel):
    """SYS_OVERVIEW"""

    total_transactions: int = 0
    cti_value: float = 0.0
    cti_count: int = 0
    cti_transactions: int = 0
    model_value: float = 0.0
    model_count: int = 0
    model_transactions: int = 0
    iocs_count: int = 0
    account_count: int = 0
    doctype: str = DocType.STATISTICS.value


class DocumentRegisteredEvent(BaseModel):
    doctype: str
    type_code: int
    data_size: int = 0
    iocs: List[str] = Field(default_factory=list)
    value: float = 0.0
    creator_user_id: str = ""
    occurred_at: datetime


class PurchaseEvent(BaseModel):
    doctype: str
    buyer_id: str = ""
    occurred_at: datetime


class ValueChangedEvent(BaseModel):
    doctype: str
    old_value: float
    new_value: float
