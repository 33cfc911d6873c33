from enum import IntEnum
from typing import Dict, List

from pydantic import BaseModel, Field

from ctiledger.schemas.common import DocType


class IncentiveMechanism(IntEnum):
    """문서 가치 산정 방식"""

    COMMON_POINT = 1  # 积分激励
    THREE_PARTY_GAME = 2  # 三方博弈
    EVOLUTIONARY_GAME = 3  # 演化博弈

    @classmethod
    def coerce(cls, value) -> "IncentiveMechanism":
        """알 수 없는 값은 COMMON_POINT 로 대체"""
        try:
            return cls(int(value))
        except (TypeError, ValueError):
            return cls.COMMON_POINT


class CtiType(IntEnum):
    MALICIOUS_TRAFFIC = 1
    HONEYPOT = 2
    BOTNET = 3
    APP_LAYER_ATTACK = 4
    OPEN_SOURCE = 5


# 공격 유형 랭킹 라벨 (CTI 타입 -> 라벨)
ATTACK_TYPE_LABELS: Dict[int, str] = {
    CtiType.MALICIOUS_TRAFFIC: "malicious_traffic",
    CtiType.HONEYPOT: "honeypot",
    CtiType.BOTNET: "botnet",
    CtiType.APP_LAYER_ATTACK: "app_layer_attack",
    CtiType.OPEN_SOURCE: "open_source",
}


class CommentStatus(IntEnum):
    PENDING = 1
    APPROVED = 2
    REJECTED = 3


class CtiInfo(BaseModel):
    """위협 인텔리전스 문서"""

    cti_id: str
    cti_hash: str = ""
    cti_name: str = ""
    cti_type: int = Field(CtiType.MALICIOUS_TRAFFIC, ge=1, le=99)
    cti_traffic_type: int = 0
    open_source: int = 0
    creator_user_id: str
    tags: List[str] = Field(default_factory=list)
    iocs: List[str] = Field(default_factory=list)
    stix_data: str = ""
    stix_ipfs_hash: str = ""
    statistic_info: str = ""
    description: str = ""
    data_size: int = 0
    data_source_hash: str = ""
    data_source_ipfs_hash: str = ""
    need: int = 0
    incentive_mechanism: int = IncentiveMechanism.COMMON_POINT
    value: float = 0.0
    compre_value: float = 0.0
    create_time: str = ""
    doctype: str = DocType.CTI.value

    @property
    def doc_id(self) -> str:
        return self.cti_id


class ModelInfo(BaseModel):
    """모델 문서"""

    model_config = {"protected_namespaces": ()}

    model_id: str
    model_hash: str = ""
    model_name: str = ""
    creator_user_id: str
    model_data_type: int = 1
    model_type: int = Field(1, ge=1, le=99)
    model_algorithm: str = ""
    model_train_framework: str = ""
    model_open_source: int = 0
    model_features: List[str] = Field(default_factory=list)
    model_tags: List[str] = Field(default_factory=list)
    model_description: str = ""
    model_size: int = 0
    model_data_size: int = 0
    model_data_ipfs_hash: str = ""
    model_ipfs_hash: str = ""
    incentive_mechanism: int = IncentiveMechanism.COMMON_POINT
    value: float = 0.0
    need: int = 0
    ref_cti_id: str = ""
    create_time: str = ""
    doctype: str = DocType.MODEL.value

    @property
    def doc_id(self) -> str:
        return self.model_id


class CtiTxData(BaseModel):
    """CTI 등록 요청 (tx_data 내용)"""

    cti_hash: str = ""
    cti_name: str = ""
    cti_type: int = Field(CtiType.MALICIOUS_TRAFFIC, ge=1, le=99)
    cti_traffic_type: int = 0
    open_source: int = 0
    tags: List[str] = Field(default_factory=list)
    iocs: List[str] = Field(default_factory=list)
    stix_data: str = ""
    stix_ipfs_hash: str = ""
    statistic_info: str = ""
    description: str = ""
    data_size: int = Field(0, ge=0)
    data_source_hash: str = ""
    data_source_ipfs_hash: str = ""
    need: int = Field(0, ge=0)
    incentive_mechanism: int = IncentiveMechanism.COMMON_POINT
    value: float = Field(0.0, ge=0)
    compre_value: float = 0.0


class ModelTxData(BaseModel):
    """모델 등록 요청 (tx_data 내용)"""

    model_config = {"protected_namespaces": ()}

    model_hash: str = ""
    model_name: str = ""
    model_data_type: int = 1
    model_type: int = Field(1, ge=1, le=99)
    model_algorithm: str = ""
    model_train_framework: str = ""
    model_open_source: int = 0
    model_features: List[str] = Field(default_factory=list)
    model_tags: List[str] = Field(default_factory=list)
    model_description: str = ""
    model_size: int = Field(0, ge=0)
    model_data_size: int = Field(0, ge=0)
    model_data_ipfs_hash: str = ""
    model_ipfs_hash: str = ""
    incentive_mechanism: int = IncentiveMechanism.COMMON_POINT
    value: float = Field(0.0, ge=0)
    ref_cti_id: str = ""


class CtiSummaryInfo(BaseModel):
    cti_id: str
    cti_hash: str = ""
    cti_type: int
    tags: List[str] = Field(default_factory=list)
    creator_user_id: str
    create_time: str = ""


class UserOwnCtiInfos(BaseModel):
    """사용자가 업로드/구매한 CTI"""

    upload_cti_infos: List[CtiInfo] = Field(default_factory=list)
    purchase_cti_infos: List[CtiInfo] = Field(default_factory=list)
    total: int = 0


class CommentInfo(BaseModel):
    comment_id: str
    user_id: str
    user_level: int = 1
    comment_doc_type: str = DocType.CTI.value
    comment_ref_id: str
    comment_score: float = Field(0.0, ge=0)
    comment_status: int = CommentStatus.PENDING
    comment_content: str = ""
    create_time: str = ""
    doctype: str = DocType.COMMENT.value


class CommentTxData(BaseModel):
    comment_doc_type: str = DocType.CTI.value
    comment_ref_id: str
    comment_score: float = Field(..., ge=0, le=100)
    comment_content: str = ""
