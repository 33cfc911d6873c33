from pydantic import BaseModel, Field

from ctiledger.schemas.common import DocType


class IncentiveInputs(BaseModel):
    """가치 산정 입력값"""

    history_value: float = 0.0
    comment_score: float = 0.0
    need: int = 0
    total_user_num: int = 0
    incentive_value: float = Field(0.0, description="메커니즘 3 에서 그대로 반환되는 사전 설정값")


class DocIncentiveInfo(BaseModel):
    """가치 산정 이력 (불변)"""

    incentive_id: str
    ref_id: str
    incentive_doctype: str
    history_value: float
    incentive_mechanism: int
    incentive_value: float
    comment_score: float
    need: int
    total_user_num: int
    create_time: str
    doctype: str = DocType.INCENTIVE.value
