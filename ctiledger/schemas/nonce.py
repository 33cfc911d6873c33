from pydantic import BaseModel, Field

from ctiledger.schemas.common import DocType


class NonceRecord(BaseModel):
    """nonce 발급 기록 (key = nonce 값)"""

    user_id: str
    timestamp: str = Field(..., description="발급 시각 (ISO 8601)")
    signature: str = Field("", description="발급 요청 서명 (base64)")
    doctype: str = DocType.NONCE.value


class NonceIssueRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    tx_signature: str = ""


class NonceIssueResponse(BaseModel):
    nonce: str
    expires_in_seconds: int


class NonceSweepResponse(BaseModel):
    deleted_count: int
