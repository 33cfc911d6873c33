"""서명된 트랜잭션 메시지 스키마"""

import base64
import binascii
import json
from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, Field


class TxMsgRawData(BaseModel):
    """클라이언트가 보내는 원본 메시지 (tx_data 는 base64 인코딩된 JSON)"""

    user_id: str = Field(..., min_length=1, description="사용자 ID")
    tx_data: str = Field(..., description="트랜잭션 데이터 (base64)")
    nonce: str = Field(..., min_length=1, description="발급받은 nonce (base64)")
    tx_signature: str = Field("", description="트랜잭션 서명 (base64)")
    nonce_signature: str = Field("", description="nonce 서명 (base64)")


class TxMsgData(BaseModel):
    """검증을 통과한 트랜잭션 메시지"""

    user_id: str
    tx_data: bytes
    nonce: str
    tx_signature: bytes = b""
    nonce_signature: bytes = b""

    def payload(self) -> Dict[str, Any]:
        """tx_data 를 JSON 으로 해석"""
        try:
            data = json.loads(self.tx_data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ValueError(f"tx_data is not valid JSON: {e}")
        if not isinstance(data, dict):
            raise ValueError("tx_data must be a JSON object")
        return data


def decode_b64(value: str) -> Optional[bytes]:
    """표준 base64 디코딩, 실패 시 None"""
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        return None


class PurchaseTxData(BaseModel):
    """CTI/모델 구매 요청"""

    doc_id: str = Field(
        ...,
        validation_alias=AliasChoices("doc_id", "cti_id", "model_id"),
        description="구매할 문서 ID",
    )
    user_id: Optional[str] = Field(None, description="구매자 ID (메시지 서명자와 동일)")


class IncentiveTxData(BaseModel):
    """인센티브 재계산 요청"""

    ref_id: str = Field(..., description="문서 ID")
    doctype: str = Field("cti", description="문서 타입 (cti/model)")


class ApproveCommentTxData(BaseModel):
    comment_id: str
    status: int = Field(..., ge=1, le=2, description="1: 승인, 2: 거절")
