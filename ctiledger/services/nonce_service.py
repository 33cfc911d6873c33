"""
Nonce / 재전송(replay) 방지 서비스

흐름:
1. issue_nonce: 32바이트 난수를 base64 로 발급하고 (user_id, 발급 시각, 서명)을 저장
2. consume_nonce: 첫 사용에서 검증 후 삭제 (1회용)
3. sweep_expired_nonces: TTL(기본 30분)이 지난 미사용 nonce 정리
"""

import base64
import hmac
import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional, Protocol, Type, TypeVar

from pydantic import BaseModel

from ctiledger.config import Settings
from ctiledger.core.exceptions import (
    ConflictError,
    ReplayError,
    SignatureError,
    ValidationError,
)
from ctiledger.repositories.ledger_state import LedgerState
from ctiledger.repositories.nonce_repository import NonceRepository
from ctiledger.schemas.nonce import NonceRecord
from ctiledger.schemas.tx import TxMsgData, TxMsgRawData, decode_b64

logger = logging.getLogger(__name__)

NONCE_BYTES = 32

PayloadT = TypeVar("PayloadT", bound=BaseModel)


class SignatureVerifier(Protocol):
    """서명 검증기 (키 관리는 외부 시스템 담당)"""

    def verify(self, user_id: str, message: bytes, signature: bytes) -> bool: ...


def _signature_bytes(value: str) -> bytes:
    decoded = decode_b64(value) if value else b""
    return decoded if decoded is not None else value.encode("utf-8")


class NonceService:
    def __init__(
        self,
        ledger: LedgerState,
        settings: Settings,
        signature_verifier: Optional[SignatureVerifier] = None,
    ):
        self.ledger = ledger
        self.settings = settings
        self.nonce_repo = NonceRepository(ledger)
        self.signature_verifier = signature_verifier
        self.ttl = timedelta(minutes=settings.NONCE_TTL_MINUTES)

    def _is_expired(self, record: NonceRecord, now: datetime) -> bool:
        issued_at = datetime.fromisoformat(record.timestamp)
        return now - issued_at > self.ttl

    def issue_nonce(self, user_id: str, tx_signature: str = "") -> str:
        """nonce 발급

        Args:
            user_id: 요청 사용자 ID
            tx_signature: 요청 서명 (나중에 소비 시 대조)

        Returns:
            str: base64 인코딩된 nonce
        """
        if not user_id:
            raise ValidationError("user_id is required to issue a nonce")

        nonce = base64.b64encode(secrets.token_bytes(NONCE_BYTES)).decode("ascii")
        with self.ledger.transaction():
            if self.nonce_repo.exists(nonce):
                raise ConflictError("nonce already exists")
            record = NonceRecord(
                user_id=user_id,
                timestamp=self.ledger.tx_timestamp().isoformat(),
                signature=tx_signature,
            )
            self.nonce_repo.create(nonce, record)

        logger.info(f"Issued nonce for user {user_id}")
        return nonce

    def consume_nonce(self, nonce: str, user_id: str, signature: str = "") -> NonceRecord:
        """nonce 1회 소비 - 성공 시 기록 삭제

        Raises:
            ReplayError: 없음 / 사용자 불일치 / 서명 불일치 / 만료
        """
        with self.ledger.transaction():
            record = self.nonce_repo.get_nonce(nonce)
            if record is None:
                raise ReplayError(ReplayError.NONCE_NOT_FOUND, "nonce does not exist")
            if record.user_id != user_id:
                raise ReplayError(ReplayError.USER_MISMATCH, "user ID mismatch")
            if not hmac.compare_digest(record.signature.encode("utf-8"), signature.encode("utf-8")):
                raise ReplayError(ReplayError.SIGNATURE_MISMATCH, "signature mismatch")
            if self._is_expired(record, self.ledger.tx_timestamp()):
                raise ReplayError(ReplayError.NONCE_EXPIRED, "nonce has expired")
            self.nonce_repo.delete(nonce)
        return record

    def sweep_expired_nonces(self) -> int:
        """만료된 nonce 정리

        Returns:
            int: 삭제된 nonce 수
        """
        deleted = 0
        with self.ledger.transaction():
            now = self.ledger.tx_timestamp()
            for nonce, record in self.nonce_repo.all_nonces():
                try:
                    expired = self._is_expired(record, now)
                except ValueError:
                    logger.warning(f"Skipping nonce with unreadable timestamp: {record.timestamp}")
                    continue
                if expired:
                    self.nonce_repo.delete(nonce)
                    deleted += 1

        logger.info(f"Swept {deleted} expired nonces")
        return deleted

    def verify_tx_message(self, raw: TxMsgRawData) -> TxMsgData:
        """서명된 트랜잭션 메시지 검증

        tx_data 를 디코딩하고, 재전송 방지가 켜져 있으면 nonce 를 소비하며,
        서명 검증이 켜져 있으면 외부 검증기로 tx_data 서명을 확인한다.
        호출자의 원장 트랜잭션 안에서 호출되면 nonce 삭제도 함께 롤백된다.
        """
        tx_data = decode_b64(raw.tx_data)
        if tx_data is None:
            raise ValidationError("failed to decode base64 tx_data")

        message = TxMsgData(
            user_id=raw.user_id,
            tx_data=tx_data,
            nonce=raw.nonce,
            tx_signature=_signature_bytes(raw.tx_signature),
            nonce_signature=_signature_bytes(raw.nonce_signature),
        )

        if self.settings.REPLAY_PROTECTION_ENABLED:
            self.consume_nonce(raw.nonce, raw.user_id, raw.nonce_signature)

        if self.settings.TX_SIGNATURE_VERIFICATION_ENABLED:
            if self.signature_verifier is None:
                raise SignatureError("signature verification is enabled but no verifier is configured")
            if not self.signature_verifier.verify(message.user_id, message.tx_data, message.tx_signature):
                raise SignatureError()

        return message


def parse_tx_payload(message: TxMsgData, schema_class: Type[PayloadT]) -> PayloadT:
    """검증된 메시지의 tx_data 를 요청 스키마로 변환"""
    try:
        return schema_class.model_validate(message.payload())
    except ValueError as e:
        # pydantic.ValidationError 는 ValueError 의 하위 클래스
        raise ValidationError(
            f"Invalid {schema_class.__name__} payload",
            details={"error": str(e)},
        )
