"""식별자 생성 서비스

ID = 타입 코드(1~2자리) + 분 단위 타임스탬프(12자리, %Y%m%d%H%M) + nonce 기반 6자리 접미사

nonce 디코딩이 실패하거나 3바이트보다 짧으면 고정 시드(100000)를 사용하며
오류로 취급하지 않는다. 생성된 ID 가 이미 원장에 있으면 ConflictError 로 거절한다.
"""

import logging
from datetime import datetime
from typing import Optional

from ctiledger.config import Settings
from ctiledger.core.exceptions import ConflictError, ValidationError
from ctiledger.repositories.ledger_state import LedgerState
from ctiledger.schemas.tx import decode_b64

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y%m%d%H%M"
SUFFIX_MODULUS = 1_000_000


def nonce_suffix(nonce_b64: str, fallback_seed: int = 100000) -> str:
    """nonce 앞 3바이트로 6자리 접미사 생성"""
    decoded = decode_b64(nonce_b64) if nonce_b64 else None
    if decoded is None or len(decoded) < 3:
        number = fallback_seed
    else:
        number = decoded[0] * 10000 + decoded[1] * 100 + decoded[2]
    return f"{number % SUFFIX_MODULUS:06d}"


def coarse_timestamp(moment: datetime) -> str:
    return moment.strftime(TIMESTAMP_FORMAT)


def build_id(type_code: int, nonce_b64: str, moment: datetime, fallback_seed: int = 100000) -> str:
    """순수 함수 버전 - 같은 (type_code, nonce, 분) 이면 같은 ID"""
    if not isinstance(type_code, int) or isinstance(type_code, bool) or not 0 <= type_code <= 99:
        raise ValidationError(
            f"type_code must be an integer between 0 and 99, got {type_code!r}",
            details={"type_code": type_code},
        )
    return f"{type_code}{coarse_timestamp(moment)}{nonce_suffix(nonce_b64, fallback_seed)}"


class IdentifierService:
    """원장 트랜잭션 시각 기준으로 문서/거래/인센티브 ID 를 만든다"""

    def __init__(self, ledger: LedgerState, settings: Settings):
        self.ledger = ledger
        self.fallback_seed = settings.ID_FALLBACK_SEED
        self.collision_check = settings.ID_COLLISION_CHECK_ENABLED

    def _moment(self, moment: Optional[datetime]) -> datetime:
        return moment or self.ledger.tx_timestamp()

    def _ensure_unused(self, new_id: str) -> str:
        if self.collision_check and self.ledger.get_state(new_id) is not None:
            logger.warning(f"Generated id {new_id} collides with an existing record")
            raise ConflictError(f"{new_id} already exists", details={"id": new_id})
        return new_id

    def generate_id(self, type_code: int, nonce_b64: str, moment: Optional[datetime] = None) -> str:
        """문서 ID 생성

        Args:
            type_code: 문서 타입 코드 (0~99)
            nonce_b64: 클라이언트 nonce (base64)
            moment: 기준 시각 (기본값: 현재 원장 트랜잭션 시각)

        Returns:
            str: 19~20자리 ID
        """
        new_id = build_id(type_code, nonce_b64, self._moment(moment), self.fallback_seed)
        return self._ensure_unused(new_id)

    def generate_transaction_id(self, nonce_b64: str, moment: Optional[datetime] = None) -> str:
        """거래 ID - 타입 코드 없이 타임스탬프 + 접미사"""
        return (
            f"{coarse_timestamp(self._moment(moment))}"
            f"{nonce_suffix(nonce_b64, self.fallback_seed)}"
        )

    def generate_incentive_id(
        self, ref_id: str, doctype: str, nonce_b64: str, moment: Optional[datetime] = None
    ) -> str:
        new_id = (
            f"{coarse_timestamp(self._moment(moment))}_"
            f"{nonce_suffix(nonce_b64, self.fallback_seed)}_{ref_id}_{doctype}"
        )
        return self._ensure_unused(new_id)
