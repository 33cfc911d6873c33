import base64
from datetime import datetime

import pytest

from ctiledger.core.exceptions import ConflictError, ValidationError
from ctiledger.services.identifier_service import IdentifierService, build_id, nonce_suffix


def _nonce(*first_bytes: int) -> str:
    return base64.b64encode(bytes(first_bytes) + b"\x00" * 29).decode("ascii")


class TestNonceSuffix:
    def test_suffix_from_first_three_bytes(self):
        # 1*10000 + 2*100 + 3
        assert nonce_suffix(_nonce(1, 2, 3)) == "010203"

    def test_suffix_wraps_at_six_digits(self):
        # 255*10000 + 255*100 + 255 = 2575755
        assert nonce_suffix(_nonce(255, 255, 255)) == "575755"

    @pytest.mark.parametrize("nonce", ["not base64!!", "", base64.b64encode(b"ab").decode()])
    def test_fallback_seed_on_bad_nonce(self, nonce):
        assert nonce_suffix(nonce) == "100000"


class TestBuildId:
    def test_layout(self):
        moment = datetime(2024, 3, 15, 10, 30)

        assert build_id(1, _nonce(1, 2, 3), moment) == "1202403151030010203"
        assert build_id(12, _nonce(1, 2, 3), moment) == "12202403151030010203"

    def test_same_inputs_same_id(self):
        moment = datetime(2024, 3, 15, 10, 30, 59)
        nonce = _nonce(9, 9, 9)

        assert build_id(3, nonce, moment) == build_id(3, nonce, moment.replace(second=0))

    @pytest.mark.parametrize("type_code", [-1, 100, "1", True])
    def test_invalid_type_code(self, type_code):
        with pytest.raises(ValidationError):
            build_id(type_code, _nonce(1, 2, 3), datetime(2024, 1, 1))


class TestIdentifierService:
    def test_uses_ledger_transaction_time(self, ledger, settings):
        service = IdentifierService(ledger, settings)

        with ledger.transaction():
            new_id = service.generate_id(2, _nonce(0, 0, 7))

        # conftest 시계: 2024-03-15 10:30 Asia/Shanghai
        assert new_id == "2202403151030000007"

    def test_collision_rejected(self, ledger, settings):
        service = IdentifierService(ledger, settings)
        ledger.put_state("1202403151030010203", b'{"doctype": "cti"}')

        with pytest.raises(ConflictError, match="already exists"):
            service.generate_id(1, _nonce(1, 2, 3))

    def test_collision_check_can_be_disabled(self, ledger, settings):
        settings.ID_COLLISION_CHECK_ENABLED = False
        service = IdentifierService(ledger, settings)
        ledger.put_state("1202403151030010203", b'{"doctype": "cti"}')

        assert service.generate_id(1, _nonce(1, 2, 3)) == "1202403151030010203"

    def test_transaction_and_incentive_ids(self, ledger, settings):
        service = IdentifierService(ledger, settings)
        nonce = _nonce(1, 2, 3)

        assert service.generate_transaction_id(nonce) == "202403151030010203"
        assert service.generate_incentive_id("C1", "cti", nonce) == "202403151030_010203_C1_cti"
