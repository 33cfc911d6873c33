import base64
from datetime import timedelta
from decimal import Decimal

import pytest

from ctiledger.core.exceptions import ValidationError
from ctiledger.schemas.common import AssetType
from ctiledger.services.transaction_service import TransactionRecorder

NONCE = base64.b64encode(bytes([1, 2, 3]) + b"\x00" * 29).decode("ascii")


@pytest.fixture
def recorder(ledger, settings):
    return TransactionRecorder(ledger, settings)


def test_record_pair_writes_debit_and_credit(recorder):
    txid = recorder.record_pair("bob", "alice", Decimal("12.5"), "C1", NONCE, AssetType.MODEL)

    entries = recorder.transaction_repo.find_by_transaction_id(txid)
    by_account = {e.account_id: e for e in entries}

    assert txid == "202403151030010203"
    assert by_account["bob"].transaction_type == "out"
    assert by_account["bob"].points == Decimal("-12.5")
    assert by_account["bob"].other_party == "alice"
    assert by_account["alice"].transaction_type == "in"
    assert by_account["alice"].points == Decimal("12.5")
    assert all(e.status == "success" and e.info_id == "C1" for e in entries)
    assert all(e.asset_type == "model" for e in entries)


def test_negative_points_rejected(recorder):
    with pytest.raises(ValidationError):
        recorder.record_pair("bob", "alice", Decimal("-1"), "C1", NONCE)


def test_float_points_keep_decimal_text(recorder):
    txid = recorder.record_pair("bob", "alice", 13.18, "C1", NONCE)

    by_account = {e.account_id: e for e in recorder.transaction_repo.find_by_transaction_id(txid)}

    assert by_account["bob"].points == Decimal("-13.18")
    assert by_account["alice"].points == Decimal("13.18")


def test_list_transactions_pages_by_bookmark(recorder, clock):
    for i in range(3):
        clock.now = clock.now + timedelta(minutes=1)
        recorder.record_pair("bob", f"seller{i}", Decimal("1"), f"C{i}", NONCE)

    first = recorder.list_transactions("bob", page_size=2)
    second = recorder.list_transactions("bob", page_size=2, bookmark=first.bookmark)

    assert first.fetched_count == 2
    assert len(second.items) == 1
    assert second.bookmark == ""
    assert all(e.account_id == "bob" for e in first.items + second.items)
