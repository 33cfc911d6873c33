from decimal import Decimal
from unittest.mock import patch

import pytest

from ctiledger.core.exceptions import (
    ConflictError,
    InsufficientBalanceError,
    NotFoundError,
    ReplayError,
    ValidationError,
)
from ctiledger.repositories.statistics_repository import SYS_OVERVIEW_KEY
from ctiledger.schemas.common import AssetType
from ctiledger.schemas.points import AccountRegisterRequest


class TestAccounts:
    def test_register_with_defaults(self, point_service):
        account = point_service.register_account(AccountRegisterRequest(user_id="alice"))

        assert account.balance == Decimal("100")
        assert account.level == 1
        assert point_service.get_account("alice").user_id == "alice"

    def test_duplicate_account(self, make_account):
        make_account("alice")

        with pytest.raises(ConflictError):
            make_account("alice")

    def test_get_missing_account(self, point_service):
        with pytest.raises(NotFoundError):
            point_service.get_account("ghost")

    def test_init_ledger_is_idempotent(self, point_service):
        admin = point_service.init_ledger()
        again = point_service.init_ledger()

        assert admin.user_id == "admin"
        assert admin.balance == Decimal("10000000000")
        assert admin.level == 9
        assert again.balance == admin.balance


class TestTransfer:
    def test_transfer_updates_both_accounts(self, point_service, make_account):
        make_account("buyer", "100")
        make_account("seller", "5")

        result = point_service.transfer_points("buyer", "seller", Decimal("30"), "C1", AssetType.CTI)

        buyer = point_service.get_account("buyer")
        seller = point_service.get_account("seller")
        assert result.from_balance == Decimal("70")
        assert buyer.balance == Decimal("70")
        assert buyer.cti_bought == {"C1": Decimal("30")}
        assert buyer.cti_owned == {"C1": Decimal("30")}
        assert seller.balance == Decimal("35")
        assert seller.cti_sold == {"C1": Decimal("30")}
        assert seller.model_sold == {}

    def test_insufficient_balance_writes_nothing(self, point_service, make_account):
        make_account("buyer", "10")
        make_account("seller", "5")

        with pytest.raises(InsufficientBalanceError):
            point_service.transfer_points("buyer", "seller", Decimal("10.01"), "C1")

        assert point_service.get_account("buyer").balance == Decimal("10")
        assert point_service.get_account("seller").balance == Decimal("5")
        assert point_service.get_account("buyer").cti_bought == {}

    def test_exact_balance_allowed(self, point_service, make_account):
        make_account("buyer", "10")
        make_account("seller", "0")

        point_service.transfer_points("buyer", "seller", Decimal("10"), "C1")

        assert point_service.get_account("buyer").balance == Decimal("0")

    def test_missing_account(self, point_service, make_account):
        make_account("buyer")

        with pytest.raises(NotFoundError):
            point_service.transfer_points("buyer", "ghost", Decimal("1"), "C1")

    @pytest.mark.parametrize("from_id,to_id,points", [("a", "a", "1"), ("a", "b", "-1")])
    def test_invalid_transfer(self, point_service, make_account, from_id, to_id, points):
        make_account("a")
        make_account("b")

        with pytest.raises(ValidationError):
            point_service.transfer_points(from_id, to_id, Decimal(points), "C1")

    def test_level_rises_with_balance(self, point_service, make_account):
        make_account("whale", "50000")
        make_account("seller", "900")

        point_service.transfer_points("whale", "seller", Decimal("200"), "C1")

        assert point_service.get_account("seller").level == 2
        assert point_service.get_account("whale").level == 3

    def test_level_never_drops_after_spending(self, point_service, make_account):
        make_account("veteran", "1500", level=3)
        make_account("shop", "100")

        point_service.transfer_points("veteran", "shop", Decimal("1200"), "C1")

        assert point_service.get_account("veteran").balance == Decimal("300")
        assert point_service.get_account("veteran").level == 3


class TestPurchase:
    @pytest.fixture
    def listed_cti(self, point_service, make_account, signed_tx):
        make_account("seller", "100")
        make_account("buyer", "100")
        raw = signed_tx("seller", {"cti_name": "botnet feed", "cti_type": 3, "value": 10, "iocs": ["ip", "url"]})
        return point_service.document_service.register_cti(raw).data

    def test_purchase_flow(self, point_service, listed_cti, signed_tx):
        raw = signed_tx("buyer", {"cti_id": listed_cti.cti_id})

        response = point_service.purchase_document(raw, AssetType.CTI)

        assert response.success
        assert response.warnings == []
        assert response.data.points == Decimal("10")
        assert response.data.seller_id == "seller"

        assert point_service.get_account("buyer").balance == Decimal("90")
        assert point_service.get_account("seller").balance == Decimal("110")

        page = point_service.list_transactions("buyer")
        assert [e.transaction_id for e in page.items] == [response.data.transaction_id]

        # 후속 작업: 수요량 증가 + 가치 재산정
        cti = point_service.document_service.get_cti(listed_cti.cti_id)
        assert cti.need == 1
        assert cti.value == 13.18
        incentives = point_service.incentive_service.get_doc_incentives(cti.cti_id, "cti")
        assert len(incentives) == 1
        assert incentives[0].history_value == 10

        overview = point_service.statistics_service.get_system_overview()
        assert overview.total_transactions == 1
        assert overview.cti_value == pytest.approx(13.18)
        assert point_service.statistics_service.get_user_statistics("buyer").user_purchase_count == 1

    def test_replayed_purchase_rejected(self, point_service, listed_cti, signed_tx):
        raw = signed_tx("buyer", {"cti_id": listed_cti.cti_id})
        point_service.purchase_document(raw)

        with pytest.raises(ReplayError):
            point_service.purchase_document(raw)

        assert point_service.get_account("buyer").balance == Decimal("90")

    def test_failed_purchase_keeps_nonce(self, point_service, listed_cti, signed_tx, make_account):
        make_account("poor", "1")
        raw = signed_tx("poor", {"cti_id": listed_cti.cti_id})

        with pytest.raises(InsufficientBalanceError):
            point_service.purchase_document(raw)

        # 트랜잭션 롤백으로 nonce 도 남아 있다
        assert point_service.nonce_service.nonce_repo.exists(raw.nonce)

    def test_cannot_buy_own_document(self, point_service, listed_cti, signed_tx):
        with pytest.raises(ValidationError):
            point_service.purchase_document(signed_tx("seller", {"cti_id": listed_cti.cti_id}))

    def test_unknown_document(self, point_service, listed_cti, signed_tx):
        with pytest.raises(NotFoundError):
            point_service.purchase_document(signed_tx("buyer", {"model_id": "nope"}), AssetType.MODEL)

    def test_cti_id_is_not_a_model(self, point_service, listed_cti, signed_tx):
        raw = signed_tx("buyer", {"model_id": listed_cti.cti_id})

        with pytest.raises(NotFoundError):
            point_service.purchase_document(raw, AssetType.MODEL)

        assert point_service.get_account("buyer").balance == Decimal("100")

    def test_follow_up_failure_becomes_warning(self, point_service, listed_cti, signed_tx):
        raw = signed_tx("buyer", {"cti_id": listed_cti.cti_id})

        with patch.object(
            point_service.statistics_service, "on_purchase", side_effect=RuntimeError("stats down")
        ):
            response = point_service.purchase_document(raw)

        assert response.success
        assert response.warnings == ["statistics.on_purchase failed: stats down"]
        assert point_service.get_account("buyer").balance == Decimal("90")
        assert point_service.statistics_service.repo.get(SYS_OVERVIEW_KEY).total_transactions == 0
