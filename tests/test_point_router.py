from decimal import Decimal
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from ctiledger.core.exceptions import InsufficientBalanceError, NotFoundError
from ctiledger.main import create_app
from ctiledger.schemas.common import AssetType, LedgerOperationResponse
from ctiledger.schemas.pagination import BookmarkPageResult
from ctiledger.schemas.points import AccountPointInfo, PointTransaction, PurchaseResult, UserStatistics


@pytest.fixture
def app():
    return create_app()


@pytest.fixture
def point_service(app):
    service = Mock()
    with app.container.services.point_service.override(service):
        yield service


@pytest.fixture
def client(app, point_service):
    """테스트 클라이언트 픽스처"""
    return TestClient(app)


def _raw(user_id="buyer"):
    return {"user_id": user_id, "tx_data": "e30=", "nonce": "bm9uY2U=", "tx_signature": "c2ln"}


class TestAccountRoutes:
    def test_register_account(self, client, point_service):
        point_service.register_account.return_value = AccountPointInfo(user_id="alice", balance=Decimal("100"))

        response = client.post("/api/v1/points/accounts", json={"user_id": "alice"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["user_id"] == "alice"
        request = point_service.register_account.call_args[0][0]
        assert request.initial_points is None

    def test_get_account(self, client, point_service):
        point_service.get_account.return_value = AccountPointInfo(
            user_id="alice", balance=Decimal("70"), cti_bought={"C1": Decimal("30")}
        )

        response = client.get("/api/v1/points/accounts/alice")

        assert response.status_code == 200
        data = response.json()["data"]
        assert Decimal(data["balance"]) == Decimal("70")
        assert list(data["cti_bought"]) == ["C1"]

    def test_missing_account(self, client, point_service):
        point_service.get_account.side_effect = NotFoundError("Account not found: ghost")

        response = client.get("/api/v1/points/accounts/ghost")

        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "NOT_FOUND_001"

    def test_init_ledger(self, client, point_service):
        point_service.init_ledger.return_value = AccountPointInfo(
            user_id="admin", balance=Decimal("10000000000"), level=9
        )

        response = client.post("/api/v1/points/init")

        assert response.status_code == 200
        assert response.json()["data"]["level"] == 9


class TestPurchaseRoutes:
    def test_purchase_cti_returns_warnings(self, client, point_service):
        point_service.purchase_document.return_value = LedgerOperationResponse[PurchaseResult](
            data=PurchaseResult(
                transaction_id="202403151030010203",
                doc_id="C1",
                doctype="cti",
                buyer_id="buyer",
                seller_id="seller",
                points=Decimal("10"),
            ),
            warnings=["statistics.on_purchase failed: stats down"],
        )

        response = client.post("/api/v1/points/purchase/cti", json=_raw())

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["seller_id"] == "seller"
        assert body["warnings"] == ["statistics.on_purchase failed: stats down"]
        assert point_service.purchase_document.call_args[0][1] == AssetType.CTI

    def test_purchase_model_uses_model_asset(self, client, point_service):
        point_service.purchase_document.return_value = LedgerOperationResponse[PurchaseResult]()

        client.post("/api/v1/points/purchase/model", json=_raw())

        assert point_service.purchase_document.call_args[0][1] == AssetType.MODEL

    def test_insufficient_balance(self, client, point_service):
        point_service.purchase_document.side_effect = InsufficientBalanceError(
            details={"user_id": "buyer", "required": "10", "available": "1"}
        )

        response = client.post("/api/v1/points/purchase/cti", json=_raw())

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "BALANCE_001"

    def test_missing_nonce_is_rejected(self, client, point_service):
        payload = _raw()
        del payload["nonce"]

        response = client.post("/api/v1/points/purchase/cti", json=payload)

        assert response.status_code == 422
        point_service.purchase_document.assert_not_called()


class TestHistoryRoutes:
    def test_list_transactions(self, client, point_service):
        point_service.list_transactions.return_value = BookmarkPageResult[PointTransaction](
            items=[
                PointTransaction(
                    transaction_id="202403151030010203",
                    account_id="buyer",
                    transaction_type="out",
                    points=Decimal("-10"),
                    other_party="seller",
                    info_id="C1",
                    timestamp="2024-03-15T10:30:00+08:00",
                )
            ],
            bookmark="eyJrIjoieCJ9",
            fetched_count=1,
        )

        response = client.get("/api/v1/points/accounts/buyer/transactions?page_size=1")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["bookmark"] == "eyJrIjoieCJ9"
        assert data["items"][0]["transaction_type"] == "out"
        point_service.list_transactions.assert_called_once_with("buyer", page_size=1, bookmark="")

    def test_page_size_bounds(self, client, point_service):
        response = client.get("/api/v1/points/accounts/buyer/transactions?page_size=0")

        assert response.status_code == 422

    def test_user_statistics(self, app, client):
        statistics_service = Mock()
        statistics_service.get_user_statistics.return_value = UserStatistics(
            total_cti_count=4, user_cti_count=2, user_upload_count=1
        )

        with app.container.services.statistics_service.override(statistics_service):
            response = client.get("/api/v1/points/accounts/alice/statistics")

        assert response.status_code == 200
        assert response.json()["data"]["user_cti_count"] == 2
