from datetime import timedelta
from decimal import Decimal

import pytest

from ctiledger.core.exceptions import NotFoundError, ReplayError, ValidationError
from ctiledger.services.document_service import DocumentService


@pytest.fixture
def document_service(ledger, settings, nonce_service):
    return DocumentService(ledger, settings, nonce_service=nonce_service)


def _register(document_service, signed_tx, user_id="alice", **payload):
    payload.setdefault("cti_type", 1)
    return document_service.register_cti(signed_tx(user_id, payload)).data


class TestRegister:
    def test_register_cti(self, document_service, signed_tx):
        response = document_service.register_cti(
            signed_tx("alice", {"cti_name": "feed", "cti_type": 2, "value": 5, "iocs": ["ip"], "data_size": 64})
        )

        cti = response.data
        assert response.warnings == []
        assert cti.cti_id.startswith("2202403151030")
        assert len(cti.cti_id) == 19
        assert cti.creator_user_id == "alice"
        assert document_service.get_cti(cti.cti_id).cti_name == "feed"

        stats = document_service.statistics_service.get_data_statistics()
        assert stats.total_cti_data_num == 1
        assert stats.total_cti_data_size == 64
        assert stats.cti_type_data_num == {"2": 1}

    def test_unknown_mechanism_is_coerced(self, document_service, signed_tx):
        cti = _register(document_service, signed_tx, incentive_mechanism=7)

        assert cti.incentive_mechanism == 1

    def test_register_model(self, document_service, signed_tx):
        response = document_service.register_model(
            signed_tx("bob", {"model_name": "detector", "model_type": 4, "ref_cti_id": "C1"})
        )

        model = response.data
        assert model.model_id.startswith("4202403151030")
        assert document_service.models_by_ref_cti("C1")[0].model_id == model.model_id
        assert document_service.statistics_service.get_user_statistics("bob").user_model_upload_count == 1

    def test_invalid_payload(self, document_service, signed_tx):
        with pytest.raises(ValidationError):
            document_service.register_cti(signed_tx("alice", {"cti_type": 0}))

    def test_replayed_registration(self, document_service, signed_tx):
        raw = signed_tx("alice", {"cti_type": 1})
        document_service.register_cti(raw)

        with pytest.raises(ReplayError):
            document_service.register_cti(raw)


class TestQueries:
    @pytest.fixture
    def catalog(self, document_service, signed_tx, clock):
        created = []
        for i, (user, cti_type) in enumerate([("alice", 1), ("bob", 2), ("alice", 2), ("carol", 1)]):
            clock.now = clock.now + timedelta(minutes=1)
            created.append(_register(document_service, signed_tx, user, cti_type=cti_type, cti_hash=f"h{i}"))
        return created

    def test_list_filters_and_orders_newest_first(self, document_service, catalog):
        page = document_service.list_cti(page=1, page_size=10, cti_type=2)

        assert page.total == 2
        assert [c.cti_id for c in page.items] == [catalog[2].cti_id, catalog[1].cti_id]

    def test_list_by_creator(self, document_service, catalog):
        page = document_service.list_cti(creator_user_id="alice")

        assert {c.cti_id for c in page.items} == {catalog[0].cti_id, catalog[2].cti_id}

    def test_latest_summaries(self, document_service, catalog):
        latest = document_service.latest_cti_summaries(2)

        assert [s.cti_id for s in latest] == [catalog[3].cti_id, catalog[2].cti_id]

    def test_get_by_hash(self, document_service, catalog):
        assert document_service.get_cti_by_hash("h1").cti_id == catalog[1].cti_id

        with pytest.raises(NotFoundError):
            document_service.get_cti_by_hash("missing")

    def test_browse_by_bookmark(self, document_service, catalog):
        first = document_service.browse_cti(page_size=3)
        second = document_service.browse_cti(page_size=3, bookmark=first.bookmark)

        assert len(first.items) == 3
        assert len(second.items) == 1
        assert second.bookmark == ""

    def test_user_own_cti(self, document_service, catalog, point_service, make_account):
        make_account("alice", "50")
        make_account("bob", "0")
        point_service.transfer_points("alice", "bob", Decimal("0"), catalog[1].cti_id)

        owned = document_service.user_own_cti("alice")

        assert {c.cti_id for c in owned.upload_cti_infos} == {catalog[0].cti_id, catalog[2].cti_id}
        assert [c.cti_id for c in owned.purchase_cti_infos] == [catalog[1].cti_id]
        assert owned.total == 3


class TestNeedAndValue:
    def test_add_need_only_increases(self, document_service, signed_tx):
        cti = _register(document_service, signed_tx)

        assert document_service.add_need(cti.cti_id, "cti").need == 1
        assert document_service.add_need(cti.cti_id, "cti", 2).need == 3
        with pytest.raises(ValidationError):
            document_service.add_need(cti.cti_id, "cti", -1)

    def test_update_value(self, document_service, signed_tx):
        cti = _register(document_service, signed_tx)

        document_service.update_value(cti.cti_id, "cti", 21.5)

        assert document_service.get_cti(cti.cti_id).value == 21.5

    def test_unsupported_doctype(self, document_service):
        with pytest.raises(ValidationError):
            document_service.get_document("x", "comment")

    def test_missing_document(self, document_service):
        with pytest.raises(NotFoundError):
            document_service.add_need("nope", "model")
