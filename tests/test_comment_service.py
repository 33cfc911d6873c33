import pytest

from ctiledger.core.exceptions import AuthorizationError, NotFoundError
from ctiledger.schemas.documents import CommentStatus
from ctiledger.services.comment_service import CommentService


@pytest.fixture
def comment_service(ledger, settings, nonce_service):
    return CommentService(ledger, settings, nonce_service=nonce_service)


@pytest.fixture
def cti(point_service, signed_tx):
    return point_service.document_service.register_cti(signed_tx("author", {"cti_type": 1, "value": 10})).data


def _comment(comment_service, signed_tx, user_id, ref_id, score, doc_type="cti"):
    raw = signed_tx(
        user_id,
        {"comment_doc_type": doc_type, "comment_ref_id": ref_id, "comment_score": score, "comment_content": "ok"},
    )
    return comment_service.register_comment(raw)


def test_register_comment(comment_service, signed_tx, cti, make_account):
    make_account("reader", level=4)

    comment = _comment(comment_service, signed_tx, "reader", cti.cti_id, 80)

    assert comment.comment_id.startswith("1202403151030")
    assert comment.comment_status == CommentStatus.PENDING
    assert comment.user_level == 4
    assert comment_service.get_comment(comment.comment_id).comment_score == 80


def test_unknown_doc_type_treated_as_cti(comment_service, signed_tx, cti):
    comment = _comment(comment_service, signed_tx, "reader", cti.cti_id, 50, doc_type="weird")

    assert comment.comment_doc_type == "cti"


def test_comment_on_missing_document(comment_service, signed_tx):
    with pytest.raises(NotFoundError):
        _comment(comment_service, signed_tx, "reader", "missing", 50, doc_type="model")


def test_scores_include_pending_comments(comment_service, signed_tx, cti):
    _comment(comment_service, signed_tx, "r1", cti.cti_id, 90)
    _comment(comment_service, signed_tx, "r2", cti.cti_id, 30)

    assert sorted(comment_service.comment_scores(cti.cti_id)) == [30, 90]
    assert comment_service.list_comments(cti.cti_id).total == 2


class TestApprove:
    def test_reviewer_with_points_can_approve(self, comment_service, signed_tx, cti, make_account):
        make_account("reviewer", "5000")
        comment = _comment(comment_service, signed_tx, "reader", cti.cti_id, 70)

        approved = comment_service.approve_comment(
            signed_tx("reviewer", {"comment_id": comment.comment_id, "status": 1})
        )
        rejected = comment_service.approve_comment(
            signed_tx("reviewer", {"comment_id": comment.comment_id, "status": 2})
        )

        assert approved.comment_status == CommentStatus.APPROVED
        assert rejected.comment_status == CommentStatus.REJECTED

    def test_reviewer_without_points_rejected(self, comment_service, signed_tx, cti, make_account):
        make_account("newbie", "10")
        comment = _comment(comment_service, signed_tx, "reader", cti.cti_id, 70)

        with pytest.raises(AuthorizationError):
            comment_service.approve_comment(signed_tx("newbie", {"comment_id": comment.comment_id, "status": 1}))

        assert comment_service.get_comment(comment.comment_id).comment_status == CommentStatus.PENDING

    def test_missing_comment(self, comment_service, signed_tx, make_account):
        make_account("reviewer", "5000")

        with pytest.raises(NotFoundError):
            comment_service.approve_comment(signed_tx("reviewer", {"comment_id": "nope", "status": 1}))
