"""
CTI / 모델 / 평가 API 라우터

등록 계열 엔드포인트는 모두 서명된 메시지(TxMsgRawData)를 받는다.
"""

import logging
from typing import Optional

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, Path, Query

from ctiledger.containers import Container
from ctiledger.schemas.common import BaseResponse, DocType, LedgerOperationResponse
from ctiledger.schemas.documents import CtiInfo, ModelInfo
from ctiledger.schemas.tx import TxMsgRawData
from ctiledger.services.comment_service import CommentService
from ctiledger.services.document_service import DocumentService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["documents"])


# ----------------------------------------------------------------------
# CTI
# ----------------------------------------------------------------------
@router.post("/cti", response_model=LedgerOperationResponse[CtiInfo])
@inject
async def register_cti(
    raw: TxMsgRawData,
    document_service: DocumentService = Depends(Provide[Container.services.document_service]),
) -> LedgerOperationResponse[CtiInfo]:
    return document_service.register_cti(raw)


@router.get("/cti", response_model=BaseResponse)
@inject
async def list_cti(
    page: int = Query(1, ge=1, description="페이지 번호"),
    page_size: int = Query(10, ge=1, le=100, description="페이지 크기"),
    cti_type: Optional[int] = Query(None, description="CTI 타입"),
    incentive_mechanism: Optional[int] = Query(None, description="가치 산정 방식"),
    creator_user_id: Optional[str] = Query(None, description="등록자 ID"),
    document_service: DocumentService = Depends(Provide[Container.services.document_service]),
) -> BaseResponse:
    result = document_service.list_cti(
        page=page,
        page_size=page_size,
        cti_type=cti_type,
        incentive_mechanism=incentive_mechanism,
        creator_user_id=creator_user_id,
    )
    return BaseResponse(success=True, data=result.model_dump(mode="json"))


@router.get("/cti/latest", response_model=BaseResponse)
@inject
async def latest_cti(
    limit: int = Query(10, ge=1, le=100),
    document_service: DocumentService = Depends(Provide[Container.services.document_service]),
) -> BaseResponse:
    summaries = document_service.latest_cti_summaries(limit)
    return BaseResponse(success=True, data={"items": [s.model_dump(mode="json") for s in summaries]})


@router.get("/cti/browse", response_model=BaseResponse)
@inject
async def browse_cti(
    page_size: int = Query(10, ge=1, le=100, description="페이지 크기"),
    bookmark: str = Query("", description="이전 페이지가 돌려준 북마크"),
    document_service: DocumentService = Depends(Provide[Container.services.document_service]),
) -> BaseResponse:
    page = document_service.browse_cti(page_size=page_size, bookmark=bookmark)
    return BaseResponse(success=True, data=page.model_dump(mode="json"))


@router.get("/cti/hash/{cti_hash}", response_model=BaseResponse)
@inject
async def get_cti_by_hash(
    cti_hash: str = Path(...),
    document_service: DocumentService = Depends(Provide[Container.services.document_service]),
) -> BaseResponse:
    cti = document_service.get_cti_by_hash(cti_hash)
    return BaseResponse(success=True, data=cti.model_dump(mode="json"))


@router.get("/cti/{cti_id}", response_model=BaseResponse)
@inject
async def get_cti(
    cti_id: str = Path(...),
    document_service: DocumentService = Depends(Provide[Container.services.document_service]),
) -> BaseResponse:
    cti = document_service.get_cti(cti_id)
    return BaseResponse(success=True, data=cti.model_dump(mode="json"))


@router.get("/cti/{cti_id}/models", response_model=BaseResponse)
@inject
async def models_by_ref_cti(
    cti_id: str = Path(...),
    document_service: DocumentService = Depends(Provide[Container.services.document_service]),
) -> BaseResponse:
    models = document_service.models_by_ref_cti(cti_id)
    return BaseResponse(success=True, data={"items": [m.model_dump(mode="json") for m in models]})


@router.get("/users/{user_id}/cti", response_model=BaseResponse)
@inject
async def user_own_cti(
    user_id: str = Path(..., description="사용자 ID"),
    document_service: DocumentService = Depends(Provide[Container.services.document_service]),
) -> BaseResponse:
    """사용자가 업로드/구매한 CTI"""
    owned = document_service.user_own_cti(user_id)
    return BaseResponse(success=True, data=owned.model_dump(mode="json"))


@router.get("/users/{user_id}/purchases", response_model=BaseResponse)
@inject
async def user_purchases(
    user_id: str = Path(..., description="사용자 ID"),
    doctype: DocType = Query(DocType.CTI, description="cti 또는 model"),
    document_service: DocumentService = Depends(Provide[Container.services.document_service]),
) -> BaseResponse:
    documents = document_service.user_purchased_documents(user_id, doctype.value)
    return BaseResponse(success=True, data={"items": [d.model_dump(mode="json") for d in documents]})


# ----------------------------------------------------------------------
# 모델
# ----------------------------------------------------------------------
@router.post("/models", response_model=LedgerOperationResponse[ModelInfo])
@inject
async def register_model(
    raw: TxMsgRawData,
    document_service: DocumentService = Depends(Provide[Container.services.document_service]),
) -> LedgerOperationResponse[ModelInfo]:
    return document_service.register_model(raw)


@router.get("/models", response_model=BaseResponse)
@inject
async def list_models(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    model_type: Optional[int] = Query(None),
    incentive_mechanism: Optional[int] = Query(None),
    creator_user_id: Optional[str] = Query(None),
    document_service: DocumentService = Depends(Provide[Container.services.document_service]),
) -> BaseResponse:
    result = document_service.list_models(
        page=page,
        page_size=page_size,
        model_type=model_type,
        incentive_mechanism=incentive_mechanism,
        creator_user_id=creator_user_id,
    )
    return BaseResponse(success=True, data=result.model_dump(mode="json"))


@router.get("/models/{model_id}", response_model=BaseResponse)
@inject
async def get_model(
    model_id: str = Path(...),
    document_service: DocumentService = Depends(Provide[Container.services.document_service]),
) -> BaseResponse:
    model = document_service.get_model(model_id)
    return BaseResponse(success=True, data=model.model_dump(mode="json"))


# ----------------------------------------------------------------------
# 평가
# ----------------------------------------------------------------------
@router.post("/comments", response_model=BaseResponse)
@inject
async def register_comment(
    raw: TxMsgRawData,
    comment_service: CommentService = Depends(Provide[Container.services.comment_service]),
) -> BaseResponse:
    comment = comment_service.register_comment(raw)
    return BaseResponse(success=True, data=comment.model_dump(mode="json"))


@router.post("/comments/approve", response_model=BaseResponse)
@inject
async def approve_comment(
    raw: TxMsgRawData,
    comment_service: CommentService = Depends(Provide[Container.services.comment_service]),
) -> BaseResponse:
    """평가 승인/거절 (tx_data.status 1: 승인, 2: 거절)"""
    comment = comment_service.approve_comment(raw)
    return BaseResponse(success=True, data=comment.model_dump(mode="json"))


@router.get("/comments/{ref_id}", response_model=BaseResponse)
@inject
async def list_comments(
    ref_id: str = Path(..., description="문서 ID"),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    comment_service: CommentService = Depends(Provide[Container.services.comment_service]),
) -> BaseResponse:
    result = comment_service.list_comments(ref_id, page=page, page_size=page_size)
    return BaseResponse(success=True, data=result.model_dump(mode="json"))
