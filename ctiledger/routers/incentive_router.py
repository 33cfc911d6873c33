import logging

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, Path, Query

from ctiledger.containers import Container
from ctiledger.schemas.common import BaseResponse, DocType, LedgerOperationResponse
from ctiledger.schemas.incentive import DocIncentiveInfo
from ctiledger.schemas.tx import TxMsgRawData
from ctiledger.services.incentive_service import IncentiveService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/incentives", tags=["incentives"])


@router.post("", response_model=LedgerOperationResponse[DocIncentiveInfo])
@inject
async def register_doc_incentive(
    raw: TxMsgRawData,
    incentive_service: IncentiveService = Depends(Provide[Container.services.incentive_service]),
) -> LedgerOperationResponse[DocIncentiveInfo]:
    """서명된 요청으로 문서 가치 재산정"""
    return incentive_service.register_from_tx(raw)


@router.get("/{doctype}/{ref_id}", response_model=BaseResponse)
@inject
async def list_doc_incentives(
    doctype: DocType = Path(..., description="cti 또는 model"),
    ref_id: str = Path(..., description="문서 ID"),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    incentive_service: IncentiveService = Depends(Provide[Container.services.incentive_service]),
) -> BaseResponse:
    result = incentive_service.list_doc_incentives(ref_id, doctype.value, page=page, page_size=page_size)
    return BaseResponse(success=True, data=result.model_dump(mode="json"))
