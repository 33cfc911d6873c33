"""
포인트 API 라우터

- POST /points/accounts: 계정 등록
- GET /points/accounts/{user_id}: 계정 포인트 정보
- POST /points/init: 관리자 계정 초기화
- POST /points/purchase/cti, /points/purchase/model: 서명된 구매 요청
- GET /points/accounts/{user_id}/transactions: 거래 기록 (북마크 페이지)
- GET /points/accounts/{user_id}/statistics: 사용자 통계
"""

import logging

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, Path, Query

from ctiledger.containers import Container
from ctiledger.schemas.common import AssetType, BaseResponse, LedgerOperationResponse
from ctiledger.schemas.points import AccountRegisterRequest, PurchaseResult
from ctiledger.schemas.tx import TxMsgRawData
from ctiledger.services.point_service import PointService
from ctiledger.services.statistics_service import StatisticsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/points", tags=["points"])


@router.post("/accounts", response_model=BaseResponse)
@inject
async def register_account(
    request: AccountRegisterRequest,
    point_service: PointService = Depends(Provide[Container.services.point_service]),
) -> BaseResponse:
    """계정 등록 - 초기 포인트를 지정하지 않으면 기본값 사용"""
    account = point_service.register_account(request)
    return BaseResponse(success=True, data=account.model_dump(mode="json"))


@router.get("/accounts/{user_id}", response_model=BaseResponse)
@inject
async def get_account(
    user_id: str = Path(..., description="사용자 ID"),
    point_service: PointService = Depends(Provide[Container.services.point_service]),
) -> BaseResponse:
    account = point_service.get_account(user_id)
    return BaseResponse(success=True, data=account.model_dump(mode="json"))


@router.post("/init", response_model=BaseResponse)
@inject
async def init_ledger(
    point_service: PointService = Depends(Provide[Container.services.point_service]),
) -> BaseResponse:
    account = point_service.init_ledger()
    return BaseResponse(success=True, data=account.model_dump(mode="json"))


@router.post("/purchase/cti", response_model=LedgerOperationResponse[PurchaseResult])
@inject
async def purchase_cti(
    raw: TxMsgRawData,
    point_service: PointService = Depends(Provide[Container.services.point_service]),
) -> LedgerOperationResponse[PurchaseResult]:
    """CTI 구매

    이체와 거래 기록이 커밋되면 success=True 이며, 후속 작업(통계, 수요량,
    가치 재산정) 실패는 warnings 에 담긴다.
    """
    return point_service.purchase_document(raw, AssetType.CTI)


@router.post("/purchase/model", response_model=LedgerOperationResponse[PurchaseResult])
@inject
async def purchase_model(
    raw: TxMsgRawData,
    point_service: PointService = Depends(Provide[Container.services.point_service]),
) -> LedgerOperationResponse[PurchaseResult]:
    return point_service.purchase_document(raw, AssetType.MODEL)


@router.get("/accounts/{user_id}/transactions", response_model=BaseResponse)
@inject
async def list_transactions(
    user_id: str = Path(..., description="사용자 ID"),
    page_size: int = Query(20, ge=1, le=100, description="페이지 크기"),
    bookmark: str = Query("", description="이전 응답의 bookmark"),
    point_service: PointService = Depends(Provide[Container.services.point_service]),
) -> BaseResponse:
    page = point_service.list_transactions(user_id, page_size=page_size, bookmark=bookmark)
    return BaseResponse(success=True, data=page.model_dump(mode="json"))


@router.get("/accounts/{user_id}/statistics", response_model=BaseResponse)
@inject
async def get_user_statistics(
    user_id: str = Path(..., description="사용자 ID"),
    statistics_service: StatisticsService = Depends(Provide[Container.services.statistics_service]),
) -> BaseResponse:
    stats = statistics_service.get_user_statistics(user_id)
    return BaseResponse(success=True, data=stats.model_dump(mode="json"))
