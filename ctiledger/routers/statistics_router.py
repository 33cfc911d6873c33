"""
통계 API 라우터 (읽기 전용)

집계 값은 등록/구매 후속 작업에서 갱신된다.
"""

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, Query

from ctiledger.containers import Container
from ctiledger.schemas.common import BaseResponse
from ctiledger.services.statistics_service import StatisticsService

router = APIRouter(prefix="/statistics", tags=["statistics"])


@router.get("/data", response_model=BaseResponse)
@inject
async def get_data_statistics(
    statistics_service: StatisticsService = Depends(Provide[Container.services.statistics_service]),
) -> BaseResponse:
    stats = statistics_service.get_data_statistics()
    return BaseResponse(success=True, data=stats.model_dump(mode="json"))


@router.get("/upchain-trend", response_model=BaseResponse)
@inject
async def get_upchain_trend(
    time_range: str = Query("7d", description="24h, 7d, 30d, all"),
    statistics_service: StatisticsService = Depends(Provide[Container.services.statistics_service]),
) -> BaseResponse:
    trend = statistics_service.get_upchain_trend(time_range)
    return BaseResponse(success=True, data=trend.model_dump(mode="json"))


@router.get("/attack-rank", response_model=BaseResponse)
@inject
async def get_attack_rank(
    statistics_service: StatisticsService = Depends(Provide[Container.services.statistics_service]),
) -> BaseResponse:
    rank = statistics_service.get_attack_rank()
    return BaseResponse(success=True, data=rank.model_dump(mode="json"))


@router.get("/iocs-distribution", response_model=BaseResponse)
@inject
async def get_iocs_distribution(
    statistics_service: StatisticsService = Depends(Provide[Container.services.statistics_service]),
) -> BaseResponse:
    distribution = statistics_service.get_iocs_distribution()
    return BaseResponse(success=True, data=distribution.model_dump(mode="json"))


@router.get("/overview", response_model=BaseResponse)
@inject
async def get_system_overview(
    statistics_service: StatisticsService = Depends(Provide[Container.services.statistics_service]),
) -> BaseResponse:
    overview = statistics_service.get_system_overview()
    return BaseResponse(success=True, data=overview.model_dump(mode="json"))
