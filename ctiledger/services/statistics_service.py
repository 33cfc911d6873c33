"""
통계 집계 서비스

등록/구매 이벤트마다 5개 싱글톤 키(STATS, UPCHAIN_TREND, ATTACK_RANK, IOCS_DIST,
SYS_OVERVIEW)와 사용자별 통계 키를 갱신한다.

- 각 갱신은 순수 함수 reducer(old, event) -> new 로 표현된다.
- 키마다 별도 트랜잭션 + 낙관적 동시성 재시도로 적용된다.
- 키 사이의 일관성은 보장하지 않는다. 한 키가 실패해도 이미 반영된 다른 키는
  되돌리지 않고, 실패한 키 목록을 StatisticsUpdateError 로 알린다.
- 주요 작업의 원장 트랜잭션 밖(후속 작업 큐)에서 호출해야 한다.
"""

import logging
from datetime import datetime, timedelta
from functools import partial
from typing import Callable, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel

from ctiledger.config import Settings
from ctiledger.core.exceptions import StatisticsUpdateError, ValidationError
from ctiledger.repositories.ledger_state import LedgerState
from ctiledger.repositories.points_repository import PointsRepository
from ctiledger.repositories.statistics_repository import (
    ATTACK_RANK_KEY,
    IOCS_DIST_KEY,
    STATS_KEY,
    SYS_OVERVIEW_KEY,
    UPCHAIN_TREND_KEY,
    StatisticsRepository,
    user_statistics_key,
)
from ctiledger.schemas.common import DocType
from ctiledger.schemas.documents import ATTACK_TYPE_LABELS
from ctiledger.schemas.points import UserStatistics
from ctiledger.schemas.statistics import (
    AttackRankInfo,
    DataStatisticsInfo,
    DocumentRegisteredEvent,
    IOCsDistributionInfo,
    PurchaseEvent,
    RankItem,
    SystemOverviewInfo,
    UpchainTrendAggregate,
    UpchainTrendInfo,
    ValueChangedEvent,
)

logger = logging.getLogger(__name__)

DAY_FORMAT = "%Y-%m-%d"
HOUR_FORMAT = "%Y-%m-%d %H"
TIME_RANGES = {"24h": None, "7d": 7, "30d": 30, "all": None}


# ----------------------------------------------------------------------
# Reducers
# ----------------------------------------------------------------------
def _normalize_ioc(ioc: str) -> str:
    return ioc.strip().lower()


def reduce_stats(stats: DataStatisticsInfo, event: DocumentRegisteredEvent) -> DataStatisticsInfo:
    updated = stats.model_copy(deep=True)
    type_key = str(event.type_code)
    if event.doctype == DocType.MODEL.value:
        updated.total_model_data_num += 1
        updated.total_model_data_size += event.data_size
        updated.model_type_data_num[type_key] = updated.model_type_data_num.get(type_key, 0) + 1
    else:
        updated.total_cti_data_num += 1
        updated.total_cti_data_size += event.data_size
        updated.cti_type_data_num[type_key] = updated.cti_type_data_num.get(type_key, 0) + 1
        for ioc in event.iocs:
            name = _normalize_ioc(ioc)
            updated.iocs_data_num[name] = updated.iocs_data_num.get(name, 0) + 1
    return updated


def reduce_upchain_trend(
    trend: UpchainTrendAggregate,
    event: DocumentRegisteredEvent,
    retention_hours: int = 168,
) -> UpchainTrendAggregate:
    updated = trend.model_copy(deep=True)
    day_key = event.occurred_at.strftime(DAY_FORMAT)
    hour_key = event.occurred_at.strftime(HOUR_FORMAT)

    if event.doctype == DocType.MODEL.value:
        daily, hourly = updated.model_daily, updated.model_hourly
    else:
        daily, hourly = updated.cti_daily, updated.cti_hourly
    daily[day_key] = daily.get(day_key, 0) + 1
    hourly[hour_key] = hourly.get(hour_key, 0) + 1

    # 오래된 시간 단위 버킷 정리
    cutoff = (event.occurred_at - timedelta(hours=retention_hours)).strftime(HOUR_FORMAT)
    for bucket in (updated.cti_hourly, updated.model_hourly):
        for key in [k for k in bucket if k < cutoff]:
            del bucket[key]
    return updated


def reduce_attack_rank(rank: AttackRankInfo, event: DocumentRegisteredEvent) -> AttackRankInfo:
    counts: Dict[str, int] = {label: 0 for label in ATTACK_TYPE_LABELS.values()}
    for item in rank.rankings:
        counts[item.type] = item.count

    label = ATTACK_TYPE_LABELS.get(event.type_code)
    if event.doctype == DocType.CTI.value and label is not None:
        counts[label] += 1

    order = list(counts)
    rankings = sorted(
        (RankItem(type=name, count=count) for name, count in counts.items()),
        key=lambda item: (-item.count, order.index(item.type)),
    )
    return AttackRankInfo(rankings=rankings)


def reduce_iocs_distribution(dist: IOCsDistributionInfo, event: DocumentRegisteredEvent) -> IOCsDistributionInfo:
    total_count_map = dict(dist.total_count_map)
    for ioc in event.iocs:
        name = _normalize_ioc(ioc)
        total_count_map[name] = total_count_map.get(name, 0) + 1

    total = sum(total_count_map.values())
    distribution = {
        name: round(count / total * 100, 2) if total else 0.0
        for name, count in total_count_map.items()
    }
    return IOCsDistributionInfo(total_count_map=total_count_map, distribution=distribution)


def reduce_overview_registered(overview: SystemOverviewInfo, event: DocumentRegisteredEvent) -> SystemOverviewInfo:
    updated = overview.model_copy()
    if event.doctype == DocType.MODEL.value:
        updated.model_count += 1
        updated.model_value += event.value
    else:
        updated.cti_count += 1
        updated.cti_value += event.value
        updated.iocs_count += len(event.iocs)
    return updated


def reduce_overview_purchase(overview: SystemOverviewInfo, event: PurchaseEvent) -> SystemOverviewInfo:
    updated = overview.model_copy()
    if event.doctype == DocType.MODEL.value:
        updated.model_transactions += 1
    else:
        updated.cti_transactions += 1
    updated.total_transactions += 1
    return updated


def reduce_overview_value_changed(overview: SystemOverviewInfo, event: ValueChangedEvent) -> SystemOverviewInfo:
    updated = overview.model_copy()
    delta = event.new_value - event.old_value
    if event.doctype == DocType.MODEL.value:
        updated.model_value += delta
    else:
        updated.cti_value += delta
    return updated


def reduce_user_upload(stats: UserStatistics, event: DocumentRegisteredEvent) -> UserStatistics:
    updated = stats.model_copy()
    if event.doctype == DocType.MODEL.value:
        updated.user_model_upload_count += 1
    else:
        updated.user_upload_count += 1
    return updated


def reduce_user_purchase(stats: UserStatistics, event: PurchaseEvent) -> UserStatistics:
    updated = stats.model_copy()
    updated.user_purchase_count += 1
    return updated


# ----------------------------------------------------------------------
# Service
# ----------------------------------------------------------------------
class StatisticsService:
    def __init__(self, ledger: LedgerState, settings: Settings):
        self.ledger = ledger
        self.settings = settings
        self.repo = StatisticsRepository(ledger, max_retries=settings.STATISTICS_MAX_RETRIES)
        self.points_repo = PointsRepository(ledger)

    def _apply(self, updates: List[Tuple[str, Callable, Optional[Type[BaseModel]]]]) -> None:
        failed: Dict[str, str] = {}
        for key, reducer, schema_class in updates:
            try:
                self.repo.update(key, reducer, schema_class)
            except Exception as e:
                logger.error(f"Failed to update statistics key {key}: {str(e)}")
                failed[key] = str(e)

        if failed:
            raise StatisticsUpdateError(list(failed), failed)

    def on_document_registered(self, event: DocumentRegisteredEvent) -> None:
        """문서 등록 이벤트 반영"""
        updates = [
            (STATS_KEY, partial(reduce_stats, event=event), None),
            (
                UPCHAIN_TREND_KEY,
                partial(
                    reduce_upchain_trend,
                    event=event,
                    retention_hours=self.settings.UPCHAIN_HOURLY_RETENTION_HOURS,
                ),
                None,
            ),
            (SYS_OVERVIEW_KEY, partial(reduce_overview_registered, event=event), None),
        ]
        if event.doctype == DocType.CTI.value:
            updates.append((ATTACK_RANK_KEY, partial(reduce_attack_rank, event=event), None))
            updates.append((IOCS_DIST_KEY, partial(reduce_iocs_distribution, event=event), None))
        if event.creator_user_id:
            updates.append(
                (
                    user_statistics_key(event.creator_user_id),
                    partial(reduce_user_upload, event=event),
                    UserStatistics,
                )
            )
        self._apply(updates)

    def on_purchase(self, event: PurchaseEvent) -> None:
        """구매 이벤트 반영 - 거래 수 증가"""
        updates = [(SYS_OVERVIEW_KEY, partial(reduce_overview_purchase, event=event), None)]
        if event.buyer_id:
            updates.append(
                (
                    user_statistics_key(event.buyer_id),
                    partial(reduce_user_purchase, event=event),
                    UserStatistics,
                )
            )
        self._apply(updates)

    def on_value_changed(self, event: ValueChangedEvent) -> None:
        """가치 재산정 이벤트 반영 - 총 가치 보정"""
        self._apply([(SYS_OVERVIEW_KEY, partial(reduce_overview_value_changed, event=event), None)])

    # ------------------------------------------------------------------
    # 조회
    # ------------------------------------------------------------------
    def get_data_statistics(self) -> DataStatisticsInfo:
        return self.repo.get(STATS_KEY)

    def get_upchain_trend(self, time_range: str = "7d", now: Optional[datetime] = None) -> UpchainTrendInfo:
        """등록 추이 조회

        Args:
            time_range: "24h"(시간 단위), "7d" / "30d"(일 단위), "all"(전체 일 단위)
        """
        if time_range not in TIME_RANGES:
            raise ValidationError(
                f"Unsupported time range: {time_range}",
                details={"allowed": list(TIME_RANGES)},
            )
        trend: UpchainTrendAggregate = self.repo.get(UPCHAIN_TREND_KEY)
        now = now or self.ledger.tx_timestamp()

        if time_range == "24h":
            cutoff = (now - timedelta(hours=24)).strftime(HOUR_FORMAT)
            cti = {k: v for k, v in trend.cti_hourly.items() if k > cutoff}
            model = {k: v for k, v in trend.model_hourly.items() if k > cutoff}
        elif time_range == "all":
            cti, model = dict(trend.cti_daily), dict(trend.model_daily)
        else:
            cutoff = (now - timedelta(days=TIME_RANGES[time_range])).strftime(DAY_FORMAT)
            cti = {k: v for k, v in trend.cti_daily.items() if k > cutoff}
            model = {k: v for k, v in trend.model_daily.items() if k > cutoff}

        return UpchainTrendInfo(
            time_range=time_range,
            cti_upchain=dict(sorted(cti.items())),
            model_upchain=dict(sorted(model.items())),
        )

    def get_attack_rank(self) -> AttackRankInfo:
        rank: AttackRankInfo = self.repo.get(ATTACK_RANK_KEY)
        if not rank.rankings:
            rank = AttackRankInfo(
                rankings=[RankItem(type=label, count=0) for label in ATTACK_TYPE_LABELS.values()]
            )
        return rank

    def get_iocs_distribution(self) -> IOCsDistributionInfo:
        return self.repo.get(IOCS_DIST_KEY)

    def get_system_overview(self) -> SystemOverviewInfo:
        overview: SystemOverviewInfo = self.repo.get(SYS_OVERVIEW_KEY)
        return overview.model_copy(update={"account_count": self.points_repo.count_accounts()})

    def get_user_statistics(self, user_id: str) -> UserStatistics:
        """사용자 통계 - 전체 CTI 수, 보유(업로드+구매) CTI 수, 업로드 수"""
        stats = self.repo.get_user_statistics(user_id)
        account = self.points_repo.get_account(user_id)
        bought = len(account.cti_bought) if account else 0
        return stats.model_copy(
            update={
                "total_cti_count": self.get_data_statistics().total_cti_data_num,
                "user_cti_count": stats.user_upload_count + bought,
            }
        )
