import logging
from typing import Callable, Optional, Type, TypeVar

from pydantic import BaseModel

from ctiledger.core.exceptions import VersionConflictError
from ctiledger.repositories.ledger_state import LedgerState
from ctiledger.schemas.points import UserStatistics
from ctiledger.schemas.statistics import (
    AttackRankInfo,
    DataStatisticsInfo,
    IOCsDistributionInfo,
    SystemOverviewInfo,
    UpchainTrendAggregate,
)

logger = logging.getLogger(__name__)

AggregateT = TypeVar("AggregateT", bound=BaseModel)

# 통계 싱글톤 키
STATS_KEY = "STATS"
UPCHAIN_TREND_KEY = "UPCHAIN_TREND"
ATTACK_RANK_KEY = "ATTACK_RANK"
IOCS_DIST_KEY = "IOCS_DIST"
SYS_OVERVIEW_KEY = "SYS_OVERVIEW"

AGGREGATE_SCHEMAS = {
    STATS_KEY: DataStatisticsInfo,
    UPCHAIN_TREND_KEY: UpchainTrendAggregate,
    ATTACK_RANK_KEY: AttackRankInfo,
    IOCS_DIST_KEY: IOCsDistributionInfo,
    SYS_OVERVIEW_KEY: SystemOverviewInfo,
}


def user_statistics_key(user_id: str) -> str:
    return f"{user_id}_upload_stats"


class StatisticsRepository:
    """통계 집계 레코드 리포지토리

    각 키는 독립적으로 읽기-수정-쓰기 되며, 쓰기는 읽은 버전을 조건으로 한다.
    다른 쓰기와 충돌하면 최신 값을 다시 읽어 reducer 를 재적용한다.
    """

    def __init__(self, ledger: LedgerState, max_retries: int = 3):
        self.ledger = ledger
        self.max_retries = max_retries

    def _read(self, key: str, schema_class: Type[AggregateT]):
        record = self.ledger.get_versioned(key)
        if record is None:
            return schema_class(), 0
        return schema_class.model_validate_json(record.value), record.version

    def get(self, key: str, schema_class: Optional[Type[AggregateT]] = None) -> AggregateT:
        schema_class = schema_class or AGGREGATE_SCHEMAS[key]
        aggregate, _ = self._read(key, schema_class)
        return aggregate

    def get_user_statistics(self, user_id: str) -> UserStatistics:
        return self.get(user_statistics_key(user_id), UserStatistics)

    def update(
        self,
        key: str,
        reducer: Callable[[AggregateT], AggregateT],
        schema_class: Optional[Type[AggregateT]] = None,
    ) -> AggregateT:
        """reducer(old) -> new 를 낙관적 동시성으로 적용

        Raises:
            VersionConflictError: max_retries 번 모두 충돌한 경우
        """
        schema_class = schema_class or AGGREGATE_SCHEMAS[key]
        last_error: Optional[VersionConflictError] = None

        for attempt in range(1, self.max_retries + 1):
            try:
                with self.ledger.transaction():
                    current, version = self._read(key, schema_class)
                    updated = reducer(current)
                    self.ledger.put_state(
                        key,
                        updated.model_dump_json().encode("utf-8"),
                        expected_version=version,
                    )
                return updated
            except VersionConflictError as e:
                last_error = e
                logger.warning(
                    f"Statistics key {key} changed concurrently (attempt {attempt}/{self.max_retries})"
                )

        raise last_error or VersionConflictError(key=key)
