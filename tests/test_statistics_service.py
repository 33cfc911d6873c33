from datetime import datetime, timedelta
from unittest.mock import patch

import pytest
import pytz

from ctiledger.core.exceptions import StatisticsUpdateError, ValidationError, VersionConflictError
from ctiledger.repositories.statistics_repository import (
    ATTACK_RANK_KEY,
    STATS_KEY,
    SYS_OVERVIEW_KEY,
    StatisticsRepository,
)
from ctiledger.schemas.statistics import (
    AttackRankInfo,
    DataStatisticsInfo,
    DocumentRegisteredEvent,
    IOCsDistributionInfo,
    PurchaseEvent,
    UpchainTrendAggregate,
    ValueChangedEvent,
)
from ctiledger.services.statistics_service import (
    StatisticsService,
    reduce_attack_rank,
    reduce_iocs_distribution,
    reduce_stats,
    reduce_upchain_trend,
)

TZ = pytz.timezone("Asia/Shanghai")
NOW = TZ.localize(datetime(2024, 3, 15, 10, 30))


def _cti_event(type_code=1, iocs=None, value=10.0, creator="alice", at=NOW):
    return DocumentRegisteredEvent(
        doctype="cti",
        type_code=type_code,
        data_size=100,
        iocs=iocs or [],
        value=value,
        creator_user_id=creator,
        occurred_at=at,
    )


@pytest.fixture
def statistics_service(ledger, settings):
    return StatisticsService(ledger, settings)


class TestReducers:
    def test_attack_rank_sorted_by_count(self):
        rank = AttackRankInfo()
        for type_code in (3, 3, 1):
            rank = reduce_attack_rank(rank, _cti_event(type_code=type_code))

        assert [(r.type, r.count) for r in rank.rankings[:2]] == [("botnet", 2), ("malicious_traffic", 1)]
        assert len(rank.rankings) == 5

    def test_iocs_distribution_percentages(self):
        dist = reduce_iocs_distribution(IOCsDistributionInfo(), _cti_event(iocs=["IP", "ip", "url"]))

        assert dist.total_count_map == {"ip": 2, "url": 1}
        assert dist.distribution == {"ip": 66.67, "url": 33.33}

    def test_upchain_trend_prunes_old_hours(self):
        old = _cti_event(at=NOW - timedelta(hours=200))
        trend = reduce_upchain_trend(UpchainTrendAggregate(), old, retention_hours=168)
        trend = reduce_upchain_trend(trend, _cti_event(), retention_hours=168)

        assert list(trend.cti_hourly) == ["2024-03-15 10"]
        assert len(trend.cti_daily) == 2

    def test_reducer_does_not_mutate_input(self):
        before = DataStatisticsInfo()
        reduce_stats(before, _cti_event(iocs=["ip"]))

        assert before.total_cti_data_num == 0
        assert before.iocs_data_num == {}


class TestEvents:
    def test_document_registered_updates_all_keys(self, statistics_service):
        statistics_service.on_document_registered(_cti_event(type_code=2, iocs=["ip"]))

        assert statistics_service.get_data_statistics().total_cti_data_num == 1
        assert statistics_service.get_attack_rank().rankings[0].type == "honeypot"
        assert statistics_service.get_iocs_distribution().total_count_map == {"ip": 1}
        overview = statistics_service.get_system_overview()
        assert overview.cti_count == 1
        assert overview.iocs_count == 1
        assert statistics_service.get_user_statistics("alice").user_upload_count == 1

    def test_mixed_registrations_keep_histograms_in_sync(self, statistics_service):
        cti_types = [1, 3, 3, 2, 5, 3]
        for type_code in cti_types:
            statistics_service.on_document_registered(_cti_event(type_code=type_code))
        for type_code in (1, 2):
            statistics_service.on_document_registered(
                _cti_event(type_code=type_code).model_copy(update={"doctype": "model"})
            )

        stats = statistics_service.get_data_statistics()
        assert stats.total_cti_data_num == len(cti_types)
        assert sum(stats.cti_type_data_num.values()) == len(cti_types)
        assert stats.cti_type_data_num["3"] == 3
        assert stats.total_model_data_num == 2
        assert sum(stats.model_type_data_num.values()) == 2
        assert statistics_service.get_system_overview().cti_count == len(cti_types)

    def test_purchase_and_value_change(self, statistics_service):
        statistics_service.on_document_registered(_cti_event(value=10))
        statistics_service.on_purchase(PurchaseEvent(doctype="cti", buyer_id="bob", occurred_at=NOW))
        statistics_service.on_value_changed(ValueChangedEvent(doctype="cti", old_value=10, new_value=13.18))

        overview = statistics_service.get_system_overview()
        assert overview.total_transactions == 1
        assert overview.cti_transactions == 1
        assert overview.cti_value == pytest.approx(13.18)

    def test_partial_failure_reports_failed_keys(self, statistics_service):
        original = statistics_service.repo.update

        def flaky(key, reducer, schema_class=None):
            if key == ATTACK_RANK_KEY:
                raise VersionConflictError(key=key)
            return original(key, reducer, schema_class)

        with patch.object(statistics_service.repo, "update", side_effect=flaky):
            with pytest.raises(StatisticsUpdateError) as exc_info:
                statistics_service.on_document_registered(_cti_event())

        assert exc_info.value.failed_keys == [ATTACK_RANK_KEY]
        # 다른 키는 반영된 상태로 남는다
        assert statistics_service.get_data_statistics().total_cti_data_num == 1


class TestOptimisticRetry:
    def test_retries_after_conflict(self, ledger):
        repo = StatisticsRepository(ledger, max_retries=3)
        original = ledger.put_state
        attempts = []

        def conflict_once(key, value, expected_version=None):
            attempts.append(expected_version)
            if len(attempts) == 1:
                # 다른 작성자가 먼저 갱신한 상황
                raise VersionConflictError(key=key, expected_version=expected_version)
            return original(key, value, expected_version)

        with patch.object(ledger, "put_state", side_effect=conflict_once):
            result = repo.update(STATS_KEY, lambda stats: stats.model_copy(update={"total_cti_data_num": 1}))

        assert attempts == [0, 0]
        assert result.total_cti_data_num == 1
        assert repo.get(STATS_KEY).total_cti_data_num == 1

    def test_gives_up_after_max_retries(self, ledger):
        repo = StatisticsRepository(ledger, max_retries=2)

        with patch.object(ledger, "put_state", side_effect=VersionConflictError(key=SYS_OVERVIEW_KEY)) as put:
            with pytest.raises(VersionConflictError):
                repo.update(SYS_OVERVIEW_KEY, lambda overview: overview)

        assert put.call_count == 2


class TestUpchainTrend:
    def test_time_ranges(self, statistics_service):
        statistics_service.on_document_registered(_cti_event(at=NOW - timedelta(days=10)))
        statistics_service.on_document_registered(_cti_event(at=NOW - timedelta(hours=2)))

        day = statistics_service.get_upchain_trend("24h", now=NOW)
        week = statistics_service.get_upchain_trend("7d", now=NOW)
        everything = statistics_service.get_upchain_trend("all", now=NOW)

        assert sum(day.cti_upchain.values()) == 1
        assert sum(week.cti_upchain.values()) == 1
        assert sum(everything.cti_upchain.values()) == 2

    def test_invalid_range(self, statistics_service):
        with pytest.raises(ValidationError):
            statistics_service.get_upchain_trend("1y")
