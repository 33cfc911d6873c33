"""
문서 가치(인센티브) 산정 공식

메커니즘:
1. COMMON_POINT: α·h + β·ln(s)·10 + γ·ln(need)·10, 소수 둘째 자리에서 버림
2. THREE_PARTY_GAME: 플랫폼/판매자/구매자 3자 게임의 최적 가격 p* 와 서비스 품질 Q
   로 raw 값을 구한 뒤, h 기준 ±30% 범위로 tanh 감쇠
3. EVOLUTIONARY_GAME: 아직 모델링되지 않음. 사전 설정값(incentive_value)을 그대로 반환

입력 보정: history_value, comment_score, need, total_user_num 은 모두 1 이상으로 올린다.
결과는 메커니즘과 무관하게 최소 1.
"""

import math
from dataclasses import dataclass
from typing import Iterable

from ctiledger.config import Settings
from ctiledger.schemas.documents import IncentiveMechanism
from ctiledger.schemas.incentive import IncentiveInputs


@dataclass(frozen=True)
class IncentiveParameters:
    alpha: float = 0.5
    beta: float = 0.2
    gamma: float = 0.3
    k1: float = 0.5
    k2: float = 0.3
    k3: float = 0.4
    game_beta: float = 0.6
    theta: float = 0.2
    lam: float = 0.5
    max_deviation: float = 0.3
    min_value: float = 1.0
    comment_baseline: float = 60.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "IncentiveParameters":
        return cls(
            alpha=settings.INCENTIVE_ALPHA,
            beta=settings.INCENTIVE_BETA,
            gamma=settings.INCENTIVE_GAMMA,
            k1=settings.GAME_K1,
            k2=settings.GAME_K2,
            k3=settings.GAME_K3,
            game_beta=settings.GAME_BETA,
            theta=settings.GAME_THETA,
            lam=settings.GAME_LAMBDA,
            max_deviation=settings.GAME_MAX_DEVIATION,
            min_value=settings.INCENTIVE_MIN_VALUE,
            comment_baseline=settings.COMMENT_BASELINE_SCORE,
        )


def truncate_2(value: float) -> float:
    """소수 둘째 자리 아래 버림 (13.1887 -> 13.18)"""
    return math.floor(value * 100) / 100


def comment_score(scores: Iterable[float], baseline: float = 60.0) -> float:
    """평가 점수 평균 - 기준 점수를 가상의 평가 1건으로 포함해 (baseline + Σ) / (n + 1)"""
    values = list(scores)
    return (baseline + sum(values)) / (len(values) + 1)


class IncentiveCalculator:
    """상태 없는 가치 산정기"""

    def __init__(self, params: IncentiveParameters):
        self.params = params

    @classmethod
    def from_settings(cls, settings: Settings) -> "IncentiveCalculator":
        return cls(IncentiveParameters.from_settings(settings))

    def common_point(self, history_value: float, score: float, need: float) -> float:
        p = self.params
        value = (
            p.alpha * history_value
            + p.beta * math.log(score) * 10
            + p.gamma * math.log(need) * 10
        )
        return truncate_2(value)

    def three_party_game(self, history_value: float, score: float, need: float, total_user_num: float) -> float:
        p = self.params
        y = total_user_num
        beta, theta = p.game_beta, p.theta

        optimal_price = (
            beta * y * p.k2 * p.k3
            + beta * need * p.k2 * (theta - 1)
            - score * p.k3 * theta
        ) / (2 * y * p.k1 * p.k2 * p.k3)
        quality = score * beta * optimal_price / (p.k3 * y)
        raw = p.lam * history_value + (1 - p.lam) * optimal_price * quality

        value = history_value + p.max_deviation * history_value * math.tanh(
            (raw - history_value) / history_value
        )
        if value <= 0:
            return history_value
        return value

    def compute(self, mechanism: int, inputs: IncentiveInputs) -> float:
        """메커니즘별 가치 산정

        Args:
            mechanism: 1~3, 그 외 값은 1 로 처리
            inputs: 산정 입력값

        Returns:
            float: 새 가치 (>= min_value)
        """
        p = self.params
        history_value = max(inputs.history_value, 1.0)
        score = max(inputs.comment_score, 1.0)
        need = max(inputs.need, 1)
        total_user_num = max(inputs.total_user_num, 1)

        selected = IncentiveMechanism.coerce(mechanism)
        if selected == IncentiveMechanism.THREE_PARTY_GAME:
            value = self.three_party_game(history_value, score, need, total_user_num)
        elif selected == IncentiveMechanism.EVOLUTIONARY_GAME:
            value = inputs.incentive_value
        else:
            value = self.common_point(history_value, score, need)

        return max(value, p.min_value)
