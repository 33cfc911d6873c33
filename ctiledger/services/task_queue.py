"""후속 작업 큐

주요 작업(이체, 레코드 기록)이 커밋된 뒤 실행되는 부가 작업(통계, 수요량 증가,
인센티브 재계산)을 순서대로 실행한다. 개별 작업의 실패는 로그로 남기고
경고 메시지로 돌려줄 뿐 호출자에게 예외로 전파하지 않는다.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class FollowUpTask:
    name: str
    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)


@dataclass
class FollowUpResult:
    """drain() 결과"""

    completed: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)


class FollowUpTaskQueue:
    def __init__(self, context: Optional[str] = None):
        self.context = context
        self._tasks: List[FollowUpTask] = []

    def __len__(self) -> int:
        return len(self._tasks)

    def enqueue(self, name: str, func: Callable[..., Any], *args, **kwargs) -> None:
        self._tasks.append(FollowUpTask(name=name, func=func, args=args, kwargs=kwargs))

    def drain(self) -> FollowUpResult:
        """등록 순서대로 실행 후 큐를 비운다"""
        result = FollowUpResult()
        tasks, self._tasks = self._tasks, []

        for task in tasks:
            try:
                outcome = task.func(*task.args, **task.kwargs)
                result.completed.append(task.name)
                # 작업이 자체 경고를 돌려주면 함께 수집
                for nested in getattr(outcome, "warnings", None) or []:
                    result.warnings.append(f"{task.name}: {nested}")
            except Exception as e:
                warning = f"{task.name} failed: {str(e)}"
                logger.warning(
                    f"Follow-up task failed{f' ({self.context})' if self.context else ''}: {warning}"
                )
                result.warnings.append(warning)

        return result
