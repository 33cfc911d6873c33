from types import SimpleNamespace
from unittest.mock import Mock

from ctiledger.services.task_queue import FollowUpTaskQueue


def test_runs_in_order_and_collects_failures():
    calls = []
    queue = FollowUpTaskQueue(context="purchase T1")
    queue.enqueue("first", lambda: calls.append("first"))
    queue.enqueue("broken", Mock(side_effect=RuntimeError("stats down")))
    queue.enqueue("third", lambda value: calls.append(value), "third")

    result = queue.drain()

    assert calls == ["first", "third"]
    assert result.completed == ["first", "third"]
    assert result.warnings == ["broken failed: stats down"]
    assert result.has_warnings
    assert len(queue) == 0


def test_nested_warnings_are_prefixed():
    queue = FollowUpTaskQueue()
    queue.enqueue("incentive", lambda: SimpleNamespace(warnings=["statistics failed"]))

    result = queue.drain()

    assert result.warnings == ["incentive: statistics failed"]


def test_empty_queue():
    result = FollowUpTaskQueue().drain()

    assert result.completed == []
    assert not result.has_warnings
