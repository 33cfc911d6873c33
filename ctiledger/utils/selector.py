"""CouchDB Mango 스타일 selector 평가기

원장 레코드(JSON dict)에 대해 selector 조건을 평가하고 정렬 키를 만든다.

지원 연산자:
- 필드 값 직접 비교 (암묵적 $eq)
- $eq, $ne, $gt, $gte, $lt, $lte
- $in, $nin, $exists, $regex
- 조합: $and, $or, $not
- "a.b.c" 형태의 중첩 필드 경로
"""

import re
from typing import Any, Dict, List, Optional, Tuple

_MISSING = object()


def resolve_path(document: Dict[str, Any], path: str) -> Any:
    """점(.)으로 구분된 경로의 값을 찾는다. 없으면 _MISSING"""
    current: Any = document
    for part in path.split("."):
        if isinstance(current, dict) and part in current:
            current = current[part]
        else:
            return _MISSING
    return current


def _compare(left: Any, right: Any, op: str) -> bool:
    if left is _MISSING or left is None:
        return False
    try:
        if op == "$gt":
            return left > right
        if op == "$gte":
            return left >= right
        if op == "$lt":
            return left < right
        return left <= right
    except TypeError:
        return False


def _match_operator(value: Any, op: str, operand: Any) -> bool:
    if op == "$eq":
        return value is not _MISSING and value == operand
    if op == "$ne":
        return value is _MISSING or value != operand
    if op in ("$gt", "$gte", "$lt", "$lte"):
        return _compare(value, operand, op)
    if op == "$in":
        if value is _MISSING:
            return False
        if isinstance(value, list):
            return any(item in operand for item in value)
        return value in operand
    if op == "$nin":
        if value is _MISSING:
            return True
        if isinstance(value, list):
            return not any(item in operand for item in value)
        return value not in operand
    if op == "$exists":
        return (value is not _MISSING) == bool(operand)
    if op == "$regex":
        return isinstance(value, str) and re.search(operand, value) is not None
    if op == "$not":
        return not _match_field(value, operand)
    raise ValueError(f"Unsupported selector operator: {op}")


def _match_field(value: Any, condition: Any) -> bool:
    if isinstance(condition, dict) and condition and all(
        k.startswith("$") for k in condition
    ):
        return all(
            _match_operator(value, op, operand) for op, operand in condition.items()
        )
    return value is not _MISSING and value == condition


def matches(document: Dict[str, Any], selector: Optional[Dict[str, Any]]) -> bool:
    """document 가 selector 조건을 모두 만족하는지 확인"""
    if not selector:
        return True

    for field, condition in selector.items():
        if field == "$and":
            if not all(matches(document, sub) for sub in condition):
                return False
        elif field == "$or":
            if not any(matches(document, sub) for sub in condition):
                return False
        elif field == "$not":
            if matches(document, condition):
                return False
        elif not _match_field(resolve_path(document, field), condition):
            return False
    return True


def equality_value(selector: Optional[Dict[str, Any]], field: str) -> Any:
    """selector 에서 field 의 단순 동등 조건 값을 꺼낸다 (인덱스 선필터용)"""
    if not selector or field not in selector:
        return None
    condition = selector[field]
    if isinstance(condition, dict):
        return condition.get("$eq")
    return condition


def parse_sort(sort: Optional[List[Any]]) -> List[Tuple[str, bool]]:
    """Mango sort 표현을 (field, descending) 리스트로 변환

    ["a", {"b": "desc"}] -> [("a", False), ("b", True)]
    """
    fields: List[Tuple[str, bool]] = []
    for item in sort or []:
        if isinstance(item, str):
            fields.append((item, False))
        elif isinstance(item, dict):
            for name, direction in item.items():
                fields.append((name, str(direction).lower() == "desc"))
    return fields


def sort_documents(
    documents: List[Tuple[str, Dict[str, Any]]], sort: Optional[List[Any]]
) -> List[Tuple[str, Dict[str, Any]]]:
    """(key, document) 리스트를 sort 명세대로 정렬 (안정 정렬, 뒤에서부터 적용)"""
    result = list(documents)
    for name, descending in reversed(parse_sort(sort)):
        present = [d for d in result if resolve_path(d[1], name) not in (_MISSING, None)]
        missing = [d for d in result if resolve_path(d[1], name) in (_MISSING, None)]
        present.sort(key=lambda d: resolve_path(d[1], name), reverse=descending)
        result = present + missing
    return result
