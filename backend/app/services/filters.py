"""
LoopBack形式のクエリフィルタ

``{"where": ..., "include": ..., "order": ..., "limit": ..., "skip": ..., "fields": ...}``
を解析し、SQLAlchemyの条件式に変換する。
"""
import json
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from sqlalchemy import and_, or_

from app.exceptions import RequestException


@dataclass
class Filter:
    where: Dict[str, Any] = field(default_factory=dict)
    # リレーションID -> スコープ (None はスコープなし)
    include: Dict[str, Optional["Filter"]] = field(default_factory=dict)
    order: List[str] = field(default_factory=list)
    limit: Optional[int] = None
    skip: Optional[int] = None
    fields: Optional[Dict[str, bool]] = None

    def merge_include(self, relation_ids: Iterable[str]) -> "Filter":
        """呼び出し側の指定を保ったまま、relation_ids を include に追加したフィルタを返す"""
        include = {relation_id: None for relation_id in relation_ids}
        include.update(self.include)
        return replace(self, include=include)

    def with_where(self, where: Dict[str, Any]) -> "Filter":
        """where 条件を AND で追加したフィルタを返す"""
        if not self.where:
            return replace(self, where=dict(where))
        return replace(self, where={"and": [self.where, dict(where)]})


def _to_int(value: Any, name: str) -> Optional[int]:
    if value is None:
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise RequestException(f"Invalid filter: {name} must be a number")
    if number < 0:
        raise RequestException(f"Invalid filter: {name} must not be negative")
    return number


def normalize_include(value: Any) -> Dict[str, Optional[Filter]]:
    """include の各種表記 (文字列、配列、オブジェクト) を辞書に揃える"""
    if value is None:
        return {}
    if isinstance(value, str):
        return {value: None}
    if isinstance(value, list):
        result: Dict[str, Optional[Filter]] = {}
        for item in value:
            result.update(normalize_include(item))
        return result
    if isinstance(value, dict):
        # {"relation": "forms", "scope": {...}}
        if "relation" in value:
            scope = value.get("scope")
            return {value["relation"]: parse_filter(scope) if scope else None}
        result = {}
        for relation_id, nested in value.items():
            result[relation_id] = Filter(include=normalize_include(nested)) if nested else None
        return result
    raise RequestException("Invalid filter: include")


def normalize_order(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, list):
        return [str(part).strip() for part in value]
    raise RequestException("Invalid filter: order")


def normalize_fields(value: Any) -> Optional[Dict[str, bool]]:
    if value is None:
        return None
    if isinstance(value, list):
        return {name: True for name in value}
    if isinstance(value, dict):
        return {name: bool(flag) for name, flag in value.items()}
    raise RequestException("Invalid filter: fields")


def parse_filter(value: Union[None, str, Dict[str, Any], Filter]) -> Filter:
    """
    フィルタを解析する

    Args:
        value: None、JSON文字列、辞書、またはFilter

    Returns:
        Filter

    Raises:
        RequestException: フィルタの形式が不正な場合
    """
    if value is None or value == "":
        return Filter()
    if isinstance(value, Filter):
        return replace(value)
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as e:
            raise RequestException(f"Invalid filter: {e}")
    if not isinstance(value, dict):
        raise RequestException("Invalid filter: expected an object")

    where = value.get("where")
    if where is None:
        where = {}
    if not isinstance(where, dict):
        raise RequestException("Invalid filter: where must be an object")

    return Filter(
        where=where,
        include=normalize_include(value.get("include")),
        order=normalize_order(value.get("order")),
        limit=_to_int(value.get("limit"), "limit"),
        skip=_to_int(value.get("skip", value.get("offset")), "skip"),
        fields=normalize_fields(value.get("fields")),
    )


def parse_where(value: Union[None, str, Dict[str, Any]]) -> Dict[str, Any]:
    if value is None or value == "":
        return {}
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as e:
            raise RequestException(f"Invalid where: {e}")
    if not isinstance(value, dict):
        raise RequestException("Invalid where: expected an object")
    return value


OPERATORS: Dict[str, Callable[[Any, Any], Any]] = {
    "eq": lambda column, value: column.is_(None) if value is None else column == value,
    "neq": lambda column, value: column.is_not(None) if value is None else column != value,
    "gt": lambda column, value: column > value,
    "gte": lambda column, value: column >= value,
    "lt": lambda column, value: column < value,
    "lte": lambda column, value: column <= value,
    "inq": lambda column, value: column.in_(list(value)),
    "nin": lambda column, value: column.not_in(list(value)),
    "like": lambda column, value: column.like(str(value)),
    "nlike": lambda column, value: column.not_like(str(value)),
    "between": lambda column, value: column.between(value[0], value[1]),
}


def build_conditions(where: Dict[str, Any], resolve_column: Callable[[str], Any]) -> List[Any]:
    """
    where 条件をSQLAlchemyの条件式のリストに変換する

    Args:
        where: LoopBack形式の where
        resolve_column: プロパティ名から列を返す関数

    Returns:
        AND で結合される条件式のリスト
    """
    conditions = []
    for key, value in (where or {}).items():
        if key in ("and", "or"):
            if not isinstance(value, list):
                raise RequestException(f"Invalid where: {key} must be an array")
            parts = [and_(*build_conditions(item, resolve_column)) for item in value]
            conditions.append(and_(*parts) if key == "and" else or_(*parts))
            continue

        column = resolve_column(key)
        if isinstance(value, dict) and value and all(op in OPERATORS for op in value):
            for op, operand in value.items():
                conditions.append(OPERATORS[op](column, operand))
        else:
            conditions.append(OPERATORS["eq"](column, value))
    return conditions
