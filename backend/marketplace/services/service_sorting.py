"""
服务排序 - 排序方式到 MongoDB sort 规则的映射，以及本地数据的同规则排序

所有排序最后都以 _id 升序兜底，保证分页稳定。
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from ..models.filter_spec import FilterSpec
from .service_filters import distance_from

ASCENDING = 1
DESCENDING = -1

# sortBy -> 主排序字段 (MongoDB 路径, 方向)
SORT_FIELDS = {
    'popularity': ('searchMetadata.popularityScore', DESCENDING),
    'rating': ('rating.average', DESCENDING),
    'price': ('price.amount', ASCENDING),
    'price_desc': ('price.amount', DESCENDING),
    'newest': ('createdAt', DESCENDING),
}

TIE_BREAK = ('_id', ASCENDING)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def build_sort_spec(spec: FilterSpec) -> List[Tuple[str, int]]:
    """pymongo sort 列表；distance 排序使用 $geoNear 输出的 distance 字段"""
    mode = spec.effective_sort
    if mode == 'distance':
        return [('distance', ASCENDING), TIE_BREAK]
    return [SORT_FIELDS[mode], TIE_BREAK]


def _get_path(doc: Dict[str, Any], path: str) -> Any:
    current: Any = doc
    for part in path.split('.'):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
    return current


def _to_float(value: Any) -> float:
    """Safely coerce numeric-like values."""
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _to_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            return _EPOCH
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return _EPOCH


def _id_key(service: Dict[str, Any]) -> str:
    return str(service.get('_id', ''))


def sort_services(services: List[Dict[str, Any]], spec: FilterSpec) -> List[Dict[str, Any]]:
    """按 FilterSpec 的排序方式排序（本地数据路径）"""
    mode = spec.effective_sort
    # 先按 _id 升序，再用稳定排序按主键排，等价于 (主键, _id) 复合排序
    ordered = sorted(services, key=_id_key)

    if mode == 'distance':
        def distance_key(service: Dict[str, Any]) -> float:
            distance: Optional[float] = distance_from(service, spec.lat, spec.lng)
            return distance if distance is not None else float('inf')
        return sorted(ordered, key=distance_key)

    path, direction = SORT_FIELDS[mode]
    if path == 'createdAt':
        key = lambda s: _to_datetime(s.get('createdAt'))  # noqa: E731
    else:
        key = lambda s: _to_float(_get_path(s, path))  # noqa: E731
    # sorted 在 reverse=True 时同样保持相等元素的原有顺序
    return sorted(ordered, key=key, reverse=direction == DESCENDING)


# 榜单排序（无分页，按 _id 兜底）
POPULAR_SORT = [('searchMetadata.popularityScore', DESCENDING), ('rating.average', DESCENDING)]
TRENDING_SORT = [('searchMetadata.popularityScore', DESCENDING), ('searchMetadata.searchCount', DESCENDING)]


def sort_by_fields(services: List[Dict[str, Any]], fields: List[Tuple[str, int]]) -> List[Dict[str, Any]]:
    """多字段数值排序：从最次要的字段开始逐个稳定排序"""
    ordered = sorted(services, key=_id_key)
    for path, direction in reversed(fields):
        ordered = sorted(
            ordered,
            key=lambda s, p=path: _to_float(_get_path(s, p)),
            reverse=direction == DESCENDING,
        )
    return ordered
