"""
服务筛选 - 请求参数规范化 + 本地数据的筛选逻辑

normalize_filters 是全函数：任何输入都不会抛异常，非法值一律回退到默认值。
"""

import math
from dataclasses import replace
from typing import Any, Dict, List, Mapping, Optional

from config import Config

from ..models.filter_spec import (
    DEFAULT_LIMIT,
    DEFAULT_PAGE,
    DEFAULT_RADIUS_KM,
    DEFAULT_SORT,
    LIMIT_OPTIONS,
    MAX_PAGE,
    SORT_OPTIONS,
    FilterSpec,
)
from ..models.service import get_coordinates
from . import category_registry

# 与 MongoDB 球面计算使用同一地球半径，本地距离与 $geoNear 结果一致
EARTH_RADIUS_KM = 6378.1

# 原始参数名 -> FilterSpec 字段；同一字段的多个别名按顺序取第一个
RAW_FIELD_ALIASES = {
    'query': ('q', 'query'),
    'category': ('category',),
    'subcategory': ('subcategory',),
    'min_price': ('minPrice', 'min_price'),
    'max_price': ('maxPrice', 'max_price'),
    'min_rating': ('minRating', 'min_rating'),
    'city': ('city',),
    'state': ('state',),
    'lat': ('lat',),
    'lng': ('lng',),
    'radius_km': ('radius', 'radiusKm', 'radius_km'),
    'sort_by': ('sortBy', 'sort_by', 'sort'),
    'page': ('page',),
    'limit': ('limit',),
}


def _first_present(raw: Mapping[str, Any], names) -> Any:
    for name in names:
        if name in raw:
            return raw.get(name)
    return None


def _to_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
        if value is None:
            return None
    text = str(value).strip()
    return text or None


def _to_number(value: Any) -> Optional[float]:
    """Parse str/number input; anything non-numeric becomes None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = _to_text(value)
        if text is None:
            return None
        try:
            number = float(text)
        except (TypeError, ValueError):
            return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _to_page(value: Any) -> int:
    number = _to_number(value)
    if number is None:
        return DEFAULT_PAGE
    return max(DEFAULT_PAGE, min(MAX_PAGE, int(number)))


def _to_limit(value: Any) -> int:
    """向下取整到 {10, 20, 50}，低于最小值取 10"""
    number = _to_number(value)
    if number is None:
        return DEFAULT_LIMIT
    allowed = [option for option in LIMIT_OPTIONS if option <= number]
    return allowed[-1] if allowed else LIMIT_OPTIONS[0]


def _to_sort(value: Any) -> str:
    text = (_to_text(value) or '').lower()
    return text if text in SORT_OPTIONS else DEFAULT_SORT


def _to_radius(value: Any, default: float = DEFAULT_RADIUS_KM) -> float:
    number = _to_number(value)
    if number is None or number <= 0:
        return default
    return number


def _to_category(value: Any) -> Optional[str]:
    text = _to_text(value)
    if text is None:
        return None
    # 未匹配的分类原样透传（执行层按忽略大小写比较）
    return category_registry.canonical_name(text) or text


def normalize_filters(raw: Optional[Mapping[str, Any]]) -> FilterSpec:
    """Turn raw client filter fields into a canonical FilterSpec."""
    raw = raw if raw is not None else {}

    def pick(field_name: str) -> Any:
        try:
            return _first_present(raw, RAW_FIELD_ALIASES[field_name])
        except Exception:
            return None

    return FilterSpec(
        query=_to_text(pick('query')),
        category=_to_category(pick('category')),
        subcategory=_to_text(pick('subcategory')),
        min_price=_to_number(pick('min_price')),
        max_price=_to_number(pick('max_price')),
        min_rating=_to_number(pick('min_rating')),
        city=_to_text(pick('city')),
        state=_to_text(pick('state')),
        lat=_to_number(pick('lat')),
        lng=_to_number(pick('lng')),
        radius_km=_to_radius(pick('radius_km'), Config.DEFAULT_SEARCH_RADIUS_KM),
        sort_by=_to_sort(pick('sort_by')),
        page=_to_page(pick('page')),
        limit=_to_limit(pick('limit')),
    )


def apply_filter_changes(spec: FilterSpec, changes: Mapping[str, Any]) -> FilterSpec:
    """Apply raw client changes to an existing spec.

    Any change to a field other than page sends the client back to page 1.
    """
    changes = dict(changes or {})
    merged = spec_to_raw(spec)
    for aliases in RAW_FIELD_ALIASES.values():
        if any(alias in changes for alias in aliases):
            for alias in aliases:
                merged.pop(alias, None)
    merged.update(changes)

    changed = normalize_filters(merged)
    filter_fields = [name for name in RAW_FIELD_ALIASES if name != 'page']
    if any(getattr(changed, name) != getattr(spec, name) for name in filter_fields):
        return replace(changed, page=DEFAULT_PAGE)
    return changed


def spec_to_raw(spec: FilterSpec) -> Dict[str, Any]:
    """FilterSpec -> 原始参数格式（用于合并与回显）"""
    raw = {
        'q': spec.query,
        'category': spec.category,
        'subcategory': spec.subcategory,
        'minPrice': spec.min_price,
        'maxPrice': spec.max_price,
        'minRating': spec.min_rating,
        'city': spec.city,
        'state': spec.state,
        'lat': spec.lat,
        'lng': spec.lng,
        'radius': spec.radius_km,
        'sortBy': spec.sort_by,
        'page': spec.page,
        'limit': spec.limit,
    }
    return {key: value for key, value in raw.items() if value is not None}


# ========== 本地数据筛选（未配置 MongoDB 时使用） ==========

def _lower(value: Any) -> str:
    return str(value or '').strip().lower()


def _nested(doc: Dict[str, Any], path: str) -> Any:
    current: Any = doc
    for part in path.split('.'):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
    return current


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """大圆距离（公里）"""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def distance_from(service: Dict[str, Any], lat: float, lng: float) -> Optional[float]:
    coords = get_coordinates(service)
    if coords is None:
        return None
    return haversine_km(lat, lng, coords[0], coords[1])


def matches_keyword(service: Dict[str, Any], keyword: Optional[str]) -> bool:
    if not keyword:
        return True
    needle = keyword.lower()
    if needle in _lower(service.get('name')) or needle in _lower(service.get('description')):
        return True
    keywords = _nested(service, 'searchMetadata.searchKeywords') or []
    if isinstance(keywords, str):
        keywords = [keywords]
    return any(needle in _lower(kw) for kw in keywords)


def _number_at(service: Dict[str, Any], path: str) -> Optional[float]:
    return _to_number(_nested(service, path))


def matches_spec(service: Dict[str, Any], spec: FilterSpec) -> bool:
    """Evaluate the search predicate (AND of all present filters) in Python."""
    if service.get('isActive') is not True:
        return False

    if spec.category is not None:
        if _lower(service.get('category')) != spec.category.lower():
            return False
        if spec.subcategory is not None and _lower(service.get('subcategory')) != spec.subcategory.lower():
            return False

    if not matches_keyword(service, spec.search_text):
        return False

    if spec.min_price is not None or spec.max_price is not None:
        amount = _number_at(service, 'price.amount')
        if amount is None:
            return False
        if spec.min_price is not None and amount < spec.min_price:
            return False
        if spec.max_price is not None and amount > spec.max_price:
            return False

    if spec.min_rating is not None:
        rating = _number_at(service, 'rating.average')
        if rating is None or rating < spec.min_rating:
            return False

    if spec.city is not None and _lower(_nested(service, 'location.address.city')) != spec.city.lower():
        return False
    if spec.state is not None and _lower(_nested(service, 'location.address.state')) != spec.state.lower():
        return False

    if spec.has_coordinates:
        distance = distance_from(service, spec.lat, spec.lng)
        if distance is None or distance > spec.radius_km:
            return False

    return True


def filter_services(services: List[Dict[str, Any]], spec: FilterSpec) -> List[Dict[str, Any]]:
    return [s for s in services if s and matches_spec(s, spec)]

