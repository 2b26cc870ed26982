"""
结果展示 - 分页信息、服务文档序列化、零结果推荐词
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId

from ..models.filter_spec import FilterSpec
from .service_filters import distance_from

MAX_SUGGESTIONS = 5


def build_pagination(page: int, limit: int, total: int) -> Dict[str, Any]:
    pages = (total + limit - 1) // limit if limit > 0 else 0
    has_next = page < pages
    has_prev = page > 1
    return {
        'page': page,
        'limit': limit,
        'total': total,
        'pages': pages,
        'hasNext': has_next,
        'hasPrev': has_prev,
        'nextPage': page + 1 if has_next else None,
        'prevPage': page - 1 if has_prev else None,
    }


def to_json_safe(value: Any) -> Any:
    """ObjectId -> str, datetime -> ISO 字符串（递归）"""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: to_json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_safe(item) for item in value]
    return value


def present_service(doc: Dict[str, Any], spec: Optional[FilterSpec] = None) -> Dict[str, Any]:
    service = to_json_safe(doc)
    if spec is not None and spec.has_coordinates:
        distance = doc.get('distance')
        if distance is None:
            distance = distance_from(doc, spec.lat, spec.lng)
        if distance is not None:
            service['distance'] = round(float(distance), 2)
    return service


def build_suggestions(terms: List[str], query: Optional[str]) -> List[str]:
    """零结果推荐：去重后最多 5 条，不包含原查询词本身"""
    seen = {(query or '').strip().lower()}
    suggestions: List[str] = []
    for term in terms:
        text = str(term or '').strip()
        if not text or text.lower() in seen:
            continue
        seen.add(text.lower())
        suggestions.append(text)
        if len(suggestions) >= MAX_SUGGESTIONS:
            break
    return suggestions


def build_search_response(services: List[Dict[str, Any]], total: int, spec: FilterSpec,
                          search_time_ms: int, suggestions: Optional[List[str]] = None) -> Dict[str, Any]:
    metadata: Dict[str, Any] = {
        'query': spec.query or '',
        'filters': spec.to_dict(),
        'resultCount': total,
        'searchTime': search_time_ms,
    }
    if suggestions:
        metadata['suggestions'] = suggestions
    return {
        'services': [present_service(s, spec) for s in services],
        'pagination': build_pagination(spec.page, spec.limit, total),
        'searchMetadata': metadata,
    }
