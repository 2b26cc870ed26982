from flask import Blueprint, jsonify, request
from marketplace.services.search_service import SearchService

search_bp = Blueprint('search', __name__)


def _parse_positive_int(raw_value, default: int, minimum: int, maximum: int) -> int:
    """Parse int query params with guard rails."""
    try:
        parsed = int(raw_value)
    except (TypeError, ValueError):
        return default
    return max(minimum, min(maximum, parsed))


@search_bp.route('', methods=['GET'])
@search_bp.route('/', methods=['GET'])
@search_bp.route('/services', methods=['GET'])
def search_services():
    """
    搜索服务

    Query Parameters:
    - q: 搜索关键词（少于 2 个字符不参与匹配）
    - category / subcategory: 分类名或 slug
    - minPrice / maxPrice / minRating
    - city / state
    - lat / lng / radius: 地理范围（公里，默认 25）
    - sortBy: popularity/rating/price/price_desc/distance/newest
    - page: 页码
    - limit: 每页数量 (10/20/50)
    """
    # 参数规范化在服务层完成，非法参数不会报错
    results = SearchService.search_services(request.args.to_dict())
    return jsonify({
        'success': True,
        'data': results,
        'message': '搜索成功'
    })


@search_bp.route('/suggestions', methods=['GET'])
def get_search_suggestions():
    """搜索联想"""
    q = request.args.get('q', '').strip()
    limit = _parse_positive_int(request.args.get('limit', 10), default=10, minimum=1, maximum=20)
    suggestions = SearchService.get_suggestions(q, limit=limit)
    return jsonify({
        'success': True,
        'data': {'suggestions': suggestions}
    })


@search_bp.route('/filters', methods=['GET'])
def get_search_filters():
    """筛选面板元数据（分类分布、价格区间、平均评分）"""
    facets = SearchService.get_search_filters(request.args.to_dict())
    return jsonify({
        'success': True,
        'data': facets
    })


@search_bp.route('/popular', methods=['GET'])
def get_popular_services():
    """热门服务（category 可选，名称或 slug）"""
    limit = _parse_positive_int(request.args.get('limit', 10), default=10, minimum=1, maximum=50)
    category = request.args.get('category', '').strip() or None
    services = SearchService.get_popular_services(limit=limit, category=category)
    return jsonify({
        'success': True,
        'data': {'services': services, 'total': len(services)}
    })


@search_bp.route('/trending', methods=['GET'])
def get_trending_services():
    """
    趋势服务

    Query Parameters:
    - timeframe: 1d / 7d / 30d（默认 7d）
    - limit: 返回数量 (1-50)
    """
    limit = _parse_positive_int(request.args.get('limit', 10), default=10, minimum=1, maximum=50)
    timeframe = request.args.get('timeframe', '7d').strip().lower()
    services = SearchService.get_trending_services(limit=limit, timeframe=timeframe)
    return jsonify({
        'success': True,
        'data': {'services': services, 'timeframe': timeframe, 'total': len(services)}
    })


@search_bp.route('/service/<service_id>', methods=['GET'])
def get_service(service_id):
    """服务详情（含服务商摘要）；不存在返回 404"""
    service = SearchService.get_service_detail(service_id)
    return jsonify({
        'success': True,
        'data': service
    })
