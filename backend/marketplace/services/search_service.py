"""
搜索服务 - 高级业务逻辑层

本模块只包含业务编排，底层实现委托给:
- service_filters: 参数规范化与本地筛选
- service_sorting: 排序规则
- service_repository: 查询构建与执行（MongoDB / 本地数据）
- category_registry: 分类查找
- presenters: 响应结构
"""

import time
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional

from ..models.filter_spec import MIN_QUERY_LENGTH, FilterSpec
from . import category_registry
from . import presenters
from . import service_filters as filters
from .errors import CategoryNotFound, ServiceNotFound
from .service_repository import ServiceRepository

DEFAULT_SUGGESTION_LIMIT = 10
TRENDING_TIMEFRAMES = {'1d': 1, '7d': 7, '30d': 30}


class SearchService:
    """搜索服务类"""

    @staticmethod
    def search_services(raw: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """
        搜索服务

        raw 为客户端原始参数（q, category, subcategory, minPrice, maxPrice,
        minRating, city, state, lat, lng, radius, sortBy, page, limit），
        非法值回退默认值，不会因参数报错。
        """
        spec = filters.normalize_filters(raw)
        return SearchService._run(spec)

    @staticmethod
    def get_services_by_category(slug: str, raw: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """分类页：与搜索相同的筛选 / 排序 / 分页，分类由路径中的 slug 决定"""
        category = category_registry.get_by_slug(slug)
        if category is None:
            raise CategoryNotFound(f'Category not found: {slug}')
        spec = replace(filters.normalize_filters(raw), category=category.name)
        response = SearchService._run(spec)
        response['category'] = category.to_dict(include_subcategories=False)
        return response

    @staticmethod
    def _run(spec) -> Dict[str, Any]:
        started = time.perf_counter()
        result = ServiceRepository.search(spec)
        total = result['total']

        suggestions: List[str] = []
        if total == 0 and spec.search_text:
            suggestions = presenters.build_suggestions(
                ServiceRepository.related_terms(spec.search_text),
                spec.query,
            )

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        return presenters.build_search_response(
            result['services'], total, spec, elapsed_ms, suggestions
        )

    @staticmethod
    def get_suggestions(q: str, limit: int = DEFAULT_SUGGESTION_LIMIT) -> List[Dict[str, str]]:
        """搜索联想：服务名优先，其次分类名"""
        keyword = (q or '').strip()
        if len(keyword) < MIN_QUERY_LENGTH or limit <= 0:
            return []

        suggestions = [
            {'text': name, 'type': 'service'}
            for name in ServiceRepository.suggest_service_names(keyword, limit)
        ]
        for match in category_registry.search_categories(keyword, limit=limit):
            if len(suggestions) >= limit:
                break
            if match['type'] == 'category':
                suggestions.append({'text': match['name'], 'type': 'category'})
        return suggestions[:limit]

    @staticmethod
    def get_search_filters(raw: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """筛选面板元数据；传入 lat/lng 时只统计半径内的服务"""
        spec = filters.normalize_filters(raw)
        # 只保留地理范围，其余筛选不影响面板统计
        scoped = FilterSpec(lat=spec.lat, lng=spec.lng, radius_km=spec.radius_km)
        facets = ServiceRepository.filter_facets(scoped)
        facets['sortOptions'] = [
            {'value': 'popularity', 'label': 'Most Popular'},
            {'value': 'rating', 'label': 'Highest Rated'},
            {'value': 'price', 'label': 'Price: Low to High'},
            {'value': 'price_desc', 'label': 'Price: High to Low'},
            {'value': 'distance', 'label': 'Nearest'},
            {'value': 'newest', 'label': 'Newest'},
        ]
        return facets

    # ========== 分类 ==========

    @staticmethod
    def list_categories(featured_only: bool = False, epoch: Optional[str] = None) -> List[Dict[str, Any]]:
        return [c.to_dict() for c in category_registry.list_categories(featured_only, epoch)]

    @staticmethod
    def get_category_detail(slug: str) -> Dict[str, Any]:
        category = category_registry.get_by_slug(slug)
        if category is None:
            raise CategoryNotFound(f'Category not found: {slug}')
        detail = category.to_dict()
        detail['serviceCount'] = ServiceRepository.count_in_category(category.name)
        return detail

    @staticmethod
    def search_categories(q: str, limit: int = 10) -> List[Dict[str, str]]:
        return category_registry.search_categories(q, limit=limit)

    # ========== 榜单 / 详情 ==========

    @staticmethod
    def get_popular_services(limit: int = 10, category: Optional[str] = None) -> List[Dict[str, Any]]:
        """热门服务（isPopular），可按分类名或 slug 过滤"""
        if category:
            category = category_registry.canonical_name(category) or category
        docs = ServiceRepository.popular_services(limit, category=category)
        return [presenters.present_service(doc) for doc in docs]

    @staticmethod
    def get_trending_services(limit: int = 10, timeframe: str = '7d') -> List[Dict[str, Any]]:
        """最近一段时间被搜索过的服务；未知 timeframe 按 7d 处理"""
        days = TRENDING_TIMEFRAMES.get(timeframe, TRENDING_TIMEFRAMES['7d'])
        since = datetime.now(timezone.utc) - timedelta(days=days)
        docs = ServiceRepository.trending_services(limit, since=since)
        return [presenters.present_service(doc) for doc in docs]

    @staticmethod
    def get_service_detail(service_id: str) -> Dict[str, Any]:
        doc = ServiceRepository.find_service(service_id)
        if doc is None:
            raise ServiceNotFound(f'Service not found: {service_id}')

        service = presenters.present_service(doc)
        profile = ServiceRepository.find_provider_profile(doc.get('providerId')) or {}
        business = profile.get('businessInfo') or {}
        service['provider'] = presenters.to_json_safe({
            'id': doc.get('providerId'),
            'businessName': business.get('businessName') or 'Business',
            'businessType': business.get('businessType') or 'individual',
            'rating': profile.get('rating') or {'average': 0, 'count': 0},
            'profilePhoto': (profile.get('instagramStyleProfile') or {}).get('profilePhoto'),
        })
        return service

    @staticmethod
    def get_category_stats() -> List[Dict[str, Any]]:
        """每个分类的有效服务数"""
        counts = ServiceRepository.category_counts()
        return [
            {
                'name': category.name,
                'slug': category.slug,
                'icon': category.icon,
                'epoch': category.epoch,
                'serviceCount': counts.get(category.name.lower(), 0),
            }
            for category in category_registry.list_categories()
        ]

    @staticmethod
    def get_subcategories(slug: str) -> List[Dict[str, str]]:
        category = category_registry.get_by_slug(slug)
        if category is None:
            raise CategoryNotFound(f'Category not found: {slug}')
        return category.subcategory_list()
