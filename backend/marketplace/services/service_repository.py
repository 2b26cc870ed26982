"""
服务数据仓库 - 负责 MongoDB 查询构建与执行，以及本地数据回退

优先级:
1) 配置了 MONGO_URI 时查询 MongoDB（查询失败抛 SearchUnavailable，不回退）
2) 否则读取 DATA_PATH/services.json
3) 文件不存在时使用示例数据
"""

import json
import os
import re
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId

from flask import has_app_context
from pymongo import ASCENDING, DESCENDING, GEOSPHERE, MongoClient
from pymongo.errors import PyMongoError

from config import Config

from .. import mongo
from ..models.filter_spec import FilterSpec
from . import service_filters as filters
from . import service_sorting as sorting
from .env_utils import mask_mongo_uri, read_env
from .errors import SearchUnavailable

SERVICES_FILE_NAME = 'services.json'
PROVIDERS_COLLECTION = 'providerprofiles'
DEFAULT_DATABASE = 'marketplace'

# MongoDB connection
_mongo_client = None
_mongo_db = None


def _mongo_uri() -> str:
    return read_env('MONGO_URI')


def _mongo_uri_configured() -> bool:
    """Whether MONGO_URI is explicitly configured."""
    return bool(_mongo_uri())


def get_mongo_db():
    """Get MongoDB database (Flask-PyMongo inside a request, lazy client otherwise)."""
    global _mongo_client, _mongo_db
    if has_app_context() and mongo.db is not None:
        return mongo.db
    if not _mongo_uri_configured():
        return None
    if _mongo_db is not None:
        return _mongo_db
    _mongo_client = MongoClient(_mongo_uri(), serverSelectionTimeoutMS=3000)
    _mongo_db = _mongo_client.get_default_database(DEFAULT_DATABASE)
    print(f"  ✓ MongoDB client ready: {mask_mongo_uri(_mongo_uri())}")
    return _mongo_db


def reset_mongo_client():
    """Drop the lazily created client (used by tests and the sync CLI)."""
    global _mongo_client, _mongo_db
    if _mongo_client is not None:
        _mongo_client.close()
    _mongo_client = None
    _mongo_db = None


# 示例数据（当没有本地数据文件时使用）
SAMPLE_SERVICES = [
    {
        '_id': '1',
        'providerId': 'sample-provider-1',
        'name': 'Blowout & Styling',
        'category': 'Beauty & Wellness',
        'subcategory': 'Hair',
        'description': 'Professional blowout and styling for a polished, salon-fresh look.',
        'price': {'amount': 120, 'currency': 'AED', 'type': 'fixed'},
        'location': {
            'address': {'city': 'Dubai', 'state': 'Dubai', 'country': 'AE'},
            'coordinates': {'type': 'Point', 'coordinates': [55.2708, 25.2048]},
        },
        'rating': {'average': 4.8, 'count': 36},
        'isActive': True,
        'isPopular': True,
        'searchMetadata': {'searchKeywords': ['blowout', 'styling', 'hair'], 'popularityScore': 88},
        'createdAt': '2025-01-10T09:00:00+00:00',
    },
    {
        '_id': '2',
        'providerId': 'sample-provider-1',
        'name': 'Gel Manicure',
        'category': 'Beauty & Wellness',
        'subcategory': 'Nails',
        'description': 'Long-lasting gel manicure with cuticle care and nail shaping.',
        'price': {'amount': 80, 'currency': 'AED', 'type': 'fixed'},
        'location': {
            'address': {'city': 'Dubai', 'state': 'Dubai', 'country': 'AE'},
            'coordinates': {'type': 'Point', 'coordinates': [55.2744, 25.1972]},
        },
        'rating': {'average': 4.6, 'count': 21},
        'isActive': True,
        'searchMetadata': {'searchKeywords': ['gel', 'manicure', 'nails'], 'popularityScore': 74},
        'createdAt': '2025-02-02T09:00:00+00:00',
    },
    {
        '_id': '3',
        'providerId': 'sample-provider-2',
        'name': 'Deep Tissue Massage',
        'category': 'Beauty & Wellness',
        'subcategory': 'Massage',
        'description': 'Sixty minute deep tissue massage in the comfort of your home.',
        'price': {'amount': 300, 'currency': 'AED', 'type': 'fixed'},
        'location': {
            'address': {'city': 'Dubai', 'state': 'Dubai', 'country': 'AE'},
            'coordinates': {'type': 'Point', 'coordinates': [55.1394, 25.0657]},
        },
        'rating': {'average': 4.9, 'count': 52},
        'isActive': True,
        'isPopular': True,
        'searchMetadata': {'searchKeywords': ['massage', 'deep tissue', 'spa'], 'popularityScore': 91},
        'createdAt': '2024-12-18T09:00:00+00:00',
    },
    {
        '_id': '4',
        'providerId': 'sample-provider-3',
        'name': 'Personal Training Session',
        'category': 'Fitness & Personal Health',
        'subcategory': 'Personal Training',
        'description': 'One-to-one strength and conditioning session with a certified trainer.',
        'price': {'amount': 250, 'currency': 'AED', 'type': 'hourly'},
        'location': {
            'address': {'city': 'Dubai', 'state': 'Dubai', 'country': 'AE'},
            'coordinates': {'type': 'Point', 'coordinates': [55.1562, 25.0805]},
        },
        'rating': {'average': 4.7, 'count': 18},
        'isActive': True,
        'searchMetadata': {'searchKeywords': ['training', 'fitness', 'gym'], 'popularityScore': 65},
        'createdAt': '2025-03-01T09:00:00+00:00',
    },
    {
        '_id': '5',
        'providerId': 'sample-provider-4',
        'name': 'Apartment Deep Cleaning',
        'category': 'Home & Maintenance',
        'subcategory': 'Cleaning',
        'description': 'Top-to-bottom cleaning for apartments up to three bedrooms.',
        'price': {'amount': 400, 'currency': 'AED', 'type': 'fixed'},
        'location': {
            'address': {'city': 'Abu Dhabi', 'state': 'Abu Dhabi', 'country': 'AE'},
            'coordinates': {'type': 'Point', 'coordinates': [54.3773, 24.4539]},
        },
        'rating': {'average': 4.4, 'count': 12},
        'isActive': True,
        'searchMetadata': {'searchKeywords': ['cleaning', 'apartment', 'deep clean'], 'popularityScore': 58},
        'createdAt': '2025-01-22T09:00:00+00:00',
    },
    {
        '_id': '6',
        'providerId': 'sample-provider-5',
        'name': 'Home Nurse Visit',
        'category': 'Mobile Medical Care',
        'subcategory': 'Nursing',
        'description': 'Registered nurse home visit for wound care, injections and checkups.',
        'price': {'amount': 350, 'currency': 'AED', 'type': 'fixed'},
        'location': {
            'address': {'city': 'Dubai', 'state': 'Dubai', 'country': 'AE'},
            'coordinates': {'type': 'Point', 'coordinates': [55.3047, 25.2285]},
        },
        'rating': {'average': 0, 'count': 0},
        'isActive': False,
        'searchMetadata': {'searchKeywords': ['nurse', 'medical', 'home visit'], 'popularityScore': 12},
        'createdAt': '2025-03-12T09:00:00+00:00',
    },
]


def _exact_ci(value: str) -> Dict[str, str]:
    """忽略大小写的完全匹配"""
    return {'$regex': f'^{re.escape(value)}$', '$options': 'i'}


def _contains_ci(value: str) -> Dict[str, str]:
    return {'$regex': re.escape(value), '$options': 'i'}


def build_match_query(spec: FilterSpec, include_geo: bool = True) -> Dict[str, Any]:
    """FilterSpec -> MongoDB 查询条件（各条件 AND 组合）"""
    query: Dict[str, Any] = {'isActive': True}

    if spec.category is not None:
        query['category'] = _exact_ci(spec.category)
        if spec.subcategory is not None:
            query['subcategory'] = _exact_ci(spec.subcategory)

    keyword = spec.search_text
    if keyword:
        pattern = _contains_ci(keyword)
        query['$or'] = [
            {'name': pattern},
            {'description': pattern},
            {'searchMetadata.searchKeywords': pattern},
        ]

    # 价格上下限按字面应用，不交换颠倒的区间
    price: Dict[str, float] = {}
    if spec.min_price is not None:
        price['$gte'] = spec.min_price
    if spec.max_price is not None:
        price['$lte'] = spec.max_price
    if price:
        query['price.amount'] = price

    if spec.min_rating is not None:
        query['rating.average'] = {'$gte': spec.min_rating}

    if spec.city is not None:
        query['location.address.city'] = _exact_ci(spec.city)
    if spec.state is not None:
        query['location.address.state'] = _exact_ci(spec.state)

    if include_geo and spec.has_coordinates:
        query['location.coordinates'] = {
            '$geoWithin': {
                '$centerSphere': [[spec.lng, spec.lat], spec.radius_km / filters.EARTH_RADIUS_KM]
            }
        }

    return query


def build_geo_near_stage(spec: FilterSpec) -> Dict[str, Any]:
    """$geoNear 阶段（必须是管道第一阶段），输出 distance（米）"""
    return {
        '$geoNear': {
            'near': {'type': 'Point', 'coordinates': [spec.lng, spec.lat]},
            'key': 'location.coordinates',
            'distanceField': 'distance',
            'maxDistance': spec.radius_km * 1000,
            'spherical': True,
            'query': build_match_query(spec, include_geo=False),
        }
    }


def build_geo_near_pipeline(spec: FilterSpec) -> List[Dict[str, Any]]:
    """distance 排序的分页管道"""
    return [
        build_geo_near_stage(spec),
        {'$sort': dict(sorting.build_sort_spec(spec))},
        {'$skip': spec.skip},
        {'$limit': spec.limit},
    ]


def build_geo_near_count_pipeline(spec: FilterSpec) -> List[Dict[str, Any]]:
    """与分页管道共用同一个 $geoNear 阶段计数，总数与各页结果一致"""
    return [build_geo_near_stage(spec), {'$count': 'total'}]


class ServiceRepository:
    """服务数据仓库类 - 查询执行与本地数据加载"""

    @staticmethod
    def _collection():
        db = get_mongo_db()
        return db.services if db is not None else None

    @classmethod
    def search(cls, spec: FilterSpec) -> Dict[str, Any]:
        """执行搜索，返回 {'services': 当前页, 'total': 总数}"""
        collection = cls._collection()
        if collection is None:
            return cls._search_local(spec)
        return cls._search_mongodb(collection, spec)

    @classmethod
    def _search_mongodb(cls, collection, spec: FilterSpec) -> Dict[str, Any]:
        match = build_match_query(spec)
        timeout = Config.SEARCH_QUERY_TIMEOUT_MS
        try:
            if spec.effective_sort == 'distance':
                counted = list(collection.aggregate(build_geo_near_count_pipeline(spec), maxTimeMS=timeout))
                total = counted[0]['total'] if counted else 0
                services = list(collection.aggregate(build_geo_near_pipeline(spec), maxTimeMS=timeout))
                for service in services:
                    service['distance'] = round(float(service.get('distance') or 0) / 1000, 2)
            else:
                total = collection.count_documents(match, maxTimeMS=timeout)
                cursor = (
                    collection.find(match)
                    .sort(sorting.build_sort_spec(spec))
                    .skip(spec.skip)
                    .limit(spec.limit)
                    .max_time_ms(timeout)
                )
                services = list(cursor)
        except PyMongoError as e:
            print(f"  ⚠ MongoDB search failed: {e}")
            raise SearchUnavailable('Search operation failed', detail=str(e)) from e
        return {'services': services, 'total': total}

    @classmethod
    def _search_local(cls, spec: FilterSpec) -> Dict[str, Any]:
        results = filters.filter_services(cls.load_services(), spec)
        results = sorting.sort_services(results, spec)
        total = len(results)
        start = min(spec.skip, total)
        return {'services': results[start:start + spec.limit], 'total': total}

    @classmethod
    def load_services(cls) -> List[Dict[str, Any]]:
        """从本地数据文件加载服务 (DATA_PATH/services.json)，不存在时使用示例数据"""
        path = os.path.join(Config.DATA_PATH, SERVICES_FILE_NAME)
        if not os.path.exists(path):
            return [dict(s) for s in SAMPLE_SERVICES]

        try:
            with open(path, 'r', encoding='utf-8') as f:
                services = json.load(f)
        except (OSError, ValueError) as e:
            print(f"  ⚠ 加载本地服务数据失败: {e}")
            raise SearchUnavailable('Local service data is unreadable', detail=str(e)) from e

        if isinstance(services, dict):
            services = services.get('services') or []
        for i, s in enumerate(services):
            if '_id' not in s:
                s['_id'] = str(i + 1)
        return services

    # ========== 联想 / 统计 ==========

    @classmethod
    def suggest_service_names(cls, keyword: str, limit: int) -> List[str]:
        """名称包含关键词的服务名，按出现次数降序"""
        if limit <= 0:
            return []
        collection = cls._collection()
        if collection is None:
            counts: Dict[str, int] = defaultdict(int)
            for service in cls.load_services():
                if service.get('isActive') is True and keyword.lower() in str(service.get('name') or '').lower():
                    counts[service['name']] += 1
            ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
            return [name for name, _ in ranked[:limit]]

        pipeline = [
            {'$match': {'isActive': True, 'name': _contains_ci(keyword)}},
            {'$group': {'_id': '$name', 'count': {'$sum': 1}}},
            {'$sort': {'count': -1, '_id': 1}},
            {'$limit': limit},
        ]
        try:
            return [row['_id'] for row in collection.aggregate(pipeline)]
        except PyMongoError as e:
            raise SearchUnavailable('Failed to get search suggestions', detail=str(e)) from e

    @classmethod
    def related_terms(cls, keyword: str, limit: int = 5) -> List[str]:
        """零结果时的推荐词：匹配服务的名称、分类、标签"""
        collection = cls._collection()
        if collection is None:
            docs = [
                s for s in cls.load_services()
                if s.get('isActive') is True and _mentions(s, keyword)
            ]
        else:
            pattern = _contains_ci(keyword)
            try:
                docs = list(collection.find(
                    {
                        'isActive': True,
                        '$or': [{'name': pattern}, {'category': pattern}, {'tags': pattern}],
                    },
                    {'name': 1, 'category': 1, 'tags': 1},
                ).limit(50))
            except PyMongoError as e:
                raise SearchUnavailable('Failed to build suggestions', detail=str(e)) from e

        terms: List[str] = []
        for field in ('name', 'category', 'tags'):
            for doc in docs:
                values = doc.get(field) or []
                if isinstance(values, str):
                    values = [values]
                for value in values:
                    if value and value not in terms:
                        terms.append(value)
        return terms[:limit]

    @classmethod
    def count_in_category(cls, category_name: str) -> int:
        collection = cls._collection()
        if collection is None:
            target = category_name.lower()
            return sum(
                1 for s in cls.load_services()
                if s.get('isActive') is True and str(s.get('category') or '').lower() == target
            )
        try:
            return collection.count_documents({'isActive': True, 'category': _exact_ci(category_name)})
        except PyMongoError as e:
            raise SearchUnavailable('Failed to count category services', detail=str(e)) from e

    @classmethod
    def filter_facets(cls, spec: FilterSpec) -> Dict[str, Any]:
        """分类分布、价格区间、平均评分（可选地理范围）"""
        collection = cls._collection()
        if collection is None:
            docs = filters.filter_services(cls.load_services(), spec)
        else:
            try:
                docs = list(collection.find(
                    build_match_query(spec),
                    {'category': 1, 'price.amount': 1, 'rating': 1},
                ))
            except PyMongoError as e:
                raise SearchUnavailable('Failed to get search filters', detail=str(e)) from e
        return summarize_facets(docs)

    # ========== 榜单 / 详情 / 分类统计 ==========

    @classmethod
    def _ranked(cls, match: Dict[str, Any], local_match, sort_fields, limit: int,
                failure: str) -> List[Dict[str, Any]]:
        collection = cls._collection()
        if collection is None:
            docs = [s for s in cls.load_services() if local_match(s)]
            return sorting.sort_by_fields(docs, sort_fields)[:limit]
        try:
            cursor = collection.find(match).sort(sort_fields + [sorting.TIE_BREAK]).limit(limit)
            return list(cursor)
        except PyMongoError as e:
            print(f"  ⚠ MongoDB {failure.lower()}: {e}")
            raise SearchUnavailable(failure, detail=str(e)) from e

    @classmethod
    def popular_services(cls, limit: int, category: Optional[str] = None) -> List[Dict[str, Any]]:
        """isPopular 标记的服务，按热度、评分降序"""
        match: Dict[str, Any] = {'isActive': True, 'isPopular': True}
        if category:
            match['category'] = _exact_ci(category)

        def local_match(service: Dict[str, Any]) -> bool:
            if service.get('isActive') is not True or service.get('isPopular') is not True:
                return False
            return not category or str(service.get('category') or '').lower() == category.lower()

        return cls._ranked(match, local_match, sorting.POPULAR_SORT, limit,
                           'Failed to get popular services')

    @classmethod
    def trending_services(cls, limit: int, since: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """最近被搜索过的服务（since 为空时不限时间）"""
        match: Dict[str, Any] = {'isActive': True}
        if since is not None:
            match['searchMetadata.lastSearched'] = {'$gte': since}

        def local_match(service: Dict[str, Any]) -> bool:
            if service.get('isActive') is not True:
                return False
            if since is None:
                return True
            last = (service.get('searchMetadata') or {}).get('lastSearched')
            return last is not None and sorting._to_datetime(last) >= since

        return cls._ranked(match, local_match, sorting.TRENDING_SORT, limit,
                           'Failed to get trending services')

    @classmethod
    def find_service(cls, service_id: str) -> Optional[Dict[str, Any]]:
        collection = cls._collection()
        if collection is None:
            return next((s for s in cls.load_services() if str(s.get('_id')) == service_id), None)

        candidates: List[Any] = [service_id]
        if ObjectId.is_valid(service_id):
            candidates.append(ObjectId(service_id))
        try:
            return collection.find_one({'_id': {'$in': candidates}})
        except PyMongoError as e:
            raise SearchUnavailable('Failed to get service', detail=str(e)) from e

    @classmethod
    def find_provider_profile(cls, provider_id: Any) -> Optional[Dict[str, Any]]:
        """服务商档案（本地数据没有服务商集合，返回 None）"""
        db = get_mongo_db()
        if db is None or provider_id is None:
            return None
        try:
            return db[PROVIDERS_COLLECTION].find_one(
                {'userId': provider_id},
                {'businessInfo': 1, 'rating': 1, 'instagramStyleProfile.profilePhoto': 1},
            )
        except PyMongoError as e:
            raise SearchUnavailable('Failed to get provider', detail=str(e)) from e

    @classmethod
    def category_counts(cls) -> Dict[str, int]:
        """有效服务数量，按分类名（小写）汇总"""
        collection = cls._collection()
        counts: Dict[str, int] = defaultdict(int)
        if collection is None:
            for service in cls.load_services():
                if service.get('isActive') is True:
                    counts[str(service.get('category') or '').lower()] += 1
            return dict(counts)

        pipeline = [
            {'$match': {'isActive': True}},
            {'$group': {'_id': '$category', 'count': {'$sum': 1}}},
        ]
        try:
            for row in collection.aggregate(pipeline):
                counts[str(row['_id'] or '').lower()] += row['count']
        except PyMongoError as e:
            raise SearchUnavailable('Failed to get category stats', detail=str(e)) from e
        return dict(counts)


def _mentions(service: Dict[str, Any], keyword: str) -> bool:
    needle = keyword.lower()
    tags = service.get('tags') or []
    haystack = [service.get('name'), service.get('category')] + list(tags)
    return any(needle in str(value or '').lower() for value in haystack)


def summarize_facets(docs: List[Dict[str, Any]]) -> Dict[str, Any]:
    by_category: Dict[str, Dict[str, Any]] = {}
    prices: List[float] = []
    ratings: List[float] = []

    for doc in docs:
        price = filters._to_number((doc.get('price') or {}).get('amount'))
        rating = filters._to_number((doc.get('rating') or {}).get('average'))
        name = doc.get('category') or 'Other'
        bucket = by_category.setdefault(name, {'count': 0, 'prices': [], 'ratings': []})
        bucket['count'] += 1
        if price is not None:
            prices.append(price)
            bucket['prices'].append(price)
        if rating is not None:
            ratings.append(rating)
            bucket['ratings'].append(rating)

    def _avg(values: List[float]) -> float:
        return sum(values) / len(values) if values else 0.0

    categories = [
        {
            'name': name,
            'count': bucket['count'],
            'avgPrice': round(_avg(bucket['prices'])),
            'avgRating': round(_avg(bucket['ratings']), 1),
        }
        for name, bucket in by_category.items()
    ]
    categories.sort(key=lambda c: (-c['count'], c['name']))

    return {
        'categories': categories,
        'priceRange': {
            'min': min(prices) if prices else 0,
            'max': max(prices) if prices else 500,
            'average': round(_avg(prices)),
        },
        'averageRating': round(_avg(ratings), 1),
    }


def ensure_search_indexes(collection) -> List[str]:
    """$geoNear / $geoWithin 需要 2dsphere 索引"""
    return [
        collection.create_index([('location.coordinates', GEOSPHERE)], name='location_2dsphere'),
        collection.create_index(
            [('isActive', ASCENDING), ('category', ASCENDING), ('subcategory', ASCENDING)],
            name='active_category',
        ),
        collection.create_index([('searchMetadata.popularityScore', DESCENDING)], name='popularity'),
    ]
