"""MongoDB query / sort / pipeline construction from a FilterSpec."""

import re

from marketplace.models.filter_spec import FilterSpec
from marketplace.services.service_filters import EARTH_RADIUS_KM, normalize_filters
from marketplace.services.service_repository import build_geo_near_pipeline, build_match_query
from marketplace.services.service_sorting import build_sort_spec


def test_empty_spec_only_requires_active():
    assert build_match_query(FilterSpec()) == {'isActive': True}


def test_category_and_subcategory_are_exact_case_insensitive():
    query = build_match_query(normalize_filters({'category': 'beauty-wellness', 'subcategory': 'Hair'}))
    assert query['category'] == {'$regex': f"^{re.escape('Beauty & Wellness')}$", '$options': 'i'}
    assert query['subcategory'] == {'$regex': '^Hair$', '$options': 'i'}


def test_subcategory_without_category_is_ignored():
    query = build_match_query(normalize_filters({'subcategory': 'Hair'}))
    assert 'subcategory' not in query


def test_keyword_matches_name_description_and_keywords():
    query = build_match_query(normalize_filters({'q': 'gel (nails)'}))
    pattern = {'$regex': re.escape('gel (nails)'), '$options': 'i'}
    assert query['$or'] == [
        {'name': pattern},
        {'description': pattern},
        {'searchMetadata.searchKeywords': pattern},
    ]


def test_short_keyword_adds_no_clause():
    assert '$or' not in build_match_query(normalize_filters({'q': 'a'}))


def test_inverted_price_bounds_are_applied_literally():
    query = build_match_query(normalize_filters({'minPrice': 100, 'maxPrice': 50}))
    assert query['price.amount'] == {'$gte': 100.0, '$lte': 50.0}


def test_rating_city_state_clauses():
    query = build_match_query(normalize_filters({'minRating': '4.5', 'city': 'dubai', 'state': 'Dubai'}))
    assert query['rating.average'] == {'$gte': 4.5}
    assert query['location.address.city'] == {'$regex': '^dubai$', '$options': 'i'}
    assert query['location.address.state'] == {'$regex': '^Dubai$', '$options': 'i'}


def test_geo_clause_requires_both_coordinates():
    assert 'location.coordinates' not in build_match_query(normalize_filters({'lat': 25.2}))

    query = build_match_query(normalize_filters({'lat': 25.2, 'lng': 55.3, 'radius': 10}))
    assert query['location.coordinates'] == {
        '$geoWithin': {'$centerSphere': [[55.3, 25.2], 10.0 / EARTH_RADIUS_KM]}
    }


def test_sort_spec_always_ends_with_id_tie_break():
    for sort_by, first in [
        ('popularity', ('searchMetadata.popularityScore', -1)),
        ('rating', ('rating.average', -1)),
        ('price', ('price.amount', 1)),
        ('price_desc', ('price.amount', -1)),
        ('newest', ('createdAt', -1)),
    ]:
        assert build_sort_spec(normalize_filters({'sortBy': sort_by})) == [first, ('_id', 1)]


def test_distance_sort_spec():
    assert build_sort_spec(normalize_filters({'sortBy': 'distance'})) == [
        ('searchMetadata.popularityScore', -1), ('_id', 1),
    ]
    spec = normalize_filters({'sortBy': 'distance', 'lat': 25.2, 'lng': 55.3})
    assert build_sort_spec(spec) == [('distance', 1), ('_id', 1)]


def test_geo_near_pipeline_is_first_stage():
    spec = normalize_filters({
        'sortBy': 'distance', 'lat': 25.2, 'lng': 55.3, 'radius': 10,
        'category': 'beauty-wellness', 'page': 2, 'limit': 10,
    })
    pipeline = build_geo_near_pipeline(spec)
    geo_near = pipeline[0]['$geoNear']
    assert geo_near['near'] == {'type': 'Point', 'coordinates': [55.3, 25.2]}
    assert geo_near['maxDistance'] == 10000.0
    assert geo_near['spherical'] is True
    assert 'location.coordinates' not in geo_near['query']
    assert geo_near['query']['isActive'] is True
    assert pipeline[1:] == [
        {'$sort': {'distance': 1, '_id': 1}},
        {'$skip': 10},
        {'$limit': 10},
    ]
