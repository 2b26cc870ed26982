"""Search behavior over the local data path, plus the MongoDB execution path with mocks."""

import json
from datetime import datetime, timedelta, timezone
from unittest import mock

import pytest
from bson import ObjectId
from pymongo.errors import PyMongoError, ServerSelectionTimeoutError

from marketplace.services import service_repository
from marketplace.services.errors import CategoryNotFound, SearchUnavailable, ServiceNotFound
from marketplace.services.search_service import SearchService
from marketplace.services.service_filters import normalize_filters
from marketplace.services.service_repository import SAMPLE_SERVICES, ServiceRepository


@pytest.fixture
def beauty_services(make_service, use_services):
    # Prices deliberately out of order: 150, 140, ..., 10
    docs = [
        make_service(f'b{i:02d}', f'Beauty Service {i}', price=150 - i * 10)
        for i in range(15)
    ]
    docs.append(make_service('f01', 'Yoga Class', category='Fitness & Personal Health', price=5))
    docs.append(make_service('x01', 'Retired Facial', price=1, is_active=False))
    return use_services(docs)


def _ids(response):
    return [s['_id'] for s in response['services']]


def test_category_price_sort_first_page(beauty_services):
    response = SearchService.search_services({
        'category': 'beauty-wellness', 'sortBy': 'price', 'page': 1, 'limit': 10,
    })
    prices = [s['price']['amount'] for s in response['services']]
    assert len(prices) == 10
    assert prices == sorted(prices)
    assert prices[0] == 10
    assert response['pagination']['total'] == 15
    assert response['pagination']['pages'] == 2
    assert response['pagination']['hasNext'] is True
    assert response['pagination']['nextPage'] == 2
    assert response['pagination']['hasPrev'] is False


def test_inactive_services_never_returned(beauty_services):
    response = SearchService.search_services({'limit': 50})
    assert 'x01' not in _ids(response)
    assert response['pagination']['total'] == 16


def test_inverted_price_range_returns_empty(beauty_services):
    response = SearchService.search_services({'minPrice': 100, 'maxPrice': 50})
    assert response['services'] == []
    assert response['pagination']['total'] == 0
    assert response['pagination']['pages'] == 0


def test_unknown_category_is_empty_not_error(beauty_services):
    response = SearchService.search_services({'category': 'underwater-welding'})
    assert response['pagination']['total'] == 0


def test_pages_partition_the_result_set(make_service, use_services):
    # Many ties on popularity so ordering depends on the _id tie-break
    docs = [make_service(f's{i:02d}', f'Service {i}', popularity=i % 3) for i in range(25)]
    use_services(docs)

    seen = []
    for page in (1, 2, 3):
        response = SearchService.search_services({'page': page, 'limit': 10})
        seen.extend(_ids(response))
    assert len(seen) == 25
    assert set(seen) == {d['_id'] for d in docs}

    # Page past the end is empty but still reports the total
    past = SearchService.search_services({'page': 4, 'limit': 10})
    assert past['services'] == []
    assert past['pagination']['total'] == 25


def test_popularity_ties_break_by_id(make_service, use_services):
    use_services([
        make_service('c', 'C', popularity=5),
        make_service('a', 'A', popularity=5),
        make_service('b', 'B', popularity=9),
    ])
    assert _ids(SearchService.search_services({})) == ['b', 'a', 'c']


def test_distance_sort_respects_radius(make_service, use_services):
    use_services([
        make_service('near', 'Near Salon', lat=25.218, lng=55.3),
        make_service('far', 'Far Salon', lat=25.65, lng=55.3),
    ])
    response = SearchService.search_services({
        'lat': 25.2, 'lng': 55.3, 'radius': 10, 'sortBy': 'distance',
    })
    assert _ids(response) == ['near']
    assert response['services'][0]['distance'] == pytest.approx(2.0, abs=0.05)

    wide = SearchService.search_services({'lat': 25.2, 'lng': 55.3, 'radius': 100, 'sortBy': 'distance'})
    assert _ids(wide) == ['near', 'far']


def test_distance_sort_without_coordinates_uses_popularity(make_service, use_services):
    use_services([
        make_service('low', 'Low', popularity=1),
        make_service('high', 'High', popularity=50),
    ])
    response = SearchService.search_services({'sortBy': 'distance'})
    assert _ids(response) == ['high', 'low']
    assert 'distance' not in response['services'][0]


def test_city_filter_is_case_insensitive(make_service, use_services):
    use_services([
        make_service('dxb', 'Dubai Nails', city='Dubai'),
        make_service('auh', 'Abu Dhabi Nails', city='Abu Dhabi'),
    ])
    assert _ids(SearchService.search_services({'city': 'DUBAI'})) == ['dxb']


def test_keyword_matches_search_keywords(make_service, use_services):
    use_services([
        make_service('1', 'Blowout', keywords=['styling', 'hair']),
        make_service('2', 'Manicure', description='Gel polish'),
    ])
    assert _ids(SearchService.search_services({'q': 'STYL'})) == ['1']
    assert _ids(SearchService.search_services({'q': 'gel'})) == ['2']


def test_search_metadata_and_zero_result_suggestions(make_service, use_services):
    use_services([
        make_service('1', 'Hair Color', price=300, tags=['hair dye']),
        make_service('2', 'Hair Cut', price=150),
    ])
    response = SearchService.search_services({'q': 'hair', 'maxPrice': 10})
    metadata = response['searchMetadata']
    assert metadata['query'] == 'hair'
    assert metadata['resultCount'] == 0
    assert isinstance(metadata['searchTime'], int)
    assert 'Hair Color' in metadata['suggestions']
    assert len(metadata['suggestions']) <= 5

    found = SearchService.search_services({'q': 'hair'})
    assert 'suggestions' not in found['searchMetadata']


def test_category_services_scopes_to_slug(beauty_services):
    response = SearchService.get_services_by_category('fitness-personal-health', {'category': 'beauty'})
    assert _ids(response) == ['f01']
    assert response['category']['slug'] == 'fitness-personal-health'


def test_category_services_unknown_slug_raises(beauty_services):
    with pytest.raises(CategoryNotFound):
        SearchService.get_services_by_category('underwater-welding', {})


def test_category_detail_counts_active_services(beauty_services):
    detail = SearchService.get_category_detail('beauty-wellness')
    assert detail['serviceCount'] == 15
    assert detail['subcategories']
    with pytest.raises(CategoryNotFound):
        SearchService.get_category_detail('nope')


def test_suggestions(make_service, use_services):
    use_services([
        make_service('1', 'Massage Therapy'),
        make_service('2', 'Massage Therapy'),
        make_service('3', 'Sports Massage'),
        make_service('4', 'Hidden Massage', is_active=False),
    ])
    suggestions = SearchService.get_suggestions('mass', limit=5)
    assert suggestions[0] == {'text': 'Massage Therapy', 'type': 'service'}
    assert {'text': 'Sports Massage', 'type': 'service'} in suggestions
    assert all(s['text'] != 'Hidden Massage' for s in suggestions)
    assert SearchService.get_suggestions('m') == []


def test_search_filters_facets(beauty_services):
    facets = SearchService.get_search_filters({})
    assert facets['priceRange']['min'] == 5
    assert facets['priceRange']['max'] == 150
    beauty = next(c for c in facets['categories'] if c['name'] == 'Beauty & Wellness')
    assert beauty['count'] == 15
    assert any(option['value'] == 'distance' for option in facets['sortOptions'])


def test_local_json_file_is_preferred_over_samples(local_store, make_service):
    path = local_store / 'services.json'
    path.write_text(json.dumps([make_service('j1', 'From File')]), encoding='utf-8')
    docs = ServiceRepository.load_services()
    assert [d['name'] for d in docs] == ['From File']


def test_sample_services_used_without_data_file():
    docs = ServiceRepository.load_services()
    assert len(docs) == len(SAMPLE_SERVICES)
    response = SearchService.search_services({'category': 'beauty-wellness'})
    assert response['pagination']['total'] == 3


def test_popular_services_from_samples():
    services = SearchService.get_popular_services(limit=10)
    assert [s['_id'] for s in services] == ['3', '1']

    by_slug = SearchService.get_popular_services(limit=10, category='beauty-wellness')
    assert [s['_id'] for s in by_slug] == ['3', '1']
    assert SearchService.get_popular_services(limit=10, category='fitness-personal-health') == []
    assert len(SearchService.get_popular_services(limit=1)) == 1


def test_trending_only_counts_recent_searches(make_service, use_services):
    recent = make_service('recent', 'Recent Facial', popularity=10)
    recent['searchMetadata']['lastSearched'] = datetime.now(timezone.utc).isoformat()
    stale = make_service('stale', 'Stale Facial', popularity=90)
    stale['searchMetadata']['lastSearched'] = (datetime.now(timezone.utc) - timedelta(days=60)).isoformat()
    never = make_service('never', 'Unsearched Facial', popularity=50)
    use_services([recent, stale, never])

    assert [s['_id'] for s in SearchService.get_trending_services(timeframe='7d')] == ['recent']
    # unknown timeframe behaves like 7d
    assert [s['_id'] for s in SearchService.get_trending_services(timeframe='1y')] == ['recent']


def test_service_detail_attaches_provider_summary():
    detail = SearchService.get_service_detail('3')
    assert detail['name'] == 'Deep Tissue Massage'
    assert detail['provider']['id'] == 'sample-provider-2'
    assert detail['provider']['businessName'] == 'Business'
    assert detail['provider']['businessType'] == 'individual'


def test_service_detail_unknown_id_raises():
    with pytest.raises(ServiceNotFound) as excinfo:
        SearchService.get_service_detail('does-not-exist')
    assert excinfo.value.status_code == 404


def test_category_stats_count_active_services():
    stats = {row['slug']: row for row in SearchService.get_category_stats()}
    assert stats['beauty-wellness']['serviceCount'] == 3
    assert stats['home-maintenance']['serviceCount'] == 1
    # the only Mobile Medical Care sample is inactive
    assert stats['mobile-medical-care']['serviceCount'] == 0
    assert stats['skin-aesthetics']['epoch'] == 'beauty'


def test_subcategories_by_slug():
    names = [s['name'] for s in SearchService.get_subcategories('nails')]
    assert 'Manicure' in names
    with pytest.raises(CategoryNotFound):
        SearchService.get_subcategories('underwater-welding')


# ---------------------------------------------------------------------------
# MongoDB execution path
# ---------------------------------------------------------------------------

@pytest.fixture
def mongo_services(monkeypatch):
    collection = mock.MagicMock()
    db = mock.MagicMock()
    db.services = collection
    monkeypatch.setattr(service_repository, 'get_mongo_db', lambda: db)
    return collection


def test_mongo_search_uses_count_and_paged_find(mongo_services):
    mongo_services.count_documents.return_value = 15
    cursor = mongo_services.find.return_value.sort.return_value.skip.return_value.limit.return_value
    cursor.max_time_ms.return_value = [{'_id': 'a', 'name': 'A'}]

    spec = normalize_filters({'category': 'beauty-wellness', 'sortBy': 'price', 'page': 2, 'limit': 10})
    result = ServiceRepository.search(spec)

    assert result == {'services': [{'_id': 'a', 'name': 'A'}], 'total': 15}
    match = mongo_services.find.call_args[0][0]
    assert match['isActive'] is True
    mongo_services.find.return_value.sort.assert_called_once_with([('price.amount', 1), ('_id', 1)])
    mongo_services.find.return_value.sort.return_value.skip.assert_called_once_with(10)


def test_mongo_distance_search_uses_geo_near(mongo_services):
    mongo_services.aggregate.side_effect = [
        [{'total': 1}],
        [{'_id': 'a', 'distance': 1999.4}],
    ]

    spec = normalize_filters({'lat': 25.2, 'lng': 55.3, 'radius': 10, 'sortBy': 'distance'})
    result = ServiceRepository.search(spec)

    count_pipeline, page_pipeline = [c[0][0] for c in mongo_services.aggregate.call_args_list]
    # total and page come from the same $geoNear stage
    assert count_pipeline[0] == page_pipeline[0]
    assert count_pipeline[1] == {'$count': 'total'}
    assert page_pipeline[0]['$geoNear']['maxDistance'] == 10_000
    assert result['total'] == 1
    assert result['services'][0]['distance'] == 2.0
    mongo_services.count_documents.assert_not_called()
    mongo_services.find.assert_not_called()


def test_mongo_distance_search_with_no_matches(mongo_services):
    mongo_services.aggregate.side_effect = [[], []]
    spec = normalize_filters({'lat': 25.2, 'lng': 55.3, 'sortBy': 'distance'})
    assert ServiceRepository.search(spec) == {'services': [], 'total': 0}


def test_mongo_failure_raises_search_unavailable(mongo_services):
    mongo_services.count_documents.side_effect = ServerSelectionTimeoutError('no servers')
    with pytest.raises(SearchUnavailable) as excinfo:
        SearchService.search_services({'q': 'hair'})
    assert excinfo.value.status_code == 503
    assert excinfo.value.to_dict()['error'] == 'SEARCH_UNAVAILABLE'


def test_mongo_suggestion_failure_raises_search_unavailable(mongo_services):
    mongo_services.aggregate.side_effect = PyMongoError('boom')
    with pytest.raises(SearchUnavailable):
        SearchService.get_suggestions('hair')


def test_mongo_popular_services_query(mongo_services):
    mongo_services.find.return_value.sort.return_value.limit.return_value = [{'_id': 'a', 'name': 'Cut'}]

    services = SearchService.get_popular_services(limit=5, category='beauty-wellness')

    match = mongo_services.find.call_args[0][0]
    assert match['isActive'] is True
    assert match['isPopular'] is True
    assert match['category'] == service_repository._exact_ci('Beauty & Wellness')
    mongo_services.find.return_value.sort.assert_called_once_with([
        ('searchMetadata.popularityScore', -1), ('rating.average', -1), ('_id', 1),
    ])
    mongo_services.find.return_value.sort.return_value.limit.assert_called_once_with(5)
    assert services == [{'_id': 'a', 'name': 'Cut'}]


def test_mongo_find_service_accepts_object_id_and_string(mongo_services):
    oid = '507f1f77bcf86cd799439011'
    mongo_services.find_one.return_value = {'_id': ObjectId(oid), 'name': 'Cut'}

    doc = ServiceRepository.find_service(oid)

    mongo_services.find_one.assert_called_once_with({'_id': {'$in': [oid, ObjectId(oid)]}})
    assert doc['name'] == 'Cut'

    ServiceRepository.find_service('not-an-object-id')
    assert mongo_services.find_one.call_args[0][0] == {'_id': {'$in': ['not-an-object-id']}}


def test_mongo_category_counts_merge_case(mongo_services):
    mongo_services.aggregate.return_value = [
        {'_id': 'Beauty & Wellness', 'count': 3},
        {'_id': 'beauty & wellness', 'count': 1},
    ]
    assert ServiceRepository.category_counts() == {'beauty & wellness': 4}


def test_mongo_popular_failure_raises_search_unavailable(mongo_services):
    mongo_services.find.side_effect = PyMongoError('boom')
    with pytest.raises(SearchUnavailable):
        SearchService.get_popular_services()
