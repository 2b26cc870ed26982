"""Shared fixtures: every test runs against local data, never a live MongoDB."""

import pytest

from config import Config
from marketplace.services import service_repository
from marketplace.services.service_repository import ServiceRepository


def build_service(_id, name, category='Beauty & Wellness', subcategory='Hair', price=100,
                  rating=4.5, lat=25.2, lng=55.3, city='Dubai', state='Dubai', popularity=0,
                  created_at='2025-01-01T00:00:00+00:00', is_active=True, description='',
                  keywords=None, tags=None):
    return {
        '_id': _id,
        'providerId': 'provider-1',
        'name': name,
        'category': category,
        'subcategory': subcategory,
        'description': description,
        'price': {'amount': price, 'currency': 'AED', 'type': 'fixed'},
        'location': {
            'address': {'city': city, 'state': state, 'country': 'AE'},
            'coordinates': {'type': 'Point', 'coordinates': [lng, lat]},
        },
        'rating': {'average': rating, 'count': 10},
        'isActive': is_active,
        'tags': tags or [],
        'searchMetadata': {'searchKeywords': keywords or [], 'popularityScore': popularity},
        'createdAt': created_at,
    }


@pytest.fixture(autouse=True)
def local_store(monkeypatch, tmp_path):
    monkeypatch.setenv('MONGO_URI', '')
    monkeypatch.setattr(Config, 'DATA_PATH', str(tmp_path))
    service_repository.reset_mongo_client()
    yield tmp_path
    service_repository.reset_mongo_client()


@pytest.fixture
def make_service():
    return build_service


@pytest.fixture
def use_services(monkeypatch):
    """Swap the local document loader for an in-test list."""
    def _use(docs):
        monkeypatch.setattr(ServiceRepository, 'load_services', lambda: [dict(d) for d in docs])
        return docs
    return _use
