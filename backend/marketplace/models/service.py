from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

# 同步时缺省的服务商坐标 [lng, lat]
DEFAULT_COORDINATES = [-74.006, 40.7128]
DEFAULT_COUNTRY = 'US'
DEFAULT_SERVICE_RADIUS_KM = 25

WEEKDAYS = ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def default_availability() -> Dict[str, Any]:
    """周一到周六可预约，周日休息，时段为空"""
    return {
        'schedule': {
            day: {'isAvailable': day != 'sunday', 'timeSlots': []}
            for day in WEEKDAYS
        },
        'exceptions': [],
        'bufferTime': 15,
        'instantBooking': False,
        'advanceBookingDays': 30,
    }


def default_rating() -> Dict[str, Any]:
    return {
        'average': 0,
        'count': 0,
        'distribution': {'1': 0, '2': 0, '3': 0, '4': 0, '5': 0},
    }


class Service:
    """独立服务文档（services 集合）"""

    def __init__(self, provider_id, name, category, description='', subcategory='',
                 price=None, location=None, availability=None, rating=None,
                 is_active=True, search_metadata=None, duration=60, tags=None,
                 images=None, requirements=None, included_items=None, add_ons=None):
        self.provider_id = provider_id
        self.name = name
        self.category = category
        self.subcategory = subcategory or ''
        self.description = description or ''
        self.price = price or {'amount': 0, 'currency': 'USD', 'type': 'fixed'}
        self.location = location or {}
        self.availability = availability or default_availability()
        self.rating = rating or default_rating()
        self.is_active = is_active
        self.search_metadata = search_metadata or {
            'searchKeywords': [],
            'popularityScore': 0,
        }
        self.duration = duration
        self.tags = tags or []
        self.images = images or []
        self.requirements = requirements or []
        self.included_items = included_items or []
        self.add_ons = add_ons or []
        self.created_at = _utcnow()
        self.updated_at = _utcnow()

    def to_dict(self):
        """转换为 MongoDB 文档"""
        return {
            'providerId': self.provider_id,
            'name': self.name,
            'category': self.category,
            'subcategory': self.subcategory,
            'description': self.description,
            'shortDescription': self.description[:100],
            'price': self.price,
            'duration': self.duration,
            'tags': self.tags,
            'images': self.images,
            'requirements': self.requirements,
            'includedItems': self.included_items,
            'addOns': self.add_ons,
            'location': self.location,
            'availability': self.availability,
            'rating': self.rating,
            'isActive': self.is_active,
            'isFeatured': False,
            'isPopular': False,
            'searchMetadata': self.search_metadata,
            'createdAt': self.created_at,
            'updatedAt': self.updated_at,
        }

    @staticmethod
    def from_embedded(provider: Dict[str, Any], embedded: Dict[str, Any]) -> 'Service':
        """Materialize a provider-embedded service, filling every optional field."""
        price = embedded.get('price') or {}
        tags: List[str] = list(embedded.get('tags') or [])
        # 内嵌数据未经校验，名称和分类可能不是字符串
        category = str(embedded.get('category') or '')
        name = str(embedded.get('name') or '').strip()

        service = Service(
            provider_id=provider.get('userId'),
            name=name,
            category=category,
            subcategory=embedded.get('subcategory') or '',
            description=embedded.get('description') or '',
            price={
                'amount': price.get('amount') or 0,
                'currency': price.get('currency') or 'USD',
                'type': price.get('type') or 'fixed',
                'discounts': price.get('discounts') or [],
            },
            location=_location_from_provider(provider),
            is_active=embedded.get('isActive') is not False,
            search_metadata={
                'searchCount': 0,
                'clickCount': 0,
                'bookingCount': 0,
                'popularityScore': 0,
                'searchKeywords': [name.lower(), category.lower()] + tags,
            },
            duration=embedded.get('duration') or 60,
            tags=tags,
            images=embedded.get('images'),
            requirements=embedded.get('requirements'),
            included_items=embedded.get('includedItems'),
            add_ons=embedded.get('addOns'),
        )
        return service


def _location_from_provider(provider: Dict[str, Any]) -> Dict[str, Any]:
    address = ((provider.get('locationInfo') or {}).get('primaryAddress')) or {}
    coords = address.get('coordinates') or {}
    business = provider.get('businessInfo') or {}
    radius = business.get('serviceRadius') or DEFAULT_SERVICE_RADIUS_KM

    lng = coords.get('lng')
    lat = coords.get('lat')
    return {
        'address': {
            'street': address.get('street') or '',
            'city': address.get('city') or '',
            'state': address.get('state') or '',
            'zipCode': address.get('zipCode') or '',
            'country': address.get('country') or DEFAULT_COUNTRY,
        },
        'coordinates': {
            'type': 'Point',
            'coordinates': [
                lng if lng is not None else DEFAULT_COORDINATES[0],
                lat if lat is not None else DEFAULT_COORDINATES[1],
            ],
        },
        'serviceArea': {
            'type': 'radius',
            'value': radius,
            'maxDistance': radius,
        },
        'travelFee': {'baseFee': 0, 'perKmFee': 0},
    }


def get_coordinates(service: Dict[str, Any]) -> Optional[tuple]:
    """Return (lat, lng) from a stored GeoJSON point, or None."""
    location = service.get('location') or {}
    point = location.get('coordinates') or {}
    if isinstance(point, dict):
        pair = point.get('coordinates')
    else:
        pair = point
    if not isinstance(pair, (list, tuple)) or len(pair) != 2:
        return None
    try:
        lng, lat = float(pair[0]), float(pair[1])
    except (TypeError, ValueError):
        return None
    return lat, lng
