# Services package
#
# Search, category and sync services for the marketplace backend.
#
# Module structure:
# - search_service.py: High-level business logic (main API)
# - service_repository.py: Query building and execution (MongoDB / local JSON)
# - service_filters.py: Filter normalization and local predicates
# - service_sorting.py: Sort rules and tie-breaking
# - category_registry.py: Category lookup table
# - presenters.py: Pagination and response shaping
# - provider_sync.py: Provider → service materialization
#
#   from marketplace.services import SearchService

from .search_service import SearchService
from .service_repository import ServiceRepository
from . import category_registry
from . import service_filters
from . import service_sorting

__all__ = [
    'SearchService',
    'ServiceRepository',
    'category_registry',
    'service_filters',
    'service_sorting',
]
