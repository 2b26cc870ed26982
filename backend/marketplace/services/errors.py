"""
Search / sync error types.

Filter normalization and category resolution never raise; only store-level
failures propagate out of the services layer.
"""


class MarketplaceError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500
    error_code = 'INTERNAL_ERROR'

    def __init__(self, message: str = '', detail: str = ''):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or (self.__class__.__doc__ or '').strip()
        self.detail = detail

    def to_dict(self):
        payload = {
            'success': False,
            'message': self.message,
            'error': self.error_code,
        }
        if self.detail:
            payload['detail'] = self.detail
        return payload


class SearchUnavailable(MarketplaceError):
    """Search is temporarily unavailable."""

    status_code = 503
    error_code = 'SEARCH_UNAVAILABLE'


class CategoryNotFound(MarketplaceError):
    """Category not found."""

    status_code = 404
    error_code = 'CATEGORY_NOT_FOUND'


class SyncConflict(MarketplaceError):
    """Service already materialized by a concurrent sync run."""

    status_code = 409
    error_code = 'SYNC_CONFLICT'


class ServiceNotFound(MarketplaceError):
    """Service not found."""

    status_code = 404
    error_code = 'SERVICE_NOT_FOUND'
