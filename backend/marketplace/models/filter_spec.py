from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

SORT_OPTIONS = ('popularity', 'rating', 'price', 'price_desc', 'distance', 'newest')
LIMIT_OPTIONS = (10, 20, 50)

DEFAULT_SORT = 'popularity'
DEFAULT_LIMIT = 20
DEFAULT_PAGE = 1
MAX_PAGE = 10_000
DEFAULT_RADIUS_KM = 25.0

# 短于该长度的关键词不参与检索与联想
MIN_QUERY_LENGTH = 2


@dataclass(frozen=True)
class FilterSpec:
    """一次搜索请求的规范化筛选条件（不持久化）"""
    query: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    min_rating: Optional[float] = None
    city: Optional[str] = None
    state: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    radius_km: float = DEFAULT_RADIUS_KM
    sort_by: str = DEFAULT_SORT
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lng is not None

    @property
    def search_text(self) -> Optional[str]:
        """Keyword used for matching, None when too short to search on."""
        if self.query and len(self.query) >= MIN_QUERY_LENGTH:
            return self.query
        return None

    @property
    def effective_sort(self) -> str:
        # distance 排序缺少坐标时退化为 popularity
        if self.sort_by == 'distance' and not self.has_coordinates:
            return DEFAULT_SORT
        return self.sort_by

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
