from dataclasses import dataclass, field
from typing import Dict, List, Optional

EPOCH_LEGACY = 'legacy'
EPOCH_NILIN = 'nilin'
# 迪拜美业站点使用的精简分类
EPOCH_BEAUTY = 'beauty'


@dataclass(frozen=True)
class Category:
    """服务分类（只读参考数据）"""
    name: str
    slug: str
    epoch: str
    icon: str = '📋'
    description: str = ''
    sort_order: int = 0
    is_featured: bool = False
    parent_category: Optional[str] = None
    subcategories: tuple = field(default_factory=tuple)
    # legacy 分类迁移后对应的新分类名
    successor: Optional[str] = None

    @property
    def is_nilin(self) -> bool:
        return self.epoch == EPOCH_NILIN

    @property
    def is_legacy(self) -> bool:
        return self.epoch == EPOCH_LEGACY

    def subcategory_list(self) -> List[Dict[str, str]]:
        return [{'name': name, 'slug': slug} for name, slug in self.subcategories]

    def to_dict(self, include_subcategories: bool = True) -> Dict:
        data = {
            'name': self.name,
            'slug': self.slug,
            'icon': self.icon,
            'description': self.description,
            'sortOrder': self.sort_order,
            'isFeatured': self.is_featured,
            'epoch': self.epoch,
            'subcategoryCount': len(self.subcategories),
        }
        if self.parent_category:
            data['parentCategory'] = self.parent_category
        if self.successor:
            data['successor'] = self.successor
        if include_subcategories:
            data['subcategories'] = self.subcategory_list()
        return data
