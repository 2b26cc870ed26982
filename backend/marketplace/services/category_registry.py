"""
分类注册表 - 分类名称 / slug / 元数据的只读查找表

legacy（早期家政分类）、nilin（当前架构分类）与 beauty（美业站点分类）
合并为一张表，以 epoch 字段区分，查找函数不关心来源。
"""

import re
from typing import Dict, List, Optional

from ..models.category import Category, EPOCH_BEAUTY, EPOCH_LEGACY, EPOCH_NILIN


def slugify(name: str) -> str:
    """'Skin & Aesthetics' -> 'skin-aesthetics'"""
    slug = re.sub(r'[^a-z0-9]+', '-', (name or '').lower())
    return slug.strip('-')


def _subs(*names: str) -> tuple:
    return tuple((name, slugify(name)) for name in names)


CATEGORY_TABLE: List[Category] = [
    # ---- nilin ----
    Category(
        name='Beauty & Wellness', slug='beauty-wellness', epoch=EPOCH_NILIN,
        icon='💅', sort_order=1, is_featured=True,
        description='Hair, nails, makeup and spa treatments at home',
        subcategories=_subs('Hair', 'Nails', 'Massage', 'Makeup', 'Waxing', 'Facial', 'Eyes', 'Threading'),
    ),
    Category(
        name='Fitness & Personal Health', slug='fitness-personal-health', epoch=EPOCH_NILIN,
        icon='💪', sort_order=2, is_featured=True,
        description='Personal training, yoga and nutrition coaching',
        subcategories=_subs('Personal Training', 'Group Classes', 'Yoga', 'Nutrition'),
    ),
    Category(
        name='Mobile Medical Care', slug='mobile-medical-care', epoch=EPOCH_NILIN,
        icon='🩺', sort_order=3, is_featured=True,
        description='Doctors, nurses and lab technicians who visit you at home',
        subcategories=_subs('Doctor Visit', 'Nursing', 'Lab Tests', 'Physiotherapy'),
    ),
    Category(
        name='Education & Personal Development', slug='education-personal-development',
        epoch=EPOCH_NILIN, icon='📚', sort_order=4,
        description='Tutoring, languages and test preparation',
        subcategories=_subs('Math', 'Science', 'Languages', 'Test Prep'),
    ),
    Category(
        name='Corporate Services', slug='corporate-services', epoch=EPOCH_NILIN,
        icon='💼', sort_order=5,
        description='Office wellness, IT support and corporate events',
        subcategories=_subs('Office Wellness', 'IT Support', 'Events'),
    ),
    Category(
        name='Home & Maintenance', slug='home-maintenance', epoch=EPOCH_NILIN,
        icon='🏠', sort_order=6,
        description='Cleaning, repairs and upkeep for your home',
        subcategories=_subs('Cleaning', 'Repair', 'Plumbing', 'Electrical', 'Painting', 'Gardening'),
    ),
    # ---- beauty ----
    Category(
        name='Hair', slug='hair', epoch=EPOCH_BEAUTY, icon='💇‍♀️', sort_order=11,
        parent_category='Beauty & Wellness',
        description='Cuts, blowouts, coloring and styling',
        subcategories=_subs('Haircut', 'Blowout', 'Coloring', 'Styling', 'Treatments'),
    ),
    Category(
        name='Makeup', slug='makeup', epoch=EPOCH_BEAUTY, icon='💄', sort_order=12,
        parent_category='Beauty & Wellness',
        description='Bridal, event and everyday makeup',
        subcategories=_subs('Bridal Makeup', 'Event Makeup', 'Lessons'),
    ),
    Category(
        name='Nails', slug='nails', epoch=EPOCH_BEAUTY, icon='💅', sort_order=13,
        parent_category='Beauty & Wellness',
        description='Manicures, pedicures and nail art',
        subcategories=_subs('Manicure', 'Pedicure', 'Gel', 'Extensions', 'Nail Art'),
    ),
    Category(
        name='Skin & Aesthetics', slug='skin-aesthetics', epoch=EPOCH_BEAUTY, icon='✨', sort_order=14,
        parent_category='Beauty & Wellness',
        description='Facials, peels and skin treatments',
        subcategories=_subs('Facials', 'Peels', 'Microneedling', 'Skin Consultation'),
    ),
    Category(
        name='Massage & Body', slug='massage-body', epoch=EPOCH_BEAUTY, icon='💆', sort_order=15,
        parent_category='Beauty & Wellness',
        description='Massage, body scrubs and wraps',
        subcategories=_subs('Swedish Massage', 'Deep Tissue', 'Body Scrub', 'Body Wrap'),
    ),
    Category(
        name='Personal Care', slug='personal-care', epoch=EPOCH_BEAUTY, icon='🪒', sort_order=16,
        parent_category='Beauty & Wellness',
        description='Waxing, threading, lashes and brows',
        subcategories=_subs('Waxing', 'Threading', 'Lashes', 'Brows'),
    ),
    # ---- legacy ----
    Category(
        name='Cleaning', slug='cleaning', epoch=EPOCH_LEGACY, icon='🧹', sort_order=101,
        description='Professional cleaning services for homes and offices',
        subcategories=_subs('Deep Cleaning', 'Regular Cleaning', 'Move-in/Move-out', 'Post-Construction'),
        successor='Home & Maintenance',
    ),
    Category(
        name='Home Repair', slug='home-repair', epoch=EPOCH_LEGACY, icon='🔧', sort_order=102,
        description='General home repair and maintenance services',
        subcategories=_subs('General Repair', 'Installation', 'Maintenance'),
        successor='Home & Maintenance',
    ),
    Category(
        name='Plumbing', slug='plumbing', epoch=EPOCH_LEGACY, icon='🚰', sort_order=103,
        description='Plumbing repairs, installations, and maintenance',
        subcategories=_subs('Pipe Repair', 'Fixture Installation', 'Emergency Plumbing'),
        successor='Home & Maintenance',
    ),
    Category(
        name='Electrical', slug='electrical', epoch=EPOCH_LEGACY, icon='⚡', sort_order=104,
        description='Electrical wiring, repairs, and installations',
        subcategories=_subs('Wiring', 'Lighting'),
        successor='Home & Maintenance',
    ),
    Category(
        name='Painting', slug='painting', epoch=EPOCH_LEGACY, icon='🎨', sort_order=105,
        description='Interior and exterior painting services',
        subcategories=_subs('Interior', 'Exterior', 'Touch-up'),
        successor='Home & Maintenance',
    ),
    Category(
        name='Landscaping', slug='landscaping', epoch=EPOCH_LEGACY, icon='🌳', sort_order=106,
        description='Lawn care, garden design, and outdoor maintenance',
        subcategories=_subs('Lawn Care', 'Garden Design', 'Tree Service', 'Irrigation'),
        successor='Home & Maintenance',
    ),
    Category(
        name='Pet Care', slug='pet-care', epoch=EPOCH_LEGACY, icon='🐕', sort_order=107,
        description='Pet sitting, walking, grooming, and training',
        subcategories=_subs('Dog Walking', 'Pet Sitting', 'Grooming', 'Training'),
        successor='Home & Maintenance',
    ),
    Category(
        name='Tutoring', slug='tutoring', epoch=EPOCH_LEGACY, icon='✏️', sort_order=108,
        description='Educational tutoring and test preparation',
        subcategories=_subs('Homework Help', 'Exam Coaching'),
        successor='Education & Personal Development',
    ),
    Category(
        name='Fitness', slug='fitness', epoch=EPOCH_LEGACY, icon='🏋️', sort_order=109,
        description='Personal training and fitness coaching',
        subcategories=_subs('Strength', 'Cardio'),
        successor='Fitness & Personal Health',
    ),
    Category(
        name='Beauty', slug='beauty', epoch=EPOCH_LEGACY, icon='💇', sort_order=110,
        description='Beauty and personal care services',
        subcategories=_subs('Skincare', 'Hair Services'),
        successor='Beauty & Wellness',
    ),
    Category(
        name='Moving', slug='moving', epoch=EPOCH_LEGACY, icon='📦', sort_order=111,
        description='Moving and relocation services',
        subcategories=_subs('Packing', 'Loading', 'Transportation', 'Unpacking'),
        successor='Home & Maintenance',
    ),
    Category(
        name='Assembly', slug='assembly', epoch=EPOCH_LEGACY, icon='🔩', sort_order=112,
        description='Furniture and equipment assembly',
        subcategories=_subs('Furniture', 'Appliances', 'Equipment'),
        successor='Home & Maintenance',
    ),
    Category(
        name='Technology', slug='technology', epoch=EPOCH_LEGACY, icon='💻', sort_order=113,
        description='Computer and tech support services',
        subcategories=_subs('Computer Repair', 'Device Setup', 'Tech Support'),
        successor='Corporate Services',
    ),
    Category(
        name='Automotive', slug='automotive', epoch=EPOCH_LEGACY, icon='🚗', sort_order=114,
        description='Vehicle maintenance and repair services',
        subcategories=_subs('Car Maintenance', 'Detailing', 'Mobile Mechanic'),
        successor='Home & Maintenance',
    ),
    Category(
        name='Other', slug='other', epoch=EPOCH_LEGACY, icon='📋', sort_order=115,
        description='Other specialized services',
    ),
]

_BY_SLUG: Dict[str, Category] = {c.slug: c for c in CATEGORY_TABLE}
_BY_NAME: Dict[str, Category] = {c.name.lower(): c for c in CATEGORY_TABLE}


def _clean(value) -> str:
    if value is None:
        return ''
    return str(value).strip()


def resolve(value) -> Optional[Category]:
    """slug 优先，其次名称（忽略大小写）；未匹配返回 None"""
    cleaned = _clean(value)
    if not cleaned:
        return None
    lowered = cleaned.lower()
    return _BY_SLUG.get(lowered) or _BY_NAME.get(lowered)


def canonical_name(value) -> Optional[str]:
    category = resolve(value)
    return category.name if category else None


def slug_of(value) -> Optional[str]:
    category = resolve(value)
    return category.slug if category else None


def get_by_slug(slug) -> Optional[Category]:
    """Slug-only lookup used by the /categories/<slug> routes."""
    return _BY_SLUG.get(_clean(slug).lower())


def is_valid_category(value) -> bool:
    return resolve(value) is not None


def is_nilin_category(value) -> bool:
    category = resolve(value)
    return bool(category and category.is_nilin)


def legacy_successor(value) -> Optional[str]:
    """legacy 分类迁移后的新分类名；新分类返回自身"""
    category = resolve(value)
    if category is None:
        return None
    if not category.is_legacy:
        return category.name
    return category.successor


def list_categories(featured_only: bool = False, epoch: Optional[str] = None) -> List[Category]:
    categories = CATEGORY_TABLE
    if featured_only:
        categories = [c for c in categories if c.is_featured]
    if epoch:
        categories = [c for c in categories if c.epoch == epoch]
    return sorted(categories, key=lambda c: c.sort_order)


def get_subcategories(value) -> List[Dict[str, str]]:
    category = resolve(value)
    return category.subcategory_list() if category else []


def search_categories(q, limit: int = 10) -> List[Dict[str, str]]:
    """分类 / 子分类名称模糊匹配（子串，忽略大小写）"""
    needle = _clean(q).lower()
    if len(needle) < 2:
        return []

    results: List[Dict[str, str]] = []
    for category in list_categories():
        if needle in category.name.lower():
            results.append({
                'type': 'category',
                'name': category.name,
                'slug': category.slug,
            })
        for name, slug in category.subcategories:
            if needle in name.lower():
                results.append({
                    'type': 'subcategory',
                    'name': name,
                    'slug': slug,
                    'parentCategory': category.name,
                })
    return results[:limit]
