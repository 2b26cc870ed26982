from flask import Blueprint, jsonify, request
from marketplace.services.search_service import SearchService

categories_bp = Blueprint('categories', __name__)


@categories_bp.route('', methods=['GET'])
@categories_bp.route('/', methods=['GET'])
def get_categories():
    """获取所有分类（featured=true 只返回推荐分类）"""
    featured = request.args.get('featured', '').strip().lower() == 'true'
    epoch = request.args.get('epoch', '').strip().lower() or None
    categories = SearchService.list_categories(featured_only=featured, epoch=epoch)
    return jsonify({
        'success': True,
        'data': {'categories': categories, 'total': len(categories)}
    })


@categories_bp.route('/search', methods=['GET'])
def search_categories():
    """分类 / 子分类名称搜索"""
    q = request.args.get('q', '')
    results = SearchService.search_categories(q)
    return jsonify({
        'success': True,
        'data': {'results': results}
    })


@categories_bp.route('/stats', methods=['GET'])
def get_category_stats():
    """各分类的有效服务数"""
    stats = SearchService.get_category_stats()
    return jsonify({
        'success': True,
        'data': {'categories': stats, 'total': len(stats)}
    })


@categories_bp.route('/<slug>', methods=['GET'])
def get_category(slug):
    """分类详情；未知 slug 返回 404"""
    category = SearchService.get_category_detail(slug)
    return jsonify({
        'success': True,
        'data': category
    })


@categories_bp.route('/<slug>/services', methods=['GET'])
def get_category_services(slug):
    """分类下的服务，筛选 / 排序 / 分页参数同搜索接口"""
    results = SearchService.get_services_by_category(slug, request.args.to_dict())
    return jsonify({
        'success': True,
        'data': results
    })


@categories_bp.route('/<slug>/subcategories', methods=['GET'])
def get_category_subcategories(slug):
    """分类的子分类列表；未知 slug 返回 404"""
    subcategories = SearchService.get_subcategories(slug)
    return jsonify({
        'success': True,
        'data': {'subcategories': subcategories, 'total': len(subcategories)}
    })
