from flask import Flask, request, jsonify
from flask_cors import CORS
from flask_pymongo import PyMongo
from config import Config
from collections import defaultdict
import time

mongo = PyMongo()

# Simple in-memory rate limiter
class RateLimiter:
    """Simple in-memory rate limiter (requests per minute per IP)"""
    def __init__(self, requests_per_minute=100):
        self.requests_per_minute = requests_per_minute
        self.requests = defaultdict(list)

    def is_allowed(self, key):
        now = time.time()
        minute_ago = now - 60

        # Clean old entries
        self.requests[key] = [t for t in self.requests[key] if t > minute_ago]

        if len(self.requests[key]) >= self.requests_per_minute:
            return False

        self.requests[key].append(now)
        return True


def create_app(config_object=Config):
    """创建 Flask 应用"""
    app = Flask(__name__)
    app.config.from_object(config_object)
    api_prefix = app.config.get('API_PREFIX', '/api').rstrip('/')

    # CORS: use explicit allowlist in production when provided.
    cors_origins = app.config.get('CORS_ALLOWED_ORIGINS', [])
    resources = {rf"{api_prefix}/*": {"origins": cors_origins or "*"}}
    CORS(app, resources=resources)

    # 初始化 MongoDB（未配置时使用本地数据）
    if app.config.get('MONGO_URI'):
        mongo.init_app(app)
        print("  ✓ MongoDB configured for API requests")
    else:
        print("  ⚠ MONGO_URI not set, serving services from local data")

    rate_limiter = RateLimiter(requests_per_minute=app.config.get('RATE_LIMIT_PER_MINUTE', 100))
    app.extensions['rate_limiter'] = rate_limiter

    # Rate limiting middleware
    @app.before_request
    def check_rate_limit():
        if request.path.startswith(f'{api_prefix}/'):
            client_ip = request.headers.get('X-Forwarded-For', request.remote_addr)
            if client_ip:
                client_ip = client_ip.split(',')[0].strip()
            if not rate_limiter.is_allowed(client_ip):
                return jsonify({
                    'success': False,
                    'message': 'Rate limit exceeded. Please wait a moment.',
                    'error': 'TOO_MANY_REQUESTS'
                }), 429

    from marketplace.services.errors import MarketplaceError

    @app.errorhandler(MarketplaceError)
    def handle_marketplace_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(500)
    def handle_internal_error(error):
        return jsonify({
            'success': False,
            'message': 'Internal server error',
            'error': 'INTERNAL_ERROR'
        }), 500

    # 注册蓝图
    from marketplace.routes.search import search_bp
    from marketplace.routes.categories import categories_bp

    app.register_blueprint(search_bp, url_prefix=f'{api_prefix}/search')
    app.register_blueprint(categories_bp, url_prefix=f'{api_prefix}/categories')

    return app
