import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# 项目根目录
PROJECT_ROOT = Path(__file__).parent.parent


class Config:
    """应用配置"""
    SECRET_KEY = os.getenv('SECRET_KEY', 'marketplace-secret-key-2024')

    # 本地数据路径 (未配置 MONGO_URI 时使用 services.json)
    # 1) 优先使用环境变量 DATA_PATH
    # 2) 默认使用 backend/data
    DATA_PATH = os.getenv('DATA_PATH', str(Path(__file__).parent / 'data'))

    # MongoDB 配置 (留空则回退到本地数据)
    MONGO_URI = os.getenv('MONGO_URI', '')

    # API 配置
    API_PREFIX = '/api'

    # CORS allowlist (comma-separated origins)
    # Example:
    # CORS_ALLOWED_ORIGINS=https://app.example.com,https://www.example.com
    CORS_ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.getenv('CORS_ALLOWED_ORIGINS', '').split(',')
        if origin.strip()
    ]

    # 开发服务器 (run.py)
    HOST = os.getenv('HOST', '0.0.0.0')
    PORT = int(os.getenv('PORT', '5000'))
    PORT_FALLBACK = int(os.getenv('PORT_FALLBACK', '5001'))

    # Flask 环境
    FLASK_ENV = os.getenv('FLASK_ENV', 'development')

    RATE_LIMIT_PER_MINUTE = int(os.getenv('RATE_LIMIT_PER_MINUTE', '100'))

    # Search settings
    # SEARCH_QUERY_TIMEOUT_MS: server-side max time for one search query
    # DEFAULT_SEARCH_RADIUS_KM: geo radius used when the client sends coordinates only
    SEARCH_QUERY_TIMEOUT_MS = int(os.getenv('SEARCH_QUERY_TIMEOUT_MS', '5000'))
    DEFAULT_SEARCH_RADIUS_KM = float(os.getenv('DEFAULT_SEARCH_RADIUS_KM', '25'))
