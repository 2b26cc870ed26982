"""
Environment value helpers.
"""

from __future__ import annotations

import os


def sanitize_env_value(raw: str | None, fallback: str = "") -> str:
    value = (raw if raw is not None else fallback).strip()
    if len(value) >= 2 and ((value[0] == '"' and value[-1] == '"') or (value[0] == "'" and value[-1] == "'")):
        value = value[1:-1]
    # Hosting dashboards sometimes paste literal "\n" into connection strings.
    return value.replace("\\n", "").replace("\\r", "").strip()


def read_env(name: str, fallback: str = "") -> str:
    """读取并清洗环境变量（每次调用时读取，便于测试 monkeypatch）"""
    return sanitize_env_value(os.getenv(name), fallback)


def mask_mongo_uri(uri: str) -> str:
    """日志输出用：隐藏连接串中的密码部分"""
    if "@" not in uri or "://" not in uri:
        return uri
    scheme, rest = uri.split("://", 1)
    credentials, host = rest.rsplit("@", 1)
    user = credentials.split(":", 1)[0]
    return f"{scheme}://{user}:***@{host}"
