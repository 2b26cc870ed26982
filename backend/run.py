import socket
from marketplace import create_app
from marketplace.services.env_utils import mask_mongo_uri

app = create_app()


def _can_bind(port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.settimeout(0.2)
        return sock.connect_ex(("127.0.0.1", port)) != 0


def pick_port(config) -> int:
    """PORT 被占用时改用 PORT_FALLBACK（两者都不可用时仍返回 PORT）"""
    preferred_port = config['PORT']
    fallback_port = config['PORT_FALLBACK']
    if not _can_bind(preferred_port) and fallback_port != preferred_port and _can_bind(fallback_port):
        print(f"⚠ Port {preferred_port} is in use, fallback to {fallback_port}")
        return fallback_port
    return preferred_port


def describe_startup(config, port: int) -> str:
    store = mask_mongo_uri(config['MONGO_URI']) if config['MONGO_URI'] else f"local data ({config['DATA_PATH']})"
    return (
        f"✓ Marketplace API on http://{config['HOST']}:{port}{config['API_PREFIX']} "
        f"[{config['FLASK_ENV']}] store: {store}"
    )


if __name__ == '__main__':
    run_port = pick_port(app.config)
    print(describe_startup(app.config, run_port))
    app.run(debug=app.config['FLASK_ENV'] == 'development', host=app.config['HOST'], port=run_port)
