# backend/vendor_backend/__init__.py
from flask import Flask, g, request

from .config import Config
from .extensions import db, migrate

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "Content-Security-Policy": "default-src 'self'; img-src 'self' data: https:",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}

CORS_METHODS = "GET, POST, PUT, DELETE, PATCH, OPTIONS"
CORS_HEADERS = "Content-Type, Authorization, X-API-Key, X-Actor-Email, X-Actor-Name"
CORS_EXPOSE = "X-RateLimit-Limit, X-RateLimit-Remaining, X-RateLimit-Reset, Retry-After"


def _origin_allowed(origin, setting: str) -> bool:
    if not origin:
        return False
    allowed = [o.strip() for o in (setting or "").split(",") if o.strip()]
    return "*" in allowed or origin in allowed


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Models must be imported before create_all or flask db migrate
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.products import products_bp
    from .routes.customers import customers_bp
    from .routes.orders import orders_bp
    from .routes.api_keys import api_keys_bp

    prefix = app.config["API_PREFIX"].rstrip("/")

    app.register_blueprint(system_bp)
    app.register_blueprint(products_bp, url_prefix=f"{prefix}/products")
    app.register_blueprint(customers_bp, url_prefix=f"{prefix}/customers")
    app.register_blueprint(orders_bp, url_prefix=f"{prefix}/orders")
    app.register_blueprint(api_keys_bp, url_prefix=f"{prefix}/api-keys")

    @app.before_request
    def reset_request_state():
        g.pop("api_key", None)
        g.pop("rate_limit_headers", None)
        g.is_legacy_key = False

        # CORS preflight never reaches the routes (or the API key check)
        if request.method == "OPTIONS":
            return "", 204

    @app.after_request
    def add_response_headers(response):
        origin = request.headers.get("Origin")
        if _origin_allowed(origin, app.config.get("CORS_ORIGIN", "*")):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Vary"] = "Origin"
        response.headers["Access-Control-Allow-Methods"] = CORS_METHODS
        response.headers["Access-Control-Allow-Headers"] = CORS_HEADERS
        response.headers["Access-Control-Expose-Headers"] = CORS_EXPOSE
        response.headers["Access-Control-Max-Age"] = "86400"

        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)

        for name, value in (g.get("rate_limit_headers") or {}).items():
            response.headers[name] = value
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
