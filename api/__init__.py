import click
from flask import Flask
from flasgger import Swagger
from flask_cors import CORS
import logging

from .config import get_config, DEV_JWT_SECRET
from .errors import register_error_handlers
from models import storage
from models.session_store import SessionStore
from services.credentials import CredentialChangeCoordinator
from services.tokens import TokenService
from utils.security import Signer

logger = logging.getLogger(__name__)

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0",
    "info": {
        "title": "Session Token API",
        "version": "1.0.0",
        "description": "Issues, rotates and revokes access/refresh token pairs.",
    },
    "basePath": "/",
    "schemes": ["http"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": "Enter the token with the `jwt ` prefix, e.g. \"jwt abcde12345\"."
        }
    }
}

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec_1",
            "route": "/swagger.json",
            "rule_filter": lambda rule: True,   # include all endpoints
            "model_filter": lambda tag: True,   # include all models
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/apidocs/",
}


def init_token_services(app: Flask):
    """
    Build the signer, session store, token service and credential coordinator
    from app.config. Runs once per app; raises on a misconfiguration so the
    process never starts serving with a broken setup.
    """
    config = app.config
    if config["APP_ENV"] in ("prod", "production") and config["JWT_SECRET"] == DEV_JWT_SECRET:
        raise RuntimeError("JWT_SECRET must be set in production")

    signer = Signer(
        secret=config["JWT_SECRET"],
        access_ttl=config["ACCESS_TOKEN_EXPIRES"],
        refresh_ttl=config["REFRESH_TOKEN_EXPIRES"],
        algorithm=config["JWT_ALGORITHM"],
        issuer=config.get("JWT_ISSUER"),
    )
    store = SessionStore(storage, ttl=config["REFRESH_TOKEN_EXPIRES"])
    tokens = TokenService(signer, store, reuse_policy=config["REFRESH_REUSE_POLICY"])
    app.extensions["token_service"] = tokens
    app.extensions["credential_coordinator"] = CredentialChangeCoordinator(
        storage, tokens, policy=config["CREDENTIAL_CHANGE_POLICY"]
    )


def create_app(config_name: str | None = None, overrides: dict | None = None) -> Flask:
    """
    Application factory: creates and configures the Flask app.
    Storage and token services are initialised here, before any request.
    """
    app = Flask(__name__)

    # Load configuration (reads .env via get_config)
    app.config.from_object(get_config(config_name))
    if overrides:
        app.config.update(overrides)

    # Cross-Origin Resource Sharing: enable for dev, configurable for prod
    CORS(app, resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", "*")}})

    # Swagger UI and JSON
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    register_error_handlers(app)

    storage.configure(app.config["DATABASE_URL"], echo=app.config["SQL_ECHO"])
    storage.reload()
    storage.ping()
    init_token_services(app)

    from .health import bp as health_bp
    from .auth import bp as auth_bp
    from .posts import bp as posts_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(posts_bp)

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        storage.close()

    @app.cli.command("purge-sessions")
    def purge_sessions():
        """Delete session rows whose refresh token has expired."""
        count = app.extensions["token_service"].store.purge_expired()
        logger.info("purged %d expired session(s)", count)
        click.echo(f"purged {count} expired session(s)")

    @app.route("/")
    def root():
        return {
            "message": "Welcome to Session Token API",
            "docs": "/apidocs/",
            "health": "/health",
        }, 200

    logger.debug("app created (env=%s)", app.config["APP_ENV"])
    return app
