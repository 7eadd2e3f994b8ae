# civic_portal/__init__.py

import logging
import os

from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_jwt_extended import JWTManager
from werkzeug.middleware.proxy_fix import ProxyFix

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

db = SQLAlchemy()  # Database ORM
migrate = Migrate()  # DB migrations
jwt = JWTManager()
limiter = Limiter(key_func=get_remote_address)

MIGRATIONS_DIR = os.path.join(os.path.dirname(__file__), 'database', 'migrations')


def _engine_options(app):
    uri = app.config['SQLALCHEMY_DATABASE_URI']
    timeout = app.config.get('STORE_TIMEOUT_SECONDS', 5)
    if uri.startswith('sqlite'):
        return {'connect_args': {'timeout': timeout}}
    return {
        'connect_args': {'connect_timeout': timeout},
        'pool_timeout': timeout,
        'pool_pre_ping': True,
    }


def _unauthorized(message):
    return jsonify({"success": False, "error": "Unauthorized", "message": message}), 401


@jwt.user_lookup_loader
def load_account(jwt_header, jwt_data):
    from civic_portal.database.models import Account
    try:
        account_id = int(jwt_data["sub"])
    except (TypeError, ValueError):
        return None
    return db.session.get(Account, account_id)


@jwt.user_lookup_error_loader
def account_lookup_failed(jwt_header, jwt_data):
    return _unauthorized("Account no longer exists")


@jwt.expired_token_loader
def expired_token_callback(jwt_header, jwt_payload):
    return _unauthorized("Token has expired")


@jwt.invalid_token_loader
def invalid_token_callback(reason):
    return _unauthorized("Invalid token")


@jwt.unauthorized_loader
def missing_token_callback(reason):
    return _unauthorized("Missing bearer token")


def create_app(config_object=None, overrides=None):
    app = Flask(__name__)
    app.config.from_object(
        config_object or os.environ.get('CIVIC_PORTAL_CONFIG', 'civic_portal.config.Config')
    )
    if overrides:
        app.config.update(overrides)
    app.config.setdefault('SQLALCHEMY_ENGINE_OPTIONS', _engine_options(app))

    # Fix proxy headers for HTTPS
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    # Ensure model modules are imported so SQLAlchemy metadata is populated
    # for Flask-Migrate / Alembic.
    from civic_portal.database import models  # noqa: F401

    db.init_app(app)
    migrate.init_app(app, db, directory=MIGRATIONS_DIR)
    jwt.init_app(app)
    limiter.init_app(app)

    from civic_portal.errors import register_error_handlers
    from civic_portal.services import PortalServices
    from civic_portal.routes import api
    from civic_portal.seed import register_commands

    register_error_handlers(app)
    app.extensions['civic_portal'] = PortalServices.from_app(app)
    app.register_blueprint(api)
    register_commands(app)
    return app
