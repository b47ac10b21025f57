from flask import Flask, current_app, request
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from datetime import timedelta
from typing import Optional, Dict, Any
import os

from agency.errors import error_payload

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()

DEFAULT_SESSION_LIFETIME = 7 * 24 * 3600


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ('1', 'true', 'yes', 'on')


def _unauthenticated(detail: str):
    return error_payload(401, 'Unauthorized', detail, 'Unauthenticated'), 401


def _register_jwt_callbacks():
    # flask-jwt-extended answers 401/422 with {"msg": ...}; every token failure here is a 401
    # jwt is shared by every app, so the loaders log through current_app
    @jwt.unauthorized_loader
    def missing_token(reason):
        current_app.logger.info('Missing or malformed Authorization header: %s', reason)
        return _unauthenticated('Authentication required')

    @jwt.invalid_token_loader
    def invalid_token(reason):
        current_app.logger.info('Invalid bearer token: %s', reason)
        return _unauthenticated('Invalid token')

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return _unauthenticated('Token has expired')


def create_app(config: Optional[Dict[str, Any]] = None):
    global db_engine, SessionLocal
    app = Flask(__name__)

    app.config['JWT_SECRET_KEY'] = os.getenv('JWT_SECRET_KEY', 'dev-secret-change-me-to-a-long-random-string')
    app.config['JWT_ALGORITHM'] = 'HS256'
    app.config['JWT_TOKEN_LOCATION'] = ['headers']
    app.config['SESSION_LIFETIME_SECONDS'] = int(os.getenv('SESSION_LIFETIME_SECONDS', DEFAULT_SESSION_LIFETIME))
    app.config['DATABASE_URL'] = os.getenv('DATABASE_URL', 'sqlite:///dev.db')
    app.config['CORS_ALLOWED_ORIGINS'] = os.getenv('CORS_ALLOWED_ORIGINS', '*')
    app.config['AUTHZ_RECHECK_IDENTITY'] = _env_flag('AUTHZ_RECHECK_IDENTITY')

    if config:
        # allow tests or callers to override default config values
        app.config.update(config)
    app.config['JWT_ACCESS_TOKEN_EXPIRES'] = timedelta(seconds=int(app.config['SESSION_LIFETIME_SECONDS']))

    # Database
    db_url = app.config['DATABASE_URL']
    if db_url.endswith(':memory:'):
        # one shared in-memory SQLite database across all sessions
        db_engine = create_engine(
            db_url,
            echo=False,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        db_engine = create_engine(db_url, echo=False, future=True)
    SessionLocal = scoped_session(sessionmaker(bind=db_engine, expire_on_commit=False, autoflush=False))

    jwt.init_app(app)
    _register_jwt_callbacks()

    from .routes.auth import auth_bp
    from .routes.users import users_bp
    from .routes.workspaces import workspaces_bp
    from .routes.projects import projects_bp
    from .routes.tasks import tasks_bp
    from .routes.comments import comments_bp
    from .routes.payments import payments_bp
    from .routes.revenues import revenues_bp
    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(users_bp, url_prefix='/users')
    app.register_blueprint(workspaces_bp, url_prefix='/workspaces')
    app.register_blueprint(projects_bp, url_prefix='/projects')
    app.register_blueprint(tasks_bp, url_prefix='/tasks')
    app.register_blueprint(comments_bp, url_prefix='/comments')
    app.register_blueprint(payments_bp, url_prefix='/payments')
    app.register_blueprint(revenues_bp, url_prefix='/revenues')

    @app.route('/healthz')
    def health():
        return {'status': 'ok'}

    @app.after_request
    def cors_headers(resp):
        resp.headers['Access-Control-Allow-Origin'] = app.config['CORS_ALLOWED_ORIGINS']
        resp.headers['Access-Control-Allow-Methods'] = 'GET, POST, PUT, DELETE, OPTIONS'
        resp.headers['Access-Control-Allow-Headers'] = 'Content-Type, Authorization'
        return resp

    # Unified error handler producing standardized JSON shape
    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        try:
            get_db().rollback()
        except Exception:
            app.logger.warning('Session rollback failed', exc_info=True)
        if isinstance(e, HTTPException):
            return error_payload(e.code, e.name, e.description, getattr(e, 'reason', None)), e.code
        app.logger.exception('Unhandled exception on %s %s', request.method, request.path)
        return error_payload(500, 'Internal Server Error', 'Unexpected error'), 500

    return app


def get_db():
    return SessionLocal()
