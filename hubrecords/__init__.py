# hubrecords/__init__.py

from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix
import logging
import os
from flask_jwt_extended import JWTManager
from datetime import timedelta

from hubrecords.errors import HubError, InternalError

logger = logging.getLogger(__name__)


def _env_flag(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


app = Flask(__name__)
app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'change-me-in-production')
app.config['JWT_SECRET_KEY'] = os.environ.get('JWT_SECRET_KEY', 'change-me-in-production-hubjwt')
app.config['JWT_ACCESS_TOKEN_EXPIRES'] = timedelta(hours=int(os.environ.get('JWT_ACCESS_TOKEN_HOURS', '168')))
app.config['JWT_TOKEN_LOCATION'] = ['headers']  # Authorization: Bearer <token>

app.config['SQLALCHEMY_DATABASE_URI'] = os.environ.get('DATABASE_URL', 'sqlite:///hubrecords.sqlite3')
app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False

# Contact field encryption and record workflow
app.config['FIELD_ENCRYPTION_KEY'] = os.environ.get('FIELD_ENCRYPTION_KEY', 'default-field-key-change-me-0123456789')
app.config['FIELD_ENCRYPTION_ENABLED'] = _env_flag('FIELD_ENCRYPTION_ENABLED', True)
app.config['STRICT_STATUS_TRANSITIONS'] = _env_flag('STRICT_STATUS_TRANSITIONS', False)
app.config['ENFORCE_PASSWORD_POLICY'] = _env_flag('ENFORCE_PASSWORD_POLICY', False)
app.config['ADMIN_PAGE_MAX'] = 500

app.config['AUDIT_LOG_DIR'] = os.environ.get('AUDIT_LOG_DIR', 'logs')
app.config['AUDIT_SIGNING_KEY'] = os.environ.get('AUDIT_SIGNING_KEY')

app.config['RATELIMIT_ENABLED'] = _env_flag('RATELIMIT_ENABLED', True)
app.config['RATELIMIT_STORAGE_URI'] = os.environ.get('RATELIMIT_STORAGE_URI', 'memory://')
app.config['AUTH_RATE_LIMIT'] = os.environ.get('AUTH_RATE_LIMIT', '10/minute')

jwt = JWTManager(app)

# Fix proxy headers for HTTPS
app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

# Initialize extensions
db = SQLAlchemy(app)  # Database ORM
migrate = Migrate(app, db, directory=os.path.join(os.path.dirname(__file__), 'database', 'migrations'))

limiter = Limiter(key_func=get_remote_address,
                  default_limits=[os.environ.get('RATELIMIT_DEFAULT', '100/minute')])
limiter.init_app(app)


@app.errorhandler(HubError)
def handle_hub_error(error):
    if error.status_code >= 500:
        logger.error("Request failed: %s", error.message)
    return jsonify(error.to_dict()), error.status_code


@app.errorhandler(HTTPException)
def handle_http_error(error):
    return jsonify({'error': error.description, 'kind': error.name}), error.code


@app.errorhandler(Exception)
def handle_unexpected_error(error):
    db.session.rollback()
    logger.exception("Unhandled error")
    return jsonify(InternalError("Internal server error").to_dict()), 500


# Ensure model modules are imported so SQLAlchemy metadata is populated
# This makes models discoverable by Flask-Migrate / Alembic when running
# `flask db migrate`.
from hubrecords.database import models  # noqa: F401,E402

from hubrecords import routes  # noqa: F401,E402
from hubrecords import create_user  # noqa: F401,E402
