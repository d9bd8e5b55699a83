"""
Flask extensions initialization.
Extensions are initialized here and bound to the app in the factory.
"""
from contextlib import contextmanager

from flask_sqlalchemy import SQLAlchemy
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_mailman import Mail
from flask_caching import Cache
from flask_cors import CORS
from flask_compress import Compress

# Database
db = SQLAlchemy()

# Rate Limiting
limiter = Limiter(key_func=get_remote_address)

# Email (SendGrid SMTP relay)
mail = Mail()

# Caching
cache = Cache()

# Response compression (gzip)
compress = Compress()


def init_extensions(app):
    """Initialize all extensions with the Flask app."""
    db.init_app(app)
    limiter.init_app(app)
    mail.init_app(app)
    cache.init_app(app)
    compress.init_app(app)

    # Embeds are loaded from customer sites: any origin, no credentials.
    # Everything else only from the configured frontend origins.
    allowed_origins = [
        o.strip() for o in app.config.get('APP_CORS_ORIGINS', '').split(',') if o.strip()
    ]
    CORS(app, resources={
        r'/api/embed/*': {'origins': '*', 'supports_credentials': False},
        r'/api/board/*': {'origins': '*', 'supports_credentials': False},
        r'/api/*': {
            'origins': allowed_origins,
            'methods': ['GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS'],
            'allow_headers': ['Authorization', 'Content-Type'],
            'max_age': 600,
        },
    })


@contextmanager
def atomic():
    """Run a block in one all-or-nothing transaction.

    Commits when the block exits normally; rolls back and re-raises on any
    exception, so a failure halfway through never leaves partial rows.

    Usage:
        with atomic():
            db.session.add(org)
            db.session.add(user)
    """
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
