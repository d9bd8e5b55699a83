"""
Feature Roadmap Application Factory.
Creates and configures the Flask application instance.
"""
import os
import json
import logging
import uuid
from datetime import datetime, timezone

import click
from flask import Flask, jsonify, request, g
from werkzeug.middleware.proxy_fix import ProxyFix

from roadmap.config import config
from roadmap.errors import RoadmapError
from roadmap.extensions import init_extensions, db


def _init_sentry(app):
    """Initialize Sentry error tracking for production."""
    dsn = app.config.get('SENTRY_DSN') or os.environ.get('SENTRY_DSN')
    if not dsn:
        app.logger.info('SENTRY_DSN not set - error tracking disabled.')
        return

    try:
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration
        from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

        sentry_sdk.init(
            dsn=dsn,
            integrations=[FlaskIntegration(), SqlalchemyIntegration()],
            traces_sample_rate=float(os.environ.get('SENTRY_TRACES_RATE', '0.1')),
            environment=os.environ.get('FLASK_ENV', 'production'),
            send_default_pii=False,
        )
        app.logger.info('Sentry error tracking initialized.')
    except ImportError:
        app.logger.warning('sentry-sdk not installed - error tracking disabled.')


def create_app(config_name=None):
    """
    Application factory for creating Flask app instances.

    Args:
        config_name: Configuration to use (development, testing, production)

    Returns:
        Configured Flask application instance
    """
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    app = Flask(__name__)

    # Load configuration
    config_class = config[config_name]
    app.config.from_object(config_class)

    # Client address from the trusted proxy hops only
    if app.config.get('PROXY_FIX_X_FOR'):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=app.config['PROXY_FIX_X_FOR'], x_proto=1)

    # Initialize Sentry (production only)
    if config_name == 'production':
        _init_sentry(app)

    # Call init_app if available (production validation happens here)
    if hasattr(config_class, 'init_app'):
        config_class.init_app(app)

    # Initialize extensions
    init_extensions(app)

    # Billing mode cache lifetime (process-wide)
    from roadmap.services.billing_mode import billing_mode_cache
    billing_mode_cache.ttl = app.config.get('BILLING_MODE_CACHE_TTL', 60)

    register_blueprints(app)
    register_error_handlers(app)
    register_cli_commands(app)
    configure_logging(app)
    register_security_headers(app)

    # Create database tables (development only)
    if config_name == 'development':
        with app.app_context():
            db.create_all()

    return app


def register_blueprints(app):
    """Register all application blueprints."""
    from roadmap.blueprints.main import main_bp
    from roadmap.blueprints.auth import auth_bp
    from roadmap.blueprints.suggestions import suggestions_bp
    from roadmap.blueprints.categories import categories_bp
    from roadmap.blueprints.users import users_bp
    from roadmap.blueprints.board import board_bp
    from roadmap.blueprints.embed import embed_bp
    from roadmap.blueprints.billing import billing_bp
    from roadmap.blueprints.webhooks import webhooks_bp
    from roadmap.blueprints.platform import platform_bp

    app.register_blueprint(main_bp, url_prefix='/api')
    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(suggestions_bp, url_prefix='/api/suggestions')
    app.register_blueprint(categories_bp, url_prefix='/api/categories')
    app.register_blueprint(users_bp, url_prefix='/api/users')
    app.register_blueprint(board_bp, url_prefix='/api/board')
    app.register_blueprint(embed_bp, url_prefix='/api/embed')
    app.register_blueprint(billing_bp, url_prefix='/api/billing')
    app.register_blueprint(webhooks_bp, url_prefix='/api/webhooks')
    app.register_blueprint(platform_bp, url_prefix='/api/platform')


def register_error_handlers(app):
    """Render service errors and common HTTP errors as JSON."""

    @app.errorhandler(RoadmapError)
    def roadmap_error(error):
        if error.status >= 500:
            app.logger.error(f'{type(error).__name__} ({error.code}): {error.message}')
        else:
            app.logger.info(f'{type(error).__name__} ({error.code}): {error.message}')
        return jsonify(error.to_dict()), error.status

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': {'code': 'not_found', 'message': 'Resource not found.'}}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': {'code': 'method_not_allowed', 'message': 'Method not allowed.'}}), 405

    @app.errorhandler(429)
    def ratelimit_error(error):
        return jsonify({'error': {'code': 'rate_limit_exceeded', 'message': 'Too many requests. Try again later.'}}), 429

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        request_id = g.get('request_id', '-')
        app.logger.error('500 Internal Server Error: %s (request_id=%s)', type(error).__name__, request_id, exc_info=True)
        return jsonify({'error': {'code': 'internal_error', 'message': 'Internal server error.', 'request_id': request_id}}), 500


def register_cli_commands(app):
    """Register custom CLI commands."""

    @app.cli.command('init-db')
    def init_db():
        """Create tables and the default email templates."""
        from roadmap.models.platform import EmailTemplate
        from roadmap.utils.email import DEFAULT_TEMPLATES

        db.create_all()

        created = 0
        for name, (subject, html_body) in DEFAULT_TEMPLATES.items():
            if EmailTemplate.query.filter_by(name=name).first():
                continue
            db.session.add(EmailTemplate(name=name, subject=subject, html_body=html_body))
            created += 1
        db.session.commit()
        click.echo(f'Database initialized ({created} email template(s) created).')

    @app.cli.command('seed-plans')
    def seed_plans():
        """Insert the default Starter, Pro and Business plans."""
        from roadmap.services.plan_service import PlanService

        added = PlanService.seed_default_plans()
        click.echo(f'{added} plan(s) added.')

    @app.cli.command('set-billing-mode')
    @click.argument('mode', type=click.Choice(['test', 'live']))
    def set_billing_mode_cmd(mode):
        """Switch the active Stripe credential set."""
        from roadmap.services.platform_service import PlatformService

        try:
            PlatformService.set_stripe_mode(mode)
        except RoadmapError as e:
            raise click.ClickException(e.message)
        click.echo(f'Billing mode set to {mode}.')

    @app.cli.command('create-super-admin')
    @click.option('--email', prompt=True, help='Super admin email')
    @click.option('--name', default='Platform Admin', help='Display name')
    @click.option('--organization', 'org_name', default='Platform', help='Organization for a new account')
    @click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
    def create_super_admin(email, name, org_name, password):
        """Promote an existing user, or register a new organization admin, as super admin."""
        from roadmap.models.user import User
        from roadmap.services.account_service import AccountService, normalize_email

        user = User.query.filter_by(email=normalize_email(email)).order_by(User.created_at).first()
        if user is None:
            try:
                _, user = AccountService.register(org_name, name, email, password)
            except RoadmapError as e:
                raise click.ClickException(e.message)
        user.is_super_admin = True
        db.session.commit()
        click.echo(f'{user.email} is now a super admin.')


class JSONFormatter(logging.Formatter):
    """JSON log formatter for production (cloud log aggregation)."""

    def format(self, record):
        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'message': record.getMessage(),
            'module': record.module,
            'line': record.lineno,
        }
        # Add request_id if available
        try:
            log_entry['request_id'] = g.get('request_id', '-')
        except RuntimeError:
            pass  # Outside request context
        if record.exc_info and record.exc_info[0]:
            log_entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(log_entry, ensure_ascii=False)


def configure_logging(app):
    """Configure application logging.

    Production: JSON to stdout.
    Development: plain text.
    """
    if app.testing:
        return

    @app.before_request
    def assign_request_id():
        g.request_id = request.headers.get('X-Request-ID', str(uuid.uuid4())[:8])

    @app.after_request
    def log_request(response):
        app.logger.info('%s %s %s', request.method, request.path, response.status_code)
        return response

    if not app.debug:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(JSONFormatter())
        stream_handler.setLevel(logging.INFO)

        # Clear existing handlers to avoid duplicates
        app.logger.handlers.clear()
        app.logger.addHandler(stream_handler)
        app.logger.setLevel(logging.INFO)
        app.logger.info('Feature Roadmap startup (JSON logging)')
    else:
        app.logger.setLevel(logging.DEBUG)
        app.logger.info('Feature Roadmap startup (development)')


def register_security_headers(app):
    """Register security headers for all responses."""

    @app.after_request
    def add_security_headers(response):
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
        response.headers['X-Permitted-Cross-Domain-Policies'] = 'none'

        # HSTS - Force HTTPS (1 year, include subdomains)
        if not app.debug:
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
        return response
