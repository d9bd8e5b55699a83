"""
Main routes - health check for load balancers.
"""
from flask import current_app, jsonify

from roadmap.blueprints.main import main_bp
from roadmap.extensions import db, limiter


@main_bp.route('/health')
@limiter.exempt
def health_check():
    """Health check endpoint for the load balancer."""
    try:
        db.session.execute(db.text('SELECT 1'))
        db_status = 'healthy'
    except Exception as e:
        current_app.logger.error(f'Health check database error: {e}')
        db_status = 'unhealthy'

    status = 'healthy' if db_status == 'healthy' else 'unhealthy'
    return jsonify({
        'status': status,
        'database': db_status,
        'service': 'feature-roadmap',
    }), 200 if status == 'healthy' else 503
