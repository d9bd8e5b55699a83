"""
API helper functions: error formatting, request body access, origin checks.
"""
from urllib.parse import urlparse

from flask import request, jsonify

from roadmap.errors import ValidationError


def api_error(code, message, status=400, details=None):
    """Build a standard API error response."""
    error_body = {
        'error': {
            'code': code,
            'message': message,
        }
    }
    if details:
        error_body['error']['details'] = details
    return jsonify(error_body), status


def api_success(data, status=200):
    """Build a standard API success response."""
    return jsonify(data), status


def json_body():
    """Request JSON object, or ValidationError if the body is not one."""
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object.', code='invalid_json')
    return data


def client_ip():
    """Client address, as resolved by ProxyFix from trusted hops."""
    return (request.remote_addr or '')[:45] or None


def origin_allowed(allowed_domains):
    """Check the request's Origin (or Referer) host against an allow-list.

    A host matches a domain exactly or as a subdomain. An empty list allows
    everything, and so does a request without a parseable origin (direct
    browser access).
    """
    if not allowed_domains:
        return True
    origin = request.headers.get('Origin') or request.headers.get('Referer') or ''
    host = urlparse(origin).hostname if origin else None
    if not host:
        return True
    host = host.lower()
    for domain in allowed_domains:
        if not isinstance(domain, str):
            continue
        domain = domain.strip().lower()
        if domain and (host == domain or host.endswith('.' + domain)):
            return True
    return False
