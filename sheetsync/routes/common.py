"""
Helpers shared by the JSON blueprints.
"""
from flask import jsonify, request

from sheetsync.config import TENANT_HEADER


def error_response(message, status):
    return jsonify({'success': False, 'error': message}), status


def tenant_id():
    """Tenant id from the request header, or None."""
    aid = request.headers.get(TENANT_HEADER, '').strip()
    return aid or None


def missing_tenant():
    return error_response(f'{TENANT_HEADER} header is required', 400)
