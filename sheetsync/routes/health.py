"""
Health routes — database reachability and circuit breaker state.
"""
import logging
from datetime import datetime, timezone

from flask import Blueprint, jsonify

from sheetsync.extensions import get_services
from sheetsync.services.circuit_breaker import get_all_breakers, get_breaker

logger = logging.getLogger(__name__)

bp = Blueprint('health', __name__)


@bp.route('/health')
def health():
    try:
        get_services().store.ping()
        database = 'connected'
    except Exception as e:
        logger.error("Database health check failed: %s", e)
        database = 'disconnected'

    services = {name: cb.get_health() for name, cb in get_all_breakers().items()}
    ok = database == 'connected'
    return jsonify({
        'status': 'ok' if ok else 'error',
        'database': database,
        'services': services,
        'timestamp': datetime.now(timezone.utc).isoformat(),
    }), 200 if ok else 503


@bp.route('/health/<service>/reset', methods=['POST'])
def reset_circuit(service):
    cb = get_breaker(service)
    if cb is None:
        return jsonify({'ok': False, 'error': f'Unknown service: {service}'}), 404
    cb.reset()
    return jsonify({'ok': True, 'service': cb.get_health()})
