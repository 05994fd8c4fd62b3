"""
Sync routes — trigger a manual sync, verify sheet access, read leads and history.
"""
import logging
import math

from flask import Blueprint, request, jsonify

from sheetsync.extensions import get_services
from sheetsync.pipeline.base import FieldMappingNotFoundError, LeadStatus, ProcessStatus
from sheetsync.routes.common import error_response, tenant_id, missing_tenant

logger = logging.getLogger(__name__)

bp = Blueprint('sync', __name__, url_prefix='/api/leads')


def _int_arg(name, default, minimum=1, maximum=500):
    try:
        value = int(request.args.get(name, default))
    except (TypeError, ValueError):
        value = default
    return max(minimum, min(value, maximum))


@bp.route('/sync/manual', methods=['POST'])
def sync_manual():
    aid = tenant_id()
    if not aid:
        return missing_tenant()

    data = request.get_json(silent=True) or {}
    spreadsheet_id = (data.get('spreadsheetId') or '').strip()
    sub_sheet = (data.get('subSheet') or '').strip() or None
    if not spreadsheet_id:
        return error_response('spreadsheetId is required', 400)

    manager = get_services().sync_manager()
    try:
        summary = manager.sync_leads(aid, spreadsheet_id, sub_sheet=sub_sheet)
    except FieldMappingNotFoundError as e:
        return error_response(str(e), 400)
    except Exception as e:
        logger.error("Sync of %s failed for %s: %s", spreadsheet_id, aid, e, exc_info=True)
        return error_response(str(e), 500)

    result = summary.to_dict()
    return jsonify({
        'success': True,
        'message': f"Sync completed with status: {result['status']}",
        'stats': {k: v for k, v in result.items() if k != 'details'},
        'details': result['details'],
    })


@bp.route('/sync/verify', methods=['POST'])
def verify_sheet_connection():
    data = request.get_json(silent=True) or {}
    spreadsheet_id = (data.get('spreadsheetId') or '').strip()
    if not spreadsheet_id:
        return error_response('spreadsheetId is required', 400)

    try:
        info = get_services().reader.get_sheet_info(spreadsheet_id)
        return jsonify({'success': True, 'data': info})
    except Exception as e:
        logger.warning("Sheet %s not reachable: %s", spreadsheet_id, e)
        return error_response(f'Failed to connect to sheet: {e}', 500)


@bp.route('/sync/history')
def sync_history():
    aid = tenant_id()
    if not aid:
        return missing_tenant()

    limit = _int_arg('limit', 50)
    store = get_services().store
    try:
        return jsonify({
            'success': True,
            'data': {
                'recentLeads': [lead.to_dict() for lead in store.recent_synced_leads(aid, limit)],
                'syncHistory': [h.to_dict() for h in store.recent_sync_history(aid, 10)],
            },
        })
    except Exception as e:
        return error_response(str(e), 500)


@bp.route('', methods=['GET'])
def list_leads():
    aid = tenant_id()
    if not aid:
        return missing_tenant()

    status = request.args.get('status') or None
    allowed = [s.value for s in LeadStatus]
    if status and status not in allowed:
        return error_response(f"status must be one of: {', '.join(allowed)}", 400)
    page = _int_arg('page', 1, maximum=10 ** 6)
    limit = _int_arg('limit', 50)

    try:
        leads, total = get_services().store.list_leads(aid, status=status, page=page, limit=limit)
        return jsonify({
            'success': True,
            'data': [lead.to_dict() for lead in leads],
            'pagination': {
                'page': page,
                'limit': limit,
                'total': total,
                'pages': math.ceil(total / limit),
            },
        })
    except Exception as e:
        return error_response(str(e), 500)


@bp.route('/process-status', methods=['POST'])
def leads_by_process_status():
    aid = tenant_id()
    if not aid:
        return missing_tenant()

    data = request.get_json(silent=True) or {}
    process_status = data.get('process_status')
    allowed = [s.value for s in ProcessStatus]
    if process_status not in allowed:
        return error_response('process_status is required and must be either "success" or "failed"', 400)

    try:
        leads = get_services().store.list_leads_by_process_status(aid, process_status)
        return jsonify({'success': True, 'data': [lead.to_dict() for lead in leads], 'count': len(leads)})
    except Exception as e:
        return error_response(str(e), 500)


@bp.route('/logs')
def lead_logs():
    """Sync history rows that created at least one lead."""
    aid = tenant_id()
    if not aid:
        return missing_tenant()

    try:
        logs = get_services().store.sync_logs(aid)
        return jsonify({'success': True, 'data': [h.to_dict() for h in logs], 'count': len(logs)})
    except Exception as e:
        return error_response(str(e), 500)


@bp.route('/failed')
def failed_leads():
    aid = tenant_id()
    if not aid:
        return missing_tenant()

    try:
        rows = get_services().store.list_failed_leads(aid)
        return jsonify({'success': True, 'data': [row.to_dict() for row in rows], 'count': len(rows)})
    except Exception as e:
        return error_response(str(e), 500)
