"""
Connector routes — register spreadsheets, read their headers, configure field mappings.
"""
import logging

from flask import Blueprint, request, jsonify

from sheetsync.extensions import get_services
from sheetsync.routes.common import error_response, tenant_id, missing_tenant

logger = logging.getLogger(__name__)

bp = Blueprint('connectors', __name__, url_prefix='/api/sheets')

REQUIRED_MAPPING_FIELDS = ['cust_name', 'cust_phone_no', 'cust_email']


@bp.route('/connectors', methods=['POST'])
def create_connector():
    aid = tenant_id()
    if not aid:
        return missing_tenant()

    data = request.get_json(silent=True) or {}
    sheet_id = (data.get('sheet_id') or '').strip()
    if not sheet_id:
        return error_response('sheet_id is required in request body', 400)

    store = get_services().store
    try:
        if store.get_connector(aid, sheet_id):
            return error_response('Sheet connector already exists for this aid and sheet_id', 409)
        connector = store.create_connector(aid, sheet_id, data.get('sheet_name'))
        return jsonify({'success': True, 'data': connector.to_dict()})
    except Exception as e:
        logger.error("Create connector failed for %s: %s", sheet_id, e, exc_info=True)
        return error_response(str(e), 500)


@bp.route('/connectors', methods=['DELETE'])
def delete_connector():
    """Delete a connector together with its field mappings (all or nothing)."""
    aid = tenant_id()
    if not aid:
        return missing_tenant()

    data = request.get_json(silent=True) or {}
    sheet_id = (data.get('sheet_id') or '').strip()
    if not sheet_id:
        return error_response('sheet_id is required in request body', 400)

    store = get_services().store
    try:
        if not store.get_connector(aid, sheet_id):
            return error_response('Sheet connector not found', 404)
        if not store.delete_connector_with_mappings(aid, sheet_id):
            return error_response('Failed to delete connector', 500)
        return jsonify({
            'success': True,
            'message': 'Sheet connector and related field mappings deleted successfully',
            'data': {'aid': aid, 'sheet_id': sheet_id},
        })
    except Exception as e:
        logger.error("Delete connector failed for %s: %s", sheet_id, e, exc_info=True)
        return error_response(str(e), 500)


@bp.route('', methods=['GET'])
def list_sheets():
    """Connectors for the tenant, flagged with whether any field mapping exists."""
    aid = tenant_id()
    if not aid:
        return missing_tenant()

    store = get_services().store
    try:
        sheets = []
        for connector in store.list_connectors(aid):
            mappings = store.list_field_mappings(aid, connector.sheet_id)
            sheets.append({
                'id': connector.id,
                'sheet_id': connector.sheet_id,
                'sheet_name': connector.sheet_name or 'NA',
                'created_at': connector.created_at.isoformat() if connector.created_at else None,
                'field_mapping_status': bool(mappings),
                'mapped_sub_sheets': [m.sub_sheet_name for m in mappings],
            })
        return jsonify({'success': True, 'data': sheets})
    except Exception as e:
        logger.error("List sheets failed for %s: %s", aid, e, exc_info=True)
        return error_response(str(e), 500)


@bp.route('/columns', methods=['POST'])
def sheet_columns():
    """Raw header row of every sub-sheet, for building a field mapping."""
    aid = tenant_id()
    if not aid:
        return missing_tenant()

    data = request.get_json(silent=True) or {}
    sheet_id = (data.get('sheet_id') or '').strip()
    if not sheet_id:
        return error_response('sheet_id is required in request body', 400)

    services = get_services()
    try:
        if not services.store.get_connector(aid, sheet_id):
            return error_response('Sheet connector not found. Please create a connector first.', 404)
        headers = services.reader.fetch_headers(sheet_id)
        return jsonify({'success': True, 'data': {'sheet_id': sheet_id, 'columns': headers}})
    except Exception as e:
        logger.error("Fetching columns failed for %s: %s", sheet_id, e, exc_info=True)
        return error_response(f'Failed to fetch sheet headers: {e}', 500)


@bp.route('/field-mappings', methods=['POST'])
def save_field_mapping():
    aid = tenant_id()
    if not aid:
        return missing_tenant()

    data = request.get_json(silent=True) or {}
    sheet_id = (data.get('sheet_id') or '').strip()
    sub_sheet_name = (data.get('sub_sheet_name') or '').strip()
    if not sheet_id:
        return error_response('sheet_id is required in request body', 400)
    if not sub_sheet_name:
        return error_response('sub_sheet_name is required in request body', 400)

    missing = [f for f in REQUIRED_MAPPING_FIELDS if not data.get(f)]
    if missing:
        return error_response(f"Missing required fields: {', '.join(missing)}", 400)

    store = get_services().store
    try:
        if not store.get_connector(aid, sheet_id):
            return error_response('Sheet connector not found. Please create a connector first.', 404)
        mapping = store.upsert_field_mapping(aid, sheet_id, sub_sheet_name, data)
        return jsonify({
            'success': True,
            'message': 'Field mapping saved successfully',
            'data': mapping.to_dict(),
        })
    except Exception as e:
        logger.error("Saving field mapping failed for %s/%s: %s", sheet_id, sub_sheet_name, e, exc_info=True)
        return error_response(str(e), 500)


@bp.route('/field-mappings', methods=['GET'])
def list_field_mappings():
    aid = tenant_id()
    if not aid:
        return missing_tenant()

    sheet_id = (request.args.get('sheet_id') or '').strip()
    if not sheet_id:
        return error_response('sheet_id query parameter is required', 400)

    try:
        mappings = get_services().store.list_field_mappings(aid, sheet_id)
        return jsonify({'success': True, 'data': [m.to_dict() for m in mappings]})
    except Exception as e:
        return error_response(str(e), 500)
