"""
Lead relay — push a persisted lead to the downstream CRM.

The lead already exists in our store when this runs, so a CRM outage must not
undo it or stop the batch: every failure becomes a RelayResult, never an exception.
"""
import logging
from typing import Any, Dict

import requests

from sheetsync.config import DEFAULT_LEAD_SOURCE
from sheetsync.pipeline.base import ProcessStatus, RelayResult

logger = logging.getLogger('pipeline.relay')


def build_payload(lead, spreadsheet_id: str) -> Dict[str, Any]:
    return {
        'para': {
            'cust_name': lead.name,
            'cust_email': lead.email,
            'phone_no': lead.phone,
            'source_id': lead.source or DEFAULT_LEAD_SOURCE,
            'google_sheet_id': spreadsheet_id,
        },
    }


def _error_message(exc: Exception) -> str:
    """Most specific message available: response body → response text → exception."""
    response = getattr(exc, 'response', None)
    if response is not None:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get('message'):
            return str(body['message'])
        text = (getattr(response, 'text', '') or '').strip()
        if text:
            return text[:500]
    return str(exc) or exc.__class__.__name__


class LeadRelay:

    def __init__(self, client):
        self.client = client

    def relay(self, lead, tenant_key: str, spreadsheet_id: str) -> RelayResult:
        payload = build_payload(lead, spreadsheet_id)
        try:
            body = self.client.submit_lead(payload, tenant_key)
        except requests.RequestException as e:
            logger.error("CRM relay failed for lead %s: %s", lead.id, e)
            return RelayResult(ProcessStatus.FAILED, _error_message(e))
        except Exception as e:
            logger.error("CRM relay error for lead %s: %s", lead.id, e, exc_info=True)
            return RelayResult(ProcessStatus.FAILED, str(e) or e.__class__.__name__)

        if not isinstance(body, dict):
            return RelayResult(ProcessStatus.FAILED, f"Malformed CRM response: {str(body)[:200]}")
        if body.get('status') == 'success':
            logger.info("Relayed lead %s", lead.id)
            return RelayResult(ProcessStatus.SUCCESS)

        message = body.get('message') or f"CRM returned status {body.get('status')!r}"
        logger.warning("CRM rejected lead %s: %s", lead.id, message)
        return RelayResult(ProcessStatus.FAILED, str(message))
