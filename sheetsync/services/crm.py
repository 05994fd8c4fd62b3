"""
Downstream CRM lead-create client.

One POST per lead, tenant key in a header, JSON in and out. Errors propagate as
requests exceptions; interpreting them is the relay's job.
"""
import logging
from typing import Any, Dict, Optional

import requests

from sheetsync.config import LEAD_CREATE_URL, CRM_TIMEOUT, TENANT_HEADER

logger = logging.getLogger('services.crm')


class CrmClient:

    def __init__(self, url=LEAD_CREATE_URL, timeout=CRM_TIMEOUT, tenant_header=TENANT_HEADER,
                 breaker=None, session: Optional[requests.Session] = None):
        self.url = url
        self.timeout = timeout
        self.tenant_header = tenant_header
        self.breaker = breaker
        self.session = session or requests.Session()
        self.session.headers.update({
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        })

    def _post(self, payload, tenant_key):
        """Raw POST. Only 5xx raises here; 4xx answers are about the tenant, not the CRM."""
        resp = self.session.post(
            self.url,
            json=payload,
            headers={self.tenant_header: tenant_key},
            timeout=self.timeout,
        )
        if resp.status_code >= 500:
            resp.raise_for_status()
        return resp

    def submit_lead(self, payload: Dict[str, Any], tenant_key: str) -> Dict[str, Any]:
        """
        POST the lead payload and return the decoded response body.

        Raises requests.HTTPError on non-2xx, requests.RequestException on
        network errors/timeouts, ValueError on a non-JSON body and
        CircuitOpenError while the breaker is open. The breaker is shared by
        all tenants, so only transport errors, timeouts and 5xx count against it.
        """
        if self.breaker is not None:
            resp = self.breaker.call(self._post, payload, tenant_key)
        else:
            resp = self._post(payload, tenant_key)
        resp.raise_for_status()

        body = resp.json()
        logger.debug("CRM response %d: %s", resp.status_code, body)
        if not isinstance(body, dict):
            raise ValueError(f"Unexpected CRM response body: {str(body)[:200]}")
        return body
