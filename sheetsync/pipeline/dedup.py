"""
Dedup guard — has this exact sheet row already been ingested?

Keyed on (tenant, sub-sheet, email, row number), so re-running a sync over an
unchanged sheet skips every row. The same email on another row is not caught
here; the store's (tenant, sub-sheet, email) constraint rejects it on insert.
"""
import logging

from sheetsync.pipeline.validator import normalize_email

logger = logging.getLogger('pipeline.dedup')


class DedupGuard:

    def __init__(self, store):
        self.store = store

    def is_duplicate(self, aid: str, sub_sheet: str, email: str, row_number: int) -> bool:
        existing = self.store.find_lead_by_row(aid, sub_sheet, normalize_email(email), row_number)
        if existing is not None:
            logger.debug("Row %d of %s already synced as lead %s", row_number, sub_sheet, existing.id)
            return True
        return False
