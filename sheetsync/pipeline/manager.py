"""
Sync Manager — drives a sync run across a spreadsheet's mapped sub-sheets.

For each sub-sheet that has a field mapping, every row goes through:
  MAP → VALIDATE → DEDUP → CREATE LEAD → RELAY → RECORD PROCESS STATUS

Rows run one at a time so relay pressure on the CRM stays predictable and the
details list keeps sheet order. A row that blows up is counted as an error and
the run moves on; only a missing mapping or a failure outside the row loop
(sheet fetch, history write) aborts the run.
"""
import logging
from typing import List, Optional

from sheetsync.config import SYNC_THROTTLE_EVERY, SYNC_THROTTLE_DELAY
from sheetsync.pipeline.base import (
    FailureReason,
    FieldMappingNotFoundError,
    RowOutcome,
    RowResult,
    RunStatus,
    SheetRow,
    SubSheetResult,
    SyncSummary,
    Throttle,
)
from sheetsync.pipeline.dedup import DedupGuard
from sheetsync.pipeline.mapper import map_row
from sheetsync.pipeline.validator import validate
from sheetsync.services.sheets import a1_range
from sheetsync.services.store import DuplicateLeadError

logger = logging.getLogger('pipeline.manager')


class SyncManager:
    """
    Owns no connections itself: the store, sheet reader and relay are handed in
    by whoever builds the manager (see sheetsync.extensions.build_services).
    """

    def __init__(self, store, reader, relay, throttle: Optional[Throttle] = None):
        self.store = store
        self.reader = reader
        self.relay = relay
        self.dedup = DedupGuard(store)
        self.throttle = throttle or Throttle(SYNC_THROTTLE_EVERY, SYNC_THROTTLE_DELAY)

    # ── Public API ────────────────────────────────────────────────────

    def sync_leads(self, aid: str, spreadsheet_id: str, sub_sheet: Optional[str] = None,
                   sync_type: str = 'manual') -> SyncSummary:
        """
        Sync every mapped sub-sheet of a spreadsheet (or just `sub_sheet`).

        Raises FieldMappingNotFoundError before touching any row when nothing
        is mapped. Writes one SyncHistory row per processed sub-sheet.
        """
        mappings = self._load_mappings(aid, spreadsheet_id, sub_sheet)
        by_sub_sheet = {m.sub_sheet_name: m for m in mappings}

        available = self.reader.list_sub_sheets(spreadsheet_id)
        for name in by_sub_sheet:
            if name not in available:
                logger.warning("Mapped sub-sheet %r not found in %s, skipping", name, spreadsheet_id)

        summary = SyncSummary(aid=aid, spreadsheet_id=spreadsheet_id)
        logger.info("Starting %s sync for sheet %s, aid %s", sync_type, spreadsheet_id, aid)

        for name in available:
            mapping = by_sub_sheet.get(name)
            if mapping is None:
                continue
            result = self.sync_sub_sheet(aid, spreadsheet_id, name, mapping, sync_type=sync_type)
            summary.sub_sheets.append(result)

        counts = summary.counts
        logger.info(
            "Sync %s finished: %s (created=%d skipped=%d failed=%d errors=%d)",
            spreadsheet_id, summary.status.value, counts.created, counts.skipped, counts.failed, counts.errors,
        )
        return summary

    def sync_sub_sheet(self, aid: str, spreadsheet_id: str, sub_sheet: str, mapping,
                       sync_type: str = 'manual') -> SubSheetResult:
        rows = self.reader.fetch_rows(spreadsheet_id, a1_range(sub_sheet))
        result = SubSheetResult(sub_sheet=sub_sheet, total=len(rows))
        context = {'aid': aid, 'spreadsheet_id': spreadsheet_id, 'sub_sheet': sub_sheet}
        logger.info("Processing %d rows from %s", len(rows), sub_sheet, extra=context)

        for index, row in enumerate(rows):
            try:
                row_result = self.process_lead(aid, spreadsheet_id, sub_sheet, row, mapping)
            except Exception as e:
                logger.error("Error processing %s row %d: %s", sub_sheet, row.row_number, e,
                             exc_info=True, extra=dict(context, row_number=row.row_number))
                row_result = RowResult(row.row_number, RowOutcome.ERROR, error=str(e) or e.__class__.__name__)
            result.record(row_result)
            self.throttle.pause(index)

        status = result.status
        result.sync_id = self.store.create_sync_history(
            aid, spreadsheet_id, sub_sheet,
            total_records=result.total,
            created_count=result.counts.created,
            updated_count=result.counts.updated,
            skipped_count=result.counts.skipped,
            failed_count=result.counts.failed,
            error_count=result.counts.errors,
            sync_type=sync_type,
            status=status.value,
            error_message='Sync completed with errors' if status is RunStatus.ERROR else None,
        )
        return result

    def process_lead(self, aid: str, spreadsheet_id: str, sub_sheet: str, row: SheetRow, mapping) -> RowResult:
        """Run one row through the pipeline. Unexpected errors propagate to the caller."""
        lead = map_row(row.values, mapping)

        validation = validate(lead)
        if not validation.ok:
            reason = validation.reason
            self._record_failure(aid, spreadsheet_id, sub_sheet, row, lead, reason)
            return RowResult(row.row_number, RowOutcome.FAILED, reason=reason.value)

        if self.dedup.is_duplicate(aid, sub_sheet, lead.email, row.row_number):
            return RowResult(row.row_number, RowOutcome.SKIPPED, reason='Row already processed')

        try:
            created = self.store.create_lead(
                aid, spreadsheet_id, sub_sheet,
                name=lead.name,
                email=lead.email,
                phone=lead.phone,
                city=lead.city,
                source=lead.source,
                sheet_row_number=row.row_number,
            )
        except DuplicateLeadError:
            logger.info("%s row %d: %s already exists in sub-sheet", sub_sheet, row.row_number, lead.email)
            self._record_failure(aid, spreadsheet_id, sub_sheet, row, lead, FailureReason.DUPLICATE)
            return RowResult(row.row_number, RowOutcome.FAILED, reason=FailureReason.DUPLICATE.value)

        relay_result = self.relay.relay(created, aid, spreadsheet_id)
        self.store.update_lead_process_status(
            aid, created.id, relay_result.process_status.value, relay_result.message,
        )

        return RowResult(
            row.row_number,
            RowOutcome.CREATED,
            reason='New lead created',
            lead_id=created.id,
            process_status=relay_result.process_status,
        )

    # ── Private helpers ───────────────────────────────────────────────

    def _load_mappings(self, aid, spreadsheet_id, sub_sheet) -> List:
        if sub_sheet:
            mapping = self.store.get_field_mapping(aid, spreadsheet_id, sub_sheet)
            mappings = [mapping] if mapping else []
        else:
            mappings = self.store.list_field_mappings(aid, spreadsheet_id)
        if not mappings:
            raise FieldMappingNotFoundError(aid, spreadsheet_id, sub_sheet)
        return mappings

    def _record_failure(self, aid, spreadsheet_id, sub_sheet, row, lead, reason: FailureReason):
        self.store.create_failed_lead(
            aid, spreadsheet_id, sub_sheet,
            reason=reason.value,
            name=lead.name,
            email=lead.email,
            phone=lead.phone,
            city=lead.city,
            source=lead.source,
            sheet_row_number=row.row_number,
            data=dict(row.values),
        )
