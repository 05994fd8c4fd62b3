"""
Sync pipeline contracts.

Closed enums for every status value the engine produces, the result types each
step hands to the next, and the status rule shared by sub-sheets and whole runs.
"""
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class CanonicalField(str, Enum):
    NAME = 'name'
    PHONE = 'phone'
    EMAIL = 'email'
    SOURCE = 'source'
    CITY = 'city'


class RowOutcome(str, Enum):
    CREATED = 'created'
    UPDATED = 'updated'
    SKIPPED = 'skipped'
    FAILED = 'failed'
    ERROR = 'error'


class RunStatus(str, Enum):
    SUCCESS = 'success'
    PARTIAL = 'partial'
    ERROR = 'error'


class ProcessStatus(str, Enum):
    SUCCESS = 'success'
    FAILED = 'failed'


class FailureReason(str, Enum):
    MISSING_EMAIL = 'missing_email'
    MISSING_NAME = 'missing_name'
    DUPLICATE = 'duplicate'


class LeadStatus(str, Enum):
    """Business lifecycle of a lead. The sync engine only ever writes NEW."""
    NEW = 'new'
    CONTACTED = 'contacted'
    QUALIFIED = 'qualified'
    CONVERTED = 'converted'
    LOST = 'lost'


# ── Errors ────────────────────────────────────────────────────────────────────

class SyncError(Exception):
    """Base class for errors that abort a whole sync run."""


class FieldMappingNotFoundError(SyncError):
    """Raised before any row is touched when no field mapping is configured."""
    def __init__(self, aid, spreadsheet_id, sub_sheet=None):
        self.aid = aid
        self.spreadsheet_id = spreadsheet_id
        self.sub_sheet = sub_sheet
        target = f"{spreadsheet_id}/{sub_sheet}" if sub_sheet else spreadsheet_id
        super().__init__(
            f"Field mapping not found for {target}. "
            "Please configure field mappings before syncing."
        )


# ── Step results ─────────────────────────────────────────────────────────────

@dataclass
class SheetRow:
    """One data row from a sub-sheet, keyed by formatted header."""
    row_number: int
    values: Dict[str, str]


@dataclass
class CanonicalLead:
    """Lead attributes after mapping. Unset attributes stay None."""
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    source: Optional[str] = None
    city: Optional[str] = None

    def get(self, canonical_field: CanonicalField) -> Optional[str]:
        return getattr(self, canonical_field.value)


@dataclass
class RelayResult:
    process_status: ProcessStatus
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.process_status is ProcessStatus.SUCCESS


@dataclass
class RowResult:
    """Outcome of one row; becomes an entry of the summary's details list."""
    row_number: int
    outcome: RowOutcome
    reason: str = ''
    lead_id: Optional[int] = None
    process_status: Optional[ProcessStatus] = None
    error: Optional[str] = None
    sub_sheet: str = ''

    def to_dict(self) -> Dict[str, Any]:
        entry = {
            'subSheetName': self.sub_sheet,
            'rowNumber': self.row_number,
            'status': self.outcome.value,
        }
        if self.reason:
            entry['reason'] = self.reason
        if self.lead_id is not None:
            entry['leadId'] = self.lead_id
        if self.process_status is not None:
            entry['processStatus'] = self.process_status.value
        if self.error:
            entry['error'] = self.error
        return entry


@dataclass
class OutcomeCounts:
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    errors: int = 0

    def add(self, outcome: RowOutcome):
        if outcome is RowOutcome.CREATED:
            self.created += 1
        elif outcome is RowOutcome.UPDATED:
            self.updated += 1
        elif outcome is RowOutcome.SKIPPED:
            self.skipped += 1
        elif outcome is RowOutcome.FAILED:
            self.failed += 1
        elif outcome is RowOutcome.ERROR:
            self.errors += 1
        else:
            raise ValueError(f"Unknown row outcome: {outcome!r}")

    def merge(self, other: 'OutcomeCounts'):
        self.created += other.created
        self.updated += other.updated
        self.skipped += other.skipped
        self.failed += other.failed
        self.errors += other.errors

    @property
    def status(self) -> RunStatus:
        return resolve_status(self.errors, self.created, self.updated)


@dataclass
class SubSheetResult:
    sub_sheet: str
    total: int = 0
    counts: OutcomeCounts = field(default_factory=OutcomeCounts)
    details: List[RowResult] = field(default_factory=list)
    sync_id: Optional[int] = None

    @property
    def status(self) -> RunStatus:
        return self.counts.status

    def record(self, result: RowResult):
        result.sub_sheet = self.sub_sheet
        self.details.append(result)
        self.counts.add(result.outcome)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'subSheetName': self.sub_sheet,
            'syncId': self.sync_id,
            'status': self.status.value,
            'totalRecords': self.total,
            'created': self.counts.created,
            'updated': self.counts.updated,
            'skipped': self.counts.skipped,
            'failed': self.counts.failed,
            'errors': self.counts.errors,
        }


@dataclass
class SyncSummary:
    """What a sync run returns to its caller."""
    aid: str
    spreadsheet_id: str
    sub_sheets: List[SubSheetResult] = field(default_factory=list)

    @property
    def counts(self) -> OutcomeCounts:
        totals = OutcomeCounts()
        for sub in self.sub_sheets:
            totals.merge(sub.counts)
        return totals

    @property
    def status(self) -> RunStatus:
        return self.counts.status

    @property
    def total(self) -> int:
        return sum(sub.total for sub in self.sub_sheets)

    @property
    def details(self) -> List[RowResult]:
        return [row for sub in self.sub_sheets for row in sub.details]

    def to_dict(self) -> Dict[str, Any]:
        counts = self.counts
        return {
            'status': self.status.value,
            'total': self.total,
            'created': counts.created,
            'updated': counts.updated,
            'skipped': counts.skipped,
            'failed': counts.failed,
            'errors': counts.errors,
            'details': [row.to_dict() for row in self.details],
            'subSheetsProcessed': [sub.to_dict() for sub in self.sub_sheets],
        }


# ── Rules ─────────────────────────────────────────────────────────────────────

def resolve_status(errors: int, created: int, updated: int) -> RunStatus:
    """No errors → success; errors but some rows landed → partial; otherwise error."""
    if errors == 0:
        return RunStatus.SUCCESS
    if created + updated > 0:
        return RunStatus.PARTIAL
    return RunStatus.ERROR


class Throttle:
    """
    Pause between rows to keep pressure on the store and CRM predictable.

    Sleeps `delay` seconds after every `every`-th row (after rows 10, 20, ...
    with the defaults), never before the first row, so a sheet shorter than
    `every` rows runs without pausing. Either value <= 0 disables it.
    """

    def __init__(self, every: int = 10, delay: float = 0.05, sleep=time.sleep):
        self.every = every
        self.delay = delay
        self._sleep = sleep

    @property
    def enabled(self) -> bool:
        return self.every > 0 and self.delay > 0

    def pause(self, index: int):
        """Call after processing the row at 0-based `index`."""
        if self.enabled and (index + 1) % self.every == 0:
            self._sleep(self.delay)
