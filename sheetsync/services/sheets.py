"""
Google Sheets reader — service-account access to spreadsheet rows and headers.
"""
import logging
from typing import Dict, List, Optional

from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from sheetsync.config import GOOGLE_SERVICE_ACCOUNT_FILE, GOOGLE_SHEETS_SCOPES, DEFAULT_SHEET_RANGE
from sheetsync.pipeline.base import SheetRow
from sheetsync.pipeline.mapper import format_header

logger = logging.getLogger('services.sheets')

HEADER_RANGE = 'A1:Z1'


def a1_range(sub_sheet: str, cells: str = DEFAULT_SHEET_RANGE) -> str:
    """"Leads Q1" → "'Leads Q1'!A:Z". Quotes inside the name are doubled."""
    escaped = sub_sheet.replace("'", "''")
    return f"'{escaped}'!{cells}"


def rows_from_values(values: List[List[str]]) -> List[SheetRow]:
    """
    Turn a values grid into SheetRows keyed by formatted header.

    The first row is the header; data rows start at sheet row 2. Short rows are
    padded with empty strings.
    """
    if not values:
        return []
    headers = [format_header(h) for h in values[0]]
    rows = []
    for offset, line in enumerate(values[1:]):
        padded = list(line) + [''] * (len(headers) - len(line))
        rows.append(SheetRow(
            row_number=offset + 2,
            values={headers[i]: (padded[i] if padded[i] is not None else '') for i in range(len(headers))},
        ))
    return rows


def _is_spreadsheet_error(error: HttpError) -> bool:
    status = getattr(getattr(error, 'resp', None), 'status', None)
    try:
        status = int(status)
    except (TypeError, ValueError):
        return False
    return 400 <= status < 500 and status != 429


class GoogleSheetsReader:
    """
    Spreadsheet collaborator for the sync engine.

    The API client is built on first use so the app can start without
    credentials on disk.
    """

    def __init__(self, service_account_file=GOOGLE_SERVICE_ACCOUNT_FILE, scopes=None,
                 service=None, breaker=None):
        self.service_account_file = service_account_file
        self.scopes = scopes or GOOGLE_SHEETS_SCOPES
        self.breaker = breaker
        self._service = service

    @property
    def service(self):
        if self._service is None:
            creds = Credentials.from_service_account_file(self.service_account_file, scopes=self.scopes)
            self._service = build('sheets', 'v4', credentials=creds, cache_discovery=False)
        return self._service

    def _execute(self, request):
        """
        Run an API request through the breaker.

        The breaker is shared by all tenants, so a 4xx about one spreadsheet
        (not found, not shared with the service account) is re-raised after the
        call instead of counting as a failure. 429 still counts: the quota is shared.
        """
        if self.breaker is None:
            return request.execute()

        def _run():
            try:
                return request.execute(), None
            except HttpError as e:
                if _is_spreadsheet_error(e):
                    return None, e
                raise

        result, error = self.breaker.call(_run)
        if error is not None:
            raise error
        return result

    def get_sheet_info(self, spreadsheet_id: str) -> Dict:
        resp = self._execute(self.service.spreadsheets().get(
            spreadsheetId=spreadsheet_id,
            fields='properties.title,sheets.properties',
        ))
        return {
            'title': resp.get('properties', {}).get('title', ''),
            'sheets': [
                {
                    'title': sheet['properties']['title'],
                    'sheetId': sheet['properties'].get('sheetId'),
                }
                for sheet in resp.get('sheets', [])
            ],
        }

    def list_sub_sheets(self, spreadsheet_id: str) -> List[str]:
        return [sheet['title'] for sheet in self.get_sheet_info(spreadsheet_id)['sheets']]

    def fetch_rows(self, spreadsheet_id: str, range_a1: Optional[str] = None) -> List[SheetRow]:
        """Rows of one range; defaults to the first sub-sheet when no range is given."""
        if not range_a1:
            sub_sheets = self.list_sub_sheets(spreadsheet_id)
            range_a1 = a1_range(sub_sheets[0]) if sub_sheets else DEFAULT_SHEET_RANGE

        logger.info("Fetching %s from sheet %s", range_a1, spreadsheet_id)
        resp = self._execute(self.service.spreadsheets().values().get(
            spreadsheetId=spreadsheet_id,
            range=range_a1,
        ))
        rows = rows_from_values(resp.get('values', []))
        logger.info("Read %d data rows from %s", len(rows), range_a1)
        return rows

    def fetch_headers(self, spreadsheet_id: str) -> Dict[str, List[str]]:
        """Raw (unformatted) header row of every sub-sheet, blanks dropped."""
        sub_sheets = self.list_sub_sheets(spreadsheet_id)
        if not sub_sheets:
            return {}

        resp = self._execute(self.service.spreadsheets().values().batchGet(
            spreadsheetId=spreadsheet_id,
            ranges=[a1_range(name, HEADER_RANGE) for name in sub_sheets],
        ))
        value_ranges = resp.get('valueRanges', [])

        headers = {name: [] for name in sub_sheets}
        for name, value_range in zip(sub_sheets, value_ranges):
            values = value_range.get('values', [])
            headers[name] = [h for h in values[0] if h] if values else []
        return headers
