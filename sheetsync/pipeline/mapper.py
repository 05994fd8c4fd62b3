"""
Field mapper — raw sheet row → CanonicalLead.

The mapping table is declared here, not discovered: each canonical attribute has
exactly one FieldMapping column naming the sheet header that feeds it. Row
columns no mapping points at are ignored.
"""
import re
from typing import Any, Dict, Mapping, Optional

from sheetsync.pipeline.base import CanonicalField, CanonicalLead
from sheetsync.pipeline.validator import normalize_email

# canonical attribute → FieldMapping column holding the source header
MAPPING_COLUMNS: Dict[CanonicalField, str] = {
    CanonicalField.NAME: 'cust_name',
    CanonicalField.PHONE: 'cust_phone_no',
    CanonicalField.EMAIL: 'cust_email',
    CanonicalField.SOURCE: 'source_name',
    CanonicalField.CITY: 'city_name',
}

_WHITESPACE = re.compile(r'\s+')
_NON_KEY_CHARS = re.compile(r'[^a-z0-9_]')


def format_header(header: Optional[str]) -> str:
    """'Email Address ' → 'email_address'. Empty headers become 'unknown'."""
    if not header:
        return 'unknown'
    formatted = _WHITESPACE.sub('_', str(header).lower().strip())
    return _NON_KEY_CHARS.sub('', formatted)


def source_header(mapping: Any, canonical_field: CanonicalField) -> Optional[str]:
    """Header configured for a canonical attribute, or None when unmapped."""
    column = MAPPING_COLUMNS[canonical_field]
    if isinstance(mapping, Mapping):
        header = mapping.get(column)
    else:
        header = getattr(mapping, column, None)
    if header is None or not str(header).strip():
        return None
    return str(header)


def map_row(values: Mapping[str, Any], mapping: Any) -> CanonicalLead:
    """
    Copy mapped, non-empty column values onto a CanonicalLead.

    `values` is keyed by formatted header (see format_header). `mapping` is a
    FieldMapping row or a dict with the same column keys.
    """
    lead = CanonicalLead()
    for canonical_field in CanonicalField:
        header = source_header(mapping, canonical_field)
        if header is None:
            continue
        raw = values.get(format_header(header))
        if raw is None:
            continue
        value = str(raw).strip()
        if not value:
            continue
        if canonical_field is CanonicalField.EMAIL:
            value = normalize_email(value)
        setattr(lead, canonical_field.value, value)
    return lead
