"""
Row validator — required-attribute check on a mapped lead.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from sheetsync.pipeline.base import CanonicalField, CanonicalLead, FailureReason

# Checked in order; the first missing one names the failure reason.
REQUIRED_FIELDS = (CanonicalField.EMAIL, CanonicalField.NAME)

_MISSING_REASONS = {
    CanonicalField.EMAIL: FailureReason.MISSING_EMAIL,
    CanonicalField.NAME: FailureReason.MISSING_NAME,
}


def normalize_email(email: Optional[str]) -> Optional[str]:
    """Emails are case-insensitive everywhere in the system."""
    if email is None:
        return None
    return email.strip().lower()


@dataclass
class ValidationResult:
    ok: bool
    missing_fields: List[CanonicalField] = field(default_factory=list)

    @property
    def reason(self) -> Optional[FailureReason]:
        if self.ok:
            return None
        return _MISSING_REASONS[self.missing_fields[0]]


def validate(lead: CanonicalLead) -> ValidationResult:
    missing = [f for f in REQUIRED_FIELDS if not lead.get(f)]
    return ValidationResult(ok=not missing, missing_fields=missing)
