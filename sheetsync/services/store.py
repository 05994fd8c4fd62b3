"""
SQLAlchemy-backed storage for connectors, field mappings, leads, failed leads
and sync history.

Each method opens its own session and commits or rolls back before returning,
so one store can be shared by concurrent requests. Failures roll back and
propagate; returned rows are detached snapshots.
"""
import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from sheetsync.config import DEFAULT_LEAD_SOURCE
from sheetsync.models.connector import SheetConnector
from sheetsync.models.field_mapping import FieldMapping
from sheetsync.models.lead import Lead
from sheetsync.models.failed_lead import FailedLead
from sheetsync.models.sync_history import SyncHistory
from sheetsync.pipeline.base import LeadStatus
from sheetsync.pipeline.validator import normalize_email

logger = logging.getLogger('services.store')

MAPPING_FIELDS = ('cust_name', 'cust_phone_no', 'cust_email', 'source_name', 'city_name')


class DuplicateLeadError(Exception):
    """Insert rejected by the (aid, sub_sheet_name, email) unique constraint."""
    def __init__(self, aid, sub_sheet, email):
        self.aid = aid
        self.sub_sheet = sub_sheet
        self.email = email
        super().__init__(f"Lead {email} already exists in {sub_sheet}")


class LeadStore:

    def __init__(self, session_factory):
        self.session_factory = session_factory

    @contextmanager
    def _session(self):
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def ping(self):
        with self._session() as session:
            session.execute(text('SELECT 1'))

    # ── Connectors ────────────────────────────────────────────────────

    def create_connector(self, aid: str, sheet_id: str, sheet_name: Optional[str] = None) -> SheetConnector:
        with self._session() as session:
            connector = SheetConnector(aid=aid, sheet_id=sheet_id, sheet_name=sheet_name)
            session.add(connector)
            session.flush()
            session.refresh(connector)
            return connector

    def get_connector(self, aid: str, sheet_id: str) -> Optional[SheetConnector]:
        with self._session() as session:
            return session.query(SheetConnector).filter_by(aid=aid, sheet_id=sheet_id).first()

    def list_connectors(self, aid: str) -> List[SheetConnector]:
        with self._session() as session:
            return (
                session.query(SheetConnector)
                .filter_by(aid=aid)
                .order_by(SheetConnector.created_at.desc(), SheetConnector.id.desc())
                .all()
            )

    def delete_connector_with_mappings(self, aid: str, sheet_id: str) -> bool:
        """Delete a connector and all of its field mappings in one transaction."""
        with self._session() as session:
            mappings = session.query(FieldMapping).filter_by(aid=aid, sheet_id=sheet_id).delete(
                synchronize_session=False)
            connectors = session.query(SheetConnector).filter_by(aid=aid, sheet_id=sheet_id).delete(
                synchronize_session=False)
            logger.info("Deleted connector %s for %s (%d mappings)", sheet_id, aid, mappings)
            return connectors > 0

    # ── Field mappings ────────────────────────────────────────────────

    def upsert_field_mapping(self, aid: str, sheet_id: str, sub_sheet_name: str,
                             mapping: Dict[str, Any]) -> FieldMapping:
        with self._session() as session:
            row = session.query(FieldMapping).filter_by(
                aid=aid, sheet_id=sheet_id, sub_sheet_name=sub_sheet_name,
            ).first()
            if row is None:
                row = FieldMapping(aid=aid, sheet_id=sheet_id, sub_sheet_name=sub_sheet_name)
                session.add(row)
            for column in MAPPING_FIELDS:
                setattr(row, column, mapping.get(column) or None)
            session.flush()
            session.refresh(row)
            return row

    def get_field_mapping(self, aid: str, sheet_id: str, sub_sheet_name: str) -> Optional[FieldMapping]:
        with self._session() as session:
            return session.query(FieldMapping).filter_by(
                aid=aid, sheet_id=sheet_id, sub_sheet_name=sub_sheet_name,
            ).first()

    def list_field_mappings(self, aid: str, sheet_id: str) -> List[FieldMapping]:
        with self._session() as session:
            return (
                session.query(FieldMapping)
                .filter_by(aid=aid, sheet_id=sheet_id)
                .order_by(FieldMapping.id)
                .all()
            )

    def delete_field_mapping(self, aid: str, sheet_id: str, sub_sheet_name: str) -> bool:
        with self._session() as session:
            deleted = session.query(FieldMapping).filter_by(
                aid=aid, sheet_id=sheet_id, sub_sheet_name=sub_sheet_name,
            ).delete(synchronize_session=False)
            return deleted > 0

    # ── Leads ─────────────────────────────────────────────────────────

    def find_lead_by_row(self, aid: str, sub_sheet_name: str, email: str, row_number: int) -> Optional[Lead]:
        with self._session() as session:
            return session.query(Lead).filter_by(
                aid=aid,
                sub_sheet_name=sub_sheet_name,
                email=normalize_email(email),
                sheet_row_number=row_number,
            ).first()

    def find_lead_by_email(self, aid: str, sub_sheet_name: str, email: str) -> Optional[Lead]:
        with self._session() as session:
            return session.query(Lead).filter_by(
                aid=aid, sub_sheet_name=sub_sheet_name, email=normalize_email(email),
            ).first()

    def create_lead(self, aid: str, spreadsheet_id: str, sub_sheet_name: str, *, name: str, email: str,
                    phone: Optional[str] = None, city: Optional[str] = None, source: Optional[str] = None,
                    sheet_row_number: Optional[int] = None) -> Lead:
        """Insert a lead; raises DuplicateLeadError if the email is taken in this sub-sheet."""
        email = normalize_email(email)
        session = self.session_factory()
        try:
            lead = Lead(
                aid=aid,
                spreadsheet_id=spreadsheet_id,
                sub_sheet_name=sub_sheet_name,
                name=name,
                email=email,
                phone=phone,
                city=city,
                source=source or DEFAULT_LEAD_SOURCE,
                status=LeadStatus.NEW.value,
                sheet_row_number=sheet_row_number,
            )
            session.add(lead)
            session.flush()
            session.refresh(lead)
            session.commit()
            return lead
        except IntegrityError:
            session.rollback()
            exists = session.query(Lead.id).filter_by(
                aid=aid, sub_sheet_name=sub_sheet_name, email=email,
            ).first()
            if exists:
                raise DuplicateLeadError(aid, sub_sheet_name, email)
            raise
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def update_lead_process_status(self, aid: str, lead_id: int, process_status: str,
                                   message: Optional[str] = None) -> bool:
        with self._session() as session:
            lead = session.query(Lead).filter_by(aid=aid, id=lead_id).first()
            if lead is None:
                return False
            lead.process_status = process_status
            lead.message = message
            return True

    def list_leads(self, aid: str, status: Optional[str] = None, page: int = 1,
                   limit: int = 50) -> Tuple[List[Lead], int]:
        with self._session() as session:
            query = session.query(Lead).filter_by(aid=aid)
            if status:
                query = query.filter_by(status=status)
            total = query.count()
            leads = (
                query.order_by(Lead.created_at.desc(), Lead.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
                .all()
            )
            return leads, total

    def list_leads_by_process_status(self, aid: str, process_status: str) -> List[Lead]:
        with self._session() as session:
            return (
                session.query(Lead)
                .filter_by(aid=aid, process_status=process_status)
                .order_by(Lead.created_at.desc(), Lead.id.desc())
                .all()
            )

    def recent_synced_leads(self, aid: str, limit: int = 50) -> List[Lead]:
        with self._session() as session:
            return (
                session.query(Lead)
                .filter_by(aid=aid)
                .order_by(Lead.sync_date.desc(), Lead.id.desc())
                .limit(limit)
                .all()
            )

    # ── Failed leads ──────────────────────────────────────────────────

    def create_failed_lead(self, aid: str, spreadsheet_id: str, sub_sheet_name: str, *, reason: str,
                           name=None, email=None, phone=None, city=None, source=None,
                           sheet_row_number=None, data=None) -> FailedLead:
        with self._session() as session:
            failed = FailedLead(
                aid=aid,
                spreadsheet_id=spreadsheet_id,
                sub_sheet_name=sub_sheet_name,
                name=name,
                email=normalize_email(email),
                phone=phone,
                city=city,
                source=source or DEFAULT_LEAD_SOURCE,
                sheet_row_number=sheet_row_number,
                reason=reason,
                data=data,
            )
            session.add(failed)
            session.flush()
            session.refresh(failed)
            return failed

    def list_failed_leads(self, aid: str) -> List[FailedLead]:
        with self._session() as session:
            return (
                session.query(FailedLead)
                .filter_by(aid=aid)
                .order_by(FailedLead.created_at.desc(), FailedLead.id.desc())
                .all()
            )

    # ── Sync history ──────────────────────────────────────────────────

    def create_sync_history(self, aid: str, spreadsheet_id: str, sub_sheet_name: Optional[str], *,
                            total_records=0, created_count=0, updated_count=0, skipped_count=0,
                            failed_count=0, error_count=0, sync_type='manual', status='success',
                            error_message=None) -> int:
        with self._session() as session:
            history = SyncHistory(
                aid=aid,
                spreadsheet_id=spreadsheet_id,
                sub_sheet_name=sub_sheet_name,
                total_records=total_records,
                created_count=created_count,
                updated_count=updated_count,
                skipped_count=skipped_count,
                failed_count=failed_count,
                error_count=error_count,
                sync_type=sync_type,
                status=status,
                error_message=error_message,
            )
            session.add(history)
            session.flush()
            return history.id

    def recent_sync_history(self, aid: str, limit: int = 10) -> List[SyncHistory]:
        with self._session() as session:
            return (
                session.query(SyncHistory)
                .filter_by(aid=aid)
                .order_by(SyncHistory.created_at.desc(), SyncHistory.id.desc())
                .limit(limit)
                .all()
            )

    def sync_logs(self, aid: str) -> List[SyncHistory]:
        """History rows of syncs that created at least one lead."""
        with self._session() as session:
            return (
                session.query(SyncHistory)
                .filter(SyncHistory.aid == aid, SyncHistory.created_count > 0)
                .order_by(SyncHistory.created_at.desc(), SyncHistory.id.desc())
                .all()
            )
