"""
SyncHistory model — one append-only row per (tenant, spreadsheet, sub-sheet) sync attempt.
"""
from sqlalchemy import Column, Integer, Text, DateTime
from sqlalchemy.sql import func

from sheetsync.database import Base


class SyncHistory(Base):
    __tablename__ = 'sync_history'

    id = Column(Integer, primary_key=True, autoincrement=True)
    aid = Column(Text, nullable=False)
    spreadsheet_id = Column(Text, nullable=False)
    sub_sheet_name = Column(Text, nullable=True)
    total_records = Column(Integer, default=0)
    created_count = Column(Integer, default=0)
    updated_count = Column(Integer, default=0)
    skipped_count = Column(Integer, default=0)
    failed_count = Column(Integer, default=0)
    error_count = Column(Integer, default=0)
    sync_type = Column(Text, default='manual')
    status = Column(Text, nullable=False, default='success')   # success/partial/error
    error_message = Column(Text, nullable=True)
    completed_at = Column(DateTime(timezone=True), server_default=func.now())
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def to_dict(self):
        return {
            'id': self.id,
            'aid': self.aid,
            'spreadsheet_id': self.spreadsheet_id,
            'sub_sheet_name': self.sub_sheet_name,
            'total_records': self.total_records,
            'created_count': self.created_count,
            'updated_count': self.updated_count,
            'skipped_count': self.skipped_count,
            'failed_count': self.failed_count,
            'error_count': self.error_count,
            'sync_type': self.sync_type,
            'status': self.status,
            'error_message': self.error_message,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
