"""
FailedLead model — audit trail of rows that could not become a Lead.
"""
from sqlalchemy import Column, Integer, Text, DateTime, JSON
from sqlalchemy.sql import func

from sheetsync.database import Base


class FailedLead(Base):
    __tablename__ = 'failed_leads'

    id = Column(Integer, primary_key=True, autoincrement=True)
    aid = Column(Text, nullable=False)
    spreadsheet_id = Column(Text, nullable=False)
    sub_sheet_name = Column(Text, nullable=False)
    name = Column(Text, nullable=True)
    email = Column(Text, nullable=True)
    phone = Column(Text, nullable=True)
    city = Column(Text, nullable=True)
    source = Column(Text, nullable=True)
    sheet_row_number = Column(Integer, nullable=True)
    reason = Column(Text, nullable=False)    # missing_email/missing_name/duplicate
    data = Column(JSON, nullable=True)       # the raw row as read from the sheet
    timestamp = Column(DateTime(timezone=True), server_default=func.now())
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def to_dict(self):
        return {
            'id': self.id,
            'aid': self.aid,
            'spreadsheet_id': self.spreadsheet_id,
            'sub_sheet_name': self.sub_sheet_name,
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'city': self.city,
            'source': self.source,
            'sheet_row_number': self.sheet_row_number,
            'reason': self.reason,
            'data': self.data,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
