"""
Lead model — one row per spreadsheet row that passed validation and dedup.

Unique by (aid, sub_sheet_name, email): the database is the final guard against
the same address being ingested twice from one sub-sheet.
"""
from sqlalchemy import Column, Integer, Text, DateTime, UniqueConstraint, Index
from sqlalchemy.sql import func

from sheetsync.database import Base


class Lead(Base):
    __tablename__ = 'leads'

    id = Column(Integer, primary_key=True, autoincrement=True)
    aid = Column(Text, nullable=False)
    spreadsheet_id = Column(Text, nullable=False)
    sub_sheet_name = Column(Text, nullable=False)
    name = Column(Text, nullable=False)
    email = Column(Text, nullable=False)          # always stored lowercase
    phone = Column(Text, nullable=True)
    city = Column(Text, nullable=True)
    source = Column(Text, nullable=True)
    status = Column(Text, nullable=False, default='new')   # new/contacted/qualified/converted/lost
    process_status = Column(Text, nullable=True)            # success/failed, NULL until relayed
    message = Column(Text, nullable=True)
    sheet_row_number = Column(Integer, nullable=True)
    timestamp = Column(DateTime(timezone=True), server_default=func.now())
    sync_date = Column(DateTime(timezone=True), server_default=func.now())
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint('aid', 'sub_sheet_name', 'email', name='uq_lead_aid_sub_email'),
        Index('ix_leads_row_lookup', 'aid', 'sub_sheet_name', 'email', 'sheet_row_number'),
    )

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
            'status': self.status,
            'process_status': self.process_status,
            'message': self.message,
            'sheet_row_number': self.sheet_row_number,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
            'sync_date': self.sync_date.isoformat() if self.sync_date else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
