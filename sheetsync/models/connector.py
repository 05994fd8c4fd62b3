"""
SheetConnector model — one row per spreadsheet a tenant has registered.
"""
from sqlalchemy import Column, Integer, Text, DateTime, UniqueConstraint
from sqlalchemy.sql import func

from sheetsync.database import Base


class SheetConnector(Base):
    __tablename__ = 'sheet_connectors'

    id = Column(Integer, primary_key=True, autoincrement=True)
    aid = Column(Text, nullable=False)
    sheet_id = Column(Text, nullable=False)
    sheet_name = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint('aid', 'sheet_id', name='uq_connector_aid_sheet'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'aid': self.aid,
            'sheet_id': self.sheet_id,
            'sheet_name': self.sheet_name,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
