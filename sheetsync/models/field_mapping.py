"""
FieldMapping model — which spreadsheet header feeds each canonical lead attribute.

Scoped to (tenant, spreadsheet, sub-sheet). Column values are header strings as the
tenant typed them; the mapper formats them before matching against row keys.
"""
from sqlalchemy import Column, Integer, Text, DateTime, UniqueConstraint
from sqlalchemy.sql import func

from sheetsync.database import Base


class FieldMapping(Base):
    __tablename__ = 'field_mappings'

    id = Column(Integer, primary_key=True, autoincrement=True)
    aid = Column(Text, nullable=False)
    sheet_id = Column(Text, nullable=False)
    sub_sheet_name = Column(Text, nullable=False)
    cust_name = Column(Text, nullable=True)
    cust_phone_no = Column(Text, nullable=True)
    cust_email = Column(Text, nullable=True)
    source_name = Column(Text, nullable=True)
    city_name = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint('aid', 'sheet_id', 'sub_sheet_name', name='uq_mapping_aid_sheet_sub'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'aid': self.aid,
            'sheet_id': self.sheet_id,
            'sub_sheet_name': self.sub_sheet_name,
            'cust_name': self.cust_name,
            'cust_phone_no': self.cust_phone_no,
            'cust_email': self.cust_email,
            'source_name': self.source_name,
            'city_name': self.city_name,
        }
