from sqlalchemy import Column, String, Boolean, DateTime, UniqueConstraint
from datetime import datetime
from models.base import Base, BigIntPK


class RecordAssociation(Base):
    """
    Many-to-many link between records of two synced entity families
    (e.g. colleges offering courses).

    Keys are upstream record ids, not row ids, so links survive new
    versions of either record. Rows are only ever added by the linker.
    """
    __tablename__ = "record_associations"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)

    left_store = Column(String(100), nullable=False)
    left_id = Column(String(255), nullable=False)
    right_store = Column(String(100), nullable=False)
    right_id = Column(String(255), nullable=False)

    available = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("left_store", "left_id", "right_store", "right_id", name="uq_record_association_pair"),
    )
