import uuid
from sqlalchemy import Column, String, Date, Numeric, DateTime, Index, Uuid
from sqlalchemy.sql import func
from shared.core.database import Base


class Lease(Base):
    __tablename__ = "leases"
    __table_args__ = (
        Index("ix_leases_unit_status", "unit_id", "status"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    reference = Column(String(96), nullable=False, unique=True)

    # unit and tenant live in collaborator tables, no FK so the engine can
    # run against an external directory
    unit_id = Column(Uuid(as_uuid=True), nullable=False)
    tenant_id = Column(Uuid(as_uuid=True), nullable=False)

    # half-open interval [start_date, end_date)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)

    amount = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(String(16), nullable=False, default="active")

    created_at = Column(DateTime(timezone=True),
                        server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True),
                        server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<Lease {self.reference} unit={self.unit_id} [{self.start_date}, {self.end_date}) {self.status}>"
