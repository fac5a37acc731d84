import uuid
from sqlalchemy import Column, String, Float, ForeignKey, Uuid
from sqlalchemy.orm import relationship
from ..enum.leasing_enum import LocalStatus
from shared.core.database import Base


class Property(Base):
    __tablename__ = "properties"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)

    locals = relationship("Local", back_populates="property")


class Local(Base):
    __tablename__ = "locals"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    reference_code = Column(String(64), nullable=False)
    status = Column(String(24), default=LocalStatus.available.value)
    size_m2 = Column(Float, nullable=True)
    property_id = Column(Uuid(as_uuid=True), ForeignKey(
        "properties.id"), nullable=False)

    property = relationship("Property", back_populates="locals")
