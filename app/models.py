import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_uuid():
    """Generate a UUID string primary key"""
    return str(uuid.uuid4())


class Business(Base):
    __tablename__ = "business"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    # Identity-platform user id of the owner (owners may not have a business_members row)
    owner_id = Column(String(64), index=True, nullable=False)
    name = Column(String(255), nullable=True)
    subscription_status = Column(String(50), default="inactive", nullable=True)  # active, past_due, ...
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    members = relationship("BusinessMember", back_populates="business", cascade="all, delete-orphan")
    services = relationship("Service", back_populates="business", cascade="all, delete-orphan")


class BusinessMember(Base):
    __tablename__ = "business_members"
    __table_args__ = (UniqueConstraint("business_id", "user_id", name="business_members_uniq"),)

    id = Column(Integer, primary_key=True, index=True)
    business_id = Column(String(36), ForeignKey("business.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(64), index=True, nullable=False)
    role = Column(String(50), default="employee", nullable=False)  # owner, manager, admin, employee
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    business = relationship("Business", back_populates="members")


class Service(Base):
    """A bookable service offered by a business"""

    __tablename__ = "services"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    business_id = Column(
        String(36), ForeignKey("business.id", ondelete="CASCADE"), index=True, nullable=False
    )
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    duration_minutes = Column(Integer, default=60, nullable=False)
    price_cents = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    business = relationship("Business", back_populates="services")


class AvailabilityRule(Base):
    """Weekly working window used to offer booking slots"""

    __tablename__ = "availability_rules"

    id = Column(Integer, primary_key=True, index=True)
    business_id = Column(
        String(36), ForeignKey("business.id", ondelete="CASCADE"), index=True, nullable=False
    )
    day_of_week = Column(Integer, nullable=False)  # 0=Sun..6=Sat
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    slot_minutes = Column(Integer, default=30, nullable=False)
    timezone = Column(String(64), default="UTC", nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
