from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Text,
    func,
    text,
    true,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()
metadata = Base.metadata


class Services(Base):
    __tablename__ = 'services'

    id = Column(Integer, primary_key=True)
    name = Column(Text, nullable=False)
    description = Column(Text)
    duration_minutes = Column(Integer, nullable=False)
    price = Column(Float)
    is_active = Column(Boolean, nullable=False, server_default=true())
    created_at = Column(DateTime, nullable=False, server_default=func.current_timestamp())

    availability_rules = relationship('AvailabilityRules', back_populates='service')
    holidays = relationship('Holidays', back_populates='service')
    bookings = relationship('Bookings', back_populates='service')

    __table_args__ = (
        CheckConstraint('duration_minutes > 0', name='ck_services_duration_positive'),
    )


class AvailabilityRules(Base):
    __tablename__ = 'service_availability_rules'

    id = Column(Integer, primary_key=True)
    service_id = Column(ForeignKey('services.id', ondelete='CASCADE'), nullable=False)
    weekday = Column(Integer, nullable=False)  # 0 = Sunday
    start_time_local = Column(Text, nullable=False)  # "HH:MM"
    end_time_local = Column(Text, nullable=False)
    timezone = Column(Text, nullable=False)  # IANA
    capacity = Column(Integer, nullable=False, server_default=text('1'))
    created_at = Column(DateTime, nullable=False, server_default=func.current_timestamp())

    service = relationship('Services', back_populates='availability_rules')

    __table_args__ = (
        CheckConstraint('weekday BETWEEN 0 AND 6', name='ck_rules_weekday'),
        CheckConstraint('capacity >= 1', name='ck_rules_capacity'),
        Index('ix_rules_service_weekday', 'service_id', 'weekday'),
    )


class Holidays(Base):
    __tablename__ = 'service_holidays'

    id = Column(Integer, primary_key=True)
    service_id = Column(ForeignKey('services.id', ondelete='CASCADE'), nullable=False)
    holiday_date = Column(Date, nullable=False)
    note = Column(Text)
    created_at = Column(DateTime, nullable=False, server_default=func.current_timestamp())

    service = relationship('Services', back_populates='holidays')

    __table_args__ = (
        Index('ix_holidays_service_date', 'service_id', 'holiday_date'),
    )


class Bookings(Base):
    __tablename__ = 'bookings'

    id = Column(Integer, primary_key=True)
    service_id = Column(ForeignKey('services.id'), nullable=False)
    customer_name = Column(Text, nullable=False)
    customer_email = Column(Text, nullable=False)
    # naive UTC
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    status = Column(Text, nullable=False, server_default=text("'pending'"))
    notes = Column(Text)
    created_at = Column(DateTime, nullable=False, server_default=func.current_timestamp())
    updated_at = Column(DateTime, nullable=False, server_default=func.current_timestamp())

    service = relationship('Services', back_populates='bookings')

    __table_args__ = (
        CheckConstraint('start_time < end_time', name='ck_bookings_time_range'),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'canceled')", name='ck_bookings_status'
        ),
        Index('ix_bookings_service_start', 'service_id', 'start_time'),
    )
