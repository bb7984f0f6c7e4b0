import enum

from sqlalchemy import Column, Integer, String, DateTime, Enum, Numeric, Text
from sqlalchemy.sql import func
from database.base import Base
from database.models.booking import generate_uuid


class VehicleStatus(enum.Enum):
    AVAILABLE = "AVAILABLE"      # Доступен
    RENTED = "RENTED"            # В аренде
    MAINTENANCE = "MAINTENANCE"  # На обслуживании
    RETIRED = "RETIRED"          # Списан


class Company(Base):
    __tablename__ = "companies"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Company(id={self.id}, name={self.name})>"


class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    company_id = Column(String(36), nullable=False, index=True)

    make = Column(String(100), nullable=False)
    model = Column(String(100), nullable=False)
    year = Column(Integer, nullable=True)
    plate_number = Column(String(50), unique=True, nullable=False)
    color = Column(String(50), nullable=True)
    description = Column(Text, nullable=True)

    # Тарифы
    daily_rate = Column(Numeric(10, 2), nullable=False, default=0)
    weekly_rate = Column(Numeric(10, 2), nullable=False, default=0)
    monthly_rate = Column(Numeric(10, 2), nullable=False, default=0)

    status = Column(Enum(VehicleStatus), default=VehicleStatus.AVAILABLE, nullable=False)

    # Временные метки
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Vehicle(id={self.id}, plate={self.plate_number}, status={self.status.value})>"

    @property
    def display_name(self) -> str:
        return f"{self.make} {self.model}"
