import enum
import uuid

from sqlalchemy import Column, Integer, String, DateTime, Boolean, Enum, ForeignKey, Numeric, Text, JSON
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from database.base import Base


def generate_uuid() -> str:
    return str(uuid.uuid4())


class BookingStatus(enum.Enum):
    PENDING = "PENDING"         # Ожидает подтверждения
    CONFIRMED = "CONFIRMED"     # Подтверждено
    ACTIVE = "ACTIVE"           # Автомобиль выдан
    COMPLETED = "COMPLETED"     # Завершено
    CANCELLED = "CANCELLED"     # Отменено


class PaymentMethod(enum.Enum):
    CASH = "CASH"
    CREDIT_CARD = "CREDIT_CARD"
    DEBIT_CARD = "DEBIT_CARD"
    BANK_TRANSFER = "BANK_TRANSFER"


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=generate_uuid)

    # Ссылки без внешних ключей: в выборках используется LEFT JOIN
    company_id = Column(String(36), nullable=False, index=True)
    vehicle_id = Column(String(36), nullable=False, index=True)
    customer_id = Column(String(36), nullable=False, index=True)

    # Номер для отображения, не гарантирует уникальность
    booking_number = Column(String(50), nullable=False, index=True)

    # Период аренды
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    total_days = Column(Integer, default=0, nullable=False)
    monthly_periods = Column(Integer, default=0, nullable=False)
    remaining_days = Column(Integer, default=0, nullable=False)

    # Финансы
    daily_rate = Column(Numeric(10, 2), default=0, nullable=False)
    monthly_rate = Column(Numeric(10, 2), default=0, nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)

    status = Column(Enum(BookingStatus), default=BookingStatus.PENDING, nullable=False)

    # Данные из мастера бронирования
    payment_method = Column(Enum(PaymentMethod), nullable=True)
    terms_accepted = Column(Boolean, default=False, nullable=False)
    notification_preferences = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)

    # Временные метки
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Связи
    addons = relationship(
        "BookingAddon",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="BookingAddon.id"
    )
    customer = relationship(
        "Customer",
        primaryjoin="foreign(Booking.customer_id) == Customer.id",
        viewonly=True
    )
    vehicle = relationship(
        "Vehicle",
        primaryjoin="foreign(Booking.vehicle_id) == Vehicle.id",
        viewonly=True
    )
    company = relationship(
        "Company",
        primaryjoin="foreign(Booking.company_id) == Company.id",
        viewonly=True
    )

    def __repr__(self):
        return f"<Booking(id={self.id}, number={self.booking_number}, status={self.status.value})>"


class BookingAddon(Base):
    __tablename__ = "booking_addons"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(String(36), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)

    addon_name = Column(String(255), nullable=False)
    daily_rate = Column(Numeric(10, 2), nullable=True)
    quantity = Column(Integer, default=1, nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    booking = relationship("Booking", back_populates="addons")

    def __repr__(self):
        return f"<BookingAddon(id={self.id}, booking_id={self.booking_id}, name={self.addon_name})>"
