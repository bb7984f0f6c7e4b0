from sqlalchemy import Column, String, DateTime, Boolean, Date
from sqlalchemy.sql import func
from database.base import Base
from database.models.booking import generate_uuid


class Customer(Base):
    __tablename__ = "customers"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, nullable=False, index=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    mobile_number = Column(String(30), nullable=True)

    # KYC: резидент предъявляет Emirates ID, турист - паспорт
    nationality = Column(String(100), nullable=True)
    is_tourist = Column(Boolean, default=False, nullable=False)
    emirates_id = Column(String(50), nullable=True)
    passport_number = Column(String(50), nullable=True)
    passport_country = Column(String(100), nullable=True)
    drivers_id = Column(String(50), nullable=True)
    drivers_license_country = Column(String(100), nullable=True)
    drivers_license_expiry = Column(Date, nullable=True)
    date_of_birth = Column(Date, nullable=True)
    kyc_verified_at = Column(DateTime(timezone=True), nullable=True)

    # Карта: храним только последние 4 цифры
    card_last4 = Column(String(4), nullable=True)
    card_type = Column(String(20), nullable=True)
    card_holder_name = Column(String(255), nullable=True)
    bank_provider = Column(String(255), nullable=True)

    # Временные метки
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Customer(id={self.id}, email={self.email})>"

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @property
    def is_kyc_verified(self) -> bool:
        return self.kyc_verified_at is not None
