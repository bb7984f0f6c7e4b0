"""
Схемы входящих запросов REST API
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from database.models.booking import PaymentMethod


class ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class BookingAddOnIn(ApiModel):
    # Имя не проверяется здесь: ограничение NOT NULL обеспечивает БД
    name: Optional[str] = None
    daily_rate: Optional[Decimal] = Field(default=None, alias="dailyRate")
    quantity: Optional[int] = None
    total_amount: Optional[Decimal] = Field(default=None, alias="totalAmount")


class CreateBookingRequest(ApiModel):
    company_id: str = Field(alias="companyId")
    vehicle_id: str = Field(alias="vehicleId")
    customer_id: str = Field(alias="customerId")
    start_date: datetime = Field(alias="startDate")
    end_date: datetime = Field(alias="endDate")
    total_days: Optional[int] = Field(default=None, alias="totalDays")
    monthly_periods: Optional[int] = Field(default=None, alias="monthlyPeriods")
    remaining_days: Optional[int] = Field(default=None, alias="remainingDays")
    daily_rate: Optional[Decimal] = Field(default=None, alias="dailyRate")
    monthly_rate: Optional[Decimal] = Field(default=None, alias="monthlyRate")
    total_amount: Decimal = Field(alias="totalAmount")
    notes: Optional[str] = None
    payment_method: Optional[PaymentMethod] = Field(default=None, alias="paymentMethod")
    terms_accepted: bool = Field(default=False, alias="termsAccepted")
    notification_preferences: Optional[Dict[str, bool]] = Field(default=None, alias="notificationPreferences")
    add_ons: Optional[List[BookingAddOnIn]] = Field(default=None, alias="addOns")


class UpdateKYCRequest(ApiModel):
    email: str
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
    emirates_id: Optional[str] = Field(default=None, alias="emiratesId")
    passport_number: Optional[str] = Field(default=None, alias="passportNumber")
    passport_country: Optional[str] = Field(default=None, alias="passportCountry")
    license_number: str = Field(alias="licenseNumber")
    drivers_license_country: str = Field(alias="driversLicenseCountry")
    drivers_license_expiry: Optional[date] = Field(default=None, alias="driversLicenseExpiry")
    nationality: str
    date_of_birth: Optional[date] = Field(default=None, alias="dateOfBirth")
    is_tourist: bool = Field(default=False, alias="isTourist")


class UpdateCardRequest(ApiModel):
    email: str
    credit_card_number: str = Field(alias="creditCardNumber", min_length=4)
    credit_card_type: str = Field(alias="creditCardType")
    card_holder_name: str = Field(alias="cardHolderName")
    bank_provider: str = Field(alias="bankProvider")
