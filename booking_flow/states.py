import enum
from datetime import datetime
from decimal import Decimal
from typing import Optional, Tuple, Dict, Any

from pydantic import BaseModel, ConfigDict

from database.models.booking import PaymentMethod
from services.accounting import AccountingEntry
from services.exceptions import KYCValidationError
from services.pricing import RentalPeriod, RentalMode, AddOn, PriceBreakdown, RateCalculation


class BookingStep(enum.IntEnum):
    VEHICLE_SELECTION = 1   # Выбор автомобиля, дат и услуг
    KYC = 2                 # Проверка личности и карты
    PAYMENT = 3             # Оплата
    CONFIRMATION = 4        # Подтверждение


class CardType(enum.Enum):
    VISA = "VISA"
    MASTERCARD = "MASTERCARD"
    AMEX = "AMEX"
    OTHER = "OTHER"


class FlowModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class VehicleRates(FlowModel):
    """Автомобиль и его тарифная карта"""
    id: str
    company_id: str
    make: str
    model: str
    year: Optional[int] = None
    daily_rate: Decimal
    monthly_rate: Decimal
    weekly_rate: Optional[Decimal] = None

    @property
    def label(self) -> str:
        return f"{self.make} {self.model}"


class KYCData(FlowModel):
    email: str
    is_tourist: bool
    nationality: str
    drivers_id: str
    drivers_license_country: str
    credit_card_number: str     # только последние 4 цифры
    credit_card_type: CardType = CardType.VISA
    card_holder_name: str
    bank_provider: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone_number: Optional[str] = None
    emirates_id: Optional[str] = None
    passport_number: Optional[str] = None
    passport_country: Optional[str] = None
    drivers_license_expiry: Optional[str] = None
    date_of_birth: Optional[str] = None

    def check(self) -> None:
        """Проверка формы KYC; турист - паспорт, резидент - Emirates ID"""
        if not self.email or "@" not in self.email:
            raise KYCValidationError("Please enter a valid email address")

        if self.is_tourist:
            if not self.passport_number or not self.passport_country:
                raise KYCValidationError("Please provide passport number and country for tourists")
        elif not self.emirates_id:
            raise KYCValidationError("Please provide Emirates ID for UAE residents")

        if not self.drivers_id or not self.drivers_license_country:
            raise KYCValidationError("Please provide driver license details (required for all renters)")

        if not self.nationality:
            raise KYCValidationError("Please select your nationality")

        if not self.credit_card_number or len(self.credit_card_number) < 4:
            raise KYCValidationError("Please enter the last 4 digits of your credit card")

        if not self.card_holder_name:
            raise KYCValidationError("Please enter the cardholder name")

        if not self.bank_provider:
            raise KYCValidationError("Please select your bank/service provider")

    @property
    def card_last4(self) -> str:
        return self.credit_card_number[-4:]

    def kyc_payload(self) -> Dict[str, Any]:
        return {
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "phoneNumber": self.phone_number,
            "emiratesId": None if self.is_tourist else self.emirates_id,
            "passportNumber": self.passport_number if self.is_tourist else None,
            "passportCountry": self.passport_country if self.is_tourist else None,
            "licenseNumber": self.drivers_id,
            "driversLicenseCountry": self.drivers_license_country,
            "driversLicenseExpiry": self.drivers_license_expiry,
            "nationality": self.nationality,
            "dateOfBirth": self.date_of_birth,
            "isTourist": self.is_tourist,
        }

    def card_payload(self) -> Dict[str, Any]:
        return {
            "email": self.email,
            "creditCardNumber": self.card_last4,
            "creditCardType": self.credit_card_type.value,
            "cardHolderName": self.card_holder_name,
            "bankProvider": self.bank_provider,
        }


class PaymentData(FlowModel):
    payment_method: PaymentMethod
    amount: Decimal
    currency: str
    card_last4: str
    card_type: str
    card_holder_name: str
    transaction_id: str
    transaction_date: datetime
    transaction_status: str = "COMPLETED"
    receipt_number: str


class BookingFlowState(FlowModel):
    """
    Снимок мастера бронирования

    Каждый обработчик шага получает состояние и возвращает новое; поля
    заполняются по мере прохождения шагов.
    """
    step: BookingStep = BookingStep.VEHICLE_SELECTION
    started_at: datetime
    last_updated_at: datetime

    # Шаг 1
    vehicle: Optional[VehicleRates] = None
    rental_mode: RentalMode = RentalMode.MONTHLY
    rental_period: Optional[RentalPeriod] = None
    rate: Optional[RateCalculation] = None
    selected_addons: Tuple[AddOn, ...] = ()
    price: Optional[PriceBreakdown] = None
    payment_method: PaymentMethod = PaymentMethod.CREDIT_CARD
    terms_accepted: bool = False
    notification_preferences: Dict[str, bool] = {"email": True, "sms": False, "whatsapp": False}
    notes: Optional[str] = None

    # Шаг 2
    kyc: Optional[KYCData] = None
    customer_id: Optional[str] = None

    # Шаг 3
    payment: Optional[PaymentData] = None
    accounting_entry: Optional[AccountingEntry] = None

    # Шаг 4
    booking: Optional[Dict[str, Any]] = None
    completed_at: Optional[datetime] = None

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None
