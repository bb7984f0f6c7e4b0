"""
Мастер бронирования: выбор автомобиля -> KYC -> оплата -> подтверждение.

Обработчики не изменяют состояние, а возвращают новое; переход на
следующий шаг происходит только после успешной проверки текущего.
"""
import secrets
import time
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Dict, Any

from loguru import logger

from booking_flow.states import BookingFlowState, BookingStep, KYCData, PaymentData, VehicleRates
from config.settings import settings
from database.models.booking import PaymentMethod
from services.accounting import Payer, build_payment_entry
from services.exceptions import FlowStepError
from services.pricing import (
    AddOn,
    RentalMode,
    addon_line_items,
    build_rental_period,
    check_minimum_period,
    price_booking,
    selected_addons,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_receipt_number(when: datetime) -> str:
    return f"REC-{when:%Y%m%d}-{secrets.randbelow(10000):04d}"


class BookingFlow:
    """Переходы между шагами мастера бронирования"""

    def __init__(self, clock: Callable[[], datetime] = utcnow, currency: str = settings.currency):
        self.clock = clock
        self.currency = currency

    def start(self) -> BookingFlowState:
        now = self.clock()
        return BookingFlowState(started_at=now, last_updated_at=now)

    reset = start

    @staticmethod
    def _require_step(state: BookingFlowState, step: BookingStep) -> None:
        if state.step != step:
            raise FlowStepError(
                f"Step {step.name} is not available: booking flow is at {state.step.name}"
            )

    def _advance(self, state: BookingFlowState, **changes) -> BookingFlowState:
        changes["step"] = BookingStep(min(state.step + 1, BookingStep.CONFIRMATION))
        changes["last_updated_at"] = self.clock()
        return state.model_copy(update=changes)

    def go_back(self, state: BookingFlowState) -> BookingFlowState:
        if state.is_completed:
            raise FlowStepError("Booking is already confirmed")
        return state.model_copy(update={
            "step": BookingStep(max(state.step - 1, BookingStep.VEHICLE_SELECTION)),
            "last_updated_at": self.clock(),
        })

    def select_vehicle(
        self,
        state: BookingFlowState,
        vehicle: VehicleRates,
        start_date: datetime,
        end_date: datetime,
        addons: Iterable[AddOn] = (),
        rental_mode: RentalMode = RentalMode.MONTHLY,
        terms_accepted: bool = False,
        payment_method: PaymentMethod = PaymentMethod.CREDIT_CARD,
        notification_preferences: Optional[Dict[str, bool]] = None,
        notes: Optional[str] = None,
    ) -> BookingFlowState:
        """
        Шаг 1: автомобиль, период и услуги

        Raises:
            InvalidRentalPeriodError: дата окончания не позже даты начала или
                период короче минимума режима (1, 7 или 30 дней)
            FlowStepError: не тот шаг или не приняты условия
        """
        self._require_step(state, BookingStep.VEHICLE_SELECTION)

        period = build_rental_period(start_date, end_date)
        check_minimum_period(period.total_days, rental_mode)
        if not terms_accepted:
            raise FlowStepError("Please accept the terms and conditions to proceed")

        chosen = tuple(selected_addons(addons))
        quote = price_booking(
            start_date,
            end_date,
            vehicle.daily_rate,
            vehicle.monthly_rate,
            chosen,
            rental_mode=rental_mode,
            weekly_rate=vehicle.weekly_rate,
        )

        return self._advance(
            state,
            vehicle=vehicle,
            rental_mode=rental_mode,
            rental_period=period,
            rate=quote.rate,
            selected_addons=chosen,
            price=quote.price,
            terms_accepted=terms_accepted,
            payment_method=payment_method,
            notification_preferences=notification_preferences or state.notification_preferences,
            notes=notes,
        )

    def submit_kyc(self, state: BookingFlowState, kyc: KYCData) -> BookingFlowState:
        """Шаг 2: проверка личности и карты"""
        self._require_step(state, BookingStep.KYC)
        kyc.check()
        return self._advance(state, kyc=kyc)

    def submit_payment(
        self,
        state: BookingFlowState,
        payer: Payer,
        terms_accepted: bool,
        payment_method: Optional[PaymentMethod] = None,
    ) -> BookingFlowState:
        """
        Шаг 3: оплата и бухгалтерская проводка

        Проводка строится на сумму с НДС; связь с бронированием
        проставляется после его создания.
        """
        self._require_step(state, BookingStep.PAYMENT)
        if not terms_accepted:
            raise FlowStepError("Please accept the payment terms and conditions")

        now = self.clock()
        receipt_number = generate_receipt_number(now)
        total = state.price.total_with_vat
        kyc = state.kyc

        payment = PaymentData(
            payment_method=payment_method or state.payment_method,
            amount=total,
            currency=self.currency,
            card_last4=kyc.card_last4,
            card_type=kyc.credit_card_type.value,
            card_holder_name=kyc.card_holder_name,
            transaction_id=f"TXN-{int(time.time() * 1000)}",
            transaction_date=now,
            receipt_number=receipt_number,
        )
        entry = build_payment_entry(
            total,
            payer=payer,
            company_id=state.vehicle.company_id,
            vehicle_label=state.vehicle.label,
            receipt_number=receipt_number,
            created_at=now,
        )
        logger.info(f"Оплата {receipt_number}: {total} {self.currency}, проводка {entry.entry_number}")

        return self._advance(
            state,
            payment=payment,
            payment_method=payment.payment_method,
            accounting_entry=entry,
            customer_id=payer.id or state.customer_id,
        )

    def confirm_booking(self, state: BookingFlowState, booking: Dict[str, Any]) -> BookingFlowState:
        """Шаг 4: бронирование создано сервером"""
        self._require_step(state, BookingStep.CONFIRMATION)
        if state.is_completed:
            raise FlowStepError("Booking is already confirmed")

        now = self.clock()
        entry = state.accounting_entry
        if entry is not None and booking.get("id"):
            entry = entry.with_reference(booking["id"])

        return state.model_copy(update={
            "booking": booking,
            "accounting_entry": entry,
            "completed_at": now,
            "last_updated_at": now,
        })

    @staticmethod
    def booking_payload(state: BookingFlowState, customer_id: str) -> Dict[str, Any]:
        """Тело POST /api/bookings из состояния мастера"""
        if state.vehicle is None or state.rental_period is None or state.price is None:
            raise FlowStepError("Vehicle selection is not completed")

        period, rate = state.rental_period, state.rate
        return {
            "companyId": state.vehicle.company_id,
            "vehicleId": state.vehicle.id,
            "customerId": customer_id,
            "startDate": period.start_date.isoformat(),
            "endDate": period.end_date.isoformat(),
            "totalDays": period.total_days,
            "monthlyPeriods": period.monthly_periods,
            "remainingDays": period.remaining_days,
            "dailyRate": str(state.vehicle.daily_rate),
            "monthlyRate": str(rate.monthly_rate_applied),
            "totalAmount": str(state.price.total_with_vat),
            "paymentMethod": state.payment_method.value,
            "termsAccepted": state.terms_accepted,
            "notificationPreferences": dict(state.notification_preferences),
            "notes": state.notes,
            "addOns": addon_line_items(state.selected_addons, period.monthly_periods),
        }
