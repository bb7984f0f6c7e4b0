"""
Сервис хранения бронирований: создание, выборка, смена статуса
"""
import math
import time
from datetime import datetime
from typing import Optional, Dict, Any, List, Tuple

from loguru import logger
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm import selectinload

from database.models.booking import Booking, BookingAddon, BookingStatus
from services.exceptions import (
    BookingValidationError,
    InvalidStatusError,
    BookingNotFoundError,
    BookingPersistenceError,
)
from services.pricing import round2
from services.schemas import CreateBookingRequest


REQUIRED_FIELDS = ["companyId", "vehicleId", "customerId", "startDate", "endDate", "totalAmount"]

# ACTIVE выставляется только при выдаче автомобиля, не через API
VALID_STATUSES = ["PENDING", "CONFIRMED", "CANCELLED", "COMPLETED"]

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10


def generate_booking_number() -> str:
    """Номер для отображения BK-{unix ms}; первичный ключ - отдельный UUID"""
    return f"BK-{int(time.time() * 1000)}"


def validate_required(payload: Dict[str, Any]) -> None:
    missing = [field for field in REQUIRED_FIELDS if not payload.get(field)]
    if missing:
        raise BookingValidationError(missing=missing, required=list(REQUIRED_FIELDS))


def parse_status_filter(status: Optional[str]) -> Optional[BookingStatus]:
    if not status:
        return None
    try:
        return BookingStatus(status)
    except ValueError:
        raise InvalidStatusError(status, [s.value for s in BookingStatus])


def _money(value) -> Optional[str]:
    return str(round2(value)) if value is not None else None


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_addon(addon: BookingAddon) -> Dict[str, Any]:
    return {
        "id": addon.id,
        "name": addon.addon_name,
        "dailyRate": _money(addon.daily_rate),
        "quantity": addon.quantity,
        "totalAmount": _money(addon.total_amount),
    }


def serialize_booking(booking: Booking) -> Dict[str, Any]:
    return {
        "id": booking.id,
        "companyId": booking.company_id,
        "vehicleId": booking.vehicle_id,
        "customerId": booking.customer_id,
        "bookingNumber": booking.booking_number,
        "startDate": _iso(booking.start_date),
        "endDate": _iso(booking.end_date),
        "totalDays": booking.total_days,
        "monthlyPeriods": booking.monthly_periods,
        "remainingDays": booking.remaining_days,
        "dailyRate": _money(booking.daily_rate),
        "monthlyRate": _money(booking.monthly_rate),
        "totalAmount": _money(booking.total_amount),
        "status": booking.status.value,
        "notes": booking.notes,
        "paymentMethod": booking.payment_method.value if booking.payment_method else None,
        "termsAccepted": booking.terms_accepted,
        "notificationPreferences": booking.notification_preferences,
        "createdAt": _iso(booking.created_at),
        "updatedAt": _iso(booking.updated_at),
        "addons": [serialize_addon(addon) for addon in booking.addons],
    }


def serialize_booking_summary(booking: Booking) -> Dict[str, Any]:
    """Строка списка бронирований для админки"""
    data = serialize_booking(booking)
    data["customerEmail"] = booking.customer.email if booking.customer else None
    data["vehicleName"] = booking.vehicle.display_name if booking.vehicle else None
    data["companyName"] = booking.company.name if booking.company else None
    data["addons"] = [
        {"name": addon.addon_name, "totalAmount": _money(addon.total_amount)}
        for addon in booking.addons
    ]
    return data


def serialize_booking_details(booking: Booking) -> Dict[str, Any]:
    data = serialize_booking(booking)
    customer, vehicle, company = booking.customer, booking.vehicle, booking.company
    data.update({
        "customerEmail": customer.email if customer else None,
        "customerFirstName": customer.first_name if customer else None,
        "customerLastName": customer.last_name if customer else None,
        "customerName": customer.full_name if customer else None,
        "customerKycVerified": customer.is_kyc_verified if customer else None,
        "make": vehicle.make if vehicle else None,
        "model": vehicle.model if vehicle else None,
        "year": vehicle.year if vehicle else None,
        "color": vehicle.color if vehicle else None,
        "companyName": company.name if company else None,
    })
    return data


def _with_details(query):
    return query.options(
        selectinload(Booking.addons),
        selectinload(Booking.customer),
        selectinload(Booking.vehicle),
        selectinload(Booking.company),
    ).execution_options(populate_existing=True)


class BookingService:
    """Сервис для работы с бронированиями"""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def create_booking(self, payload: Dict[str, Any]) -> Booking:
        """
        Создать бронирование вместе с дополнительными услугами

        Бронирование и строки услуг вставляются в одной транзакции:
        при любой ошибке выполняется откат и ничего не сохраняется.

        Raises:
            BookingValidationError: не заполнены обязательные поля
            pydantic.ValidationError: поля имеют неверный формат
            BookingPersistenceError: ошибка БД, транзакция откачена
        """
        validate_required(payload)
        request = CreateBookingRequest.model_validate(payload)

        async with self.session_factory() as session:
            try:
                booking = Booking(
                    company_id=request.company_id,
                    vehicle_id=request.vehicle_id,
                    customer_id=request.customer_id,
                    booking_number=generate_booking_number(),
                    start_date=request.start_date,
                    end_date=request.end_date,
                    total_days=request.total_days or 0,
                    monthly_periods=request.monthly_periods or 0,
                    remaining_days=request.remaining_days or 0,
                    daily_rate=request.daily_rate or 0,
                    monthly_rate=request.monthly_rate or 0,
                    total_amount=request.total_amount,
                    status=BookingStatus.PENDING,
                    payment_method=request.payment_method,
                    terms_accepted=request.terms_accepted,
                    notification_preferences=request.notification_preferences,
                    notes=request.notes or None,
                )
                session.add(booking)
                await session.flush()

                for addon in request.add_ons or []:
                    session.add(BookingAddon(
                        booking_id=booking.id,
                        addon_name=addon.name,
                        daily_rate=addon.daily_rate,
                        quantity=addon.quantity or 1,
                        total_amount=addon.total_amount,
                    ))
                await session.flush()

                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"❌ Ошибка создания бронирования, транзакция откачена: {e}")
                raise BookingPersistenceError(str(e)) from e

            booking_id = booking.id

        logger.info(
            f"✅ Бронирование {booking.booking_number} создано: "
            f"vehicle={request.vehicle_id}, customer={request.customer_id}, total={request.total_amount}"
        )
        return await self.get_booking(booking_id)

    async def get_booking(self, booking_id: str) -> Booking:
        async with self.session_factory() as session:
            result = await session.execute(
                _with_details(select(Booking).where(Booking.id == booking_id))
            )
            booking = result.scalar_one_or_none()

        if not booking:
            raise BookingNotFoundError(booking_id)
        return booking

    async def count_bookings(self, status: Optional[str] = None) -> int:
        status_filter = parse_status_filter(status)

        query = select(func.count(Booking.id))
        if status_filter:
            query = query.where(Booking.status == status_filter)

        async with self.session_factory() as session:
            result = await session.execute(query)
            return result.scalar_one()

    async def list_bookings(
        self,
        page: int = DEFAULT_PAGE,
        limit: int = DEFAULT_LIMIT,
        status: Optional[str] = None
    ) -> Tuple[List[Booking], Dict[str, int]]:
        """
        Получить страницу бронирований, новые сначала

        Returns:
            (бронирования, {page, limit, totalCount, totalPages})
        """
        status_filter = parse_status_filter(status)
        page = max(1, page)
        limit = max(1, limit)

        query = select(Booking)
        if status_filter:
            query = query.where(Booking.status == status_filter)
        query = (
            query.order_by(Booking.created_at.desc(), Booking.booking_number.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )

        async with self.session_factory() as session:
            result = await session.execute(_with_details(query))
            bookings = list(result.scalars().all())

        total_count = await self.count_bookings(status)
        pagination = {
            "page": page,
            "limit": limit,
            "totalCount": total_count,
            "totalPages": math.ceil(total_count / limit),
        }
        return bookings, pagination

    async def update_status(self, booking_id: str, status: Optional[str]) -> Booking:
        if status not in VALID_STATUSES:
            raise InvalidStatusError(status, list(VALID_STATUSES))

        async with self.session_factory() as session:
            try:
                booking = await session.get(Booking, booking_id)
                if not booking:
                    raise BookingNotFoundError(booking_id)

                booking.status = BookingStatus(status)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"Ошибка смены статуса {booking_id}: {e}")
                raise BookingPersistenceError(str(e)) from e

        logger.info(f"Бронирование {booking_id}: статус -> {status}")
        return await self.get_booking(booking_id)
