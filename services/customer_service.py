from datetime import datetime, timezone

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker, AsyncSession

from database.models.customer import Customer
from services.exceptions import BookingPersistenceError
from services.schemas import UpdateKYCRequest, UpdateCardRequest


class CustomerService:
    """Сохранение данных KYC и карты клиента (шаг 2 мастера)"""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    @staticmethod
    async def _get_or_create(session: AsyncSession, email: str) -> Customer:
        result = await session.execute(select(Customer).where(Customer.email == email))
        customer = result.scalar_one_or_none()

        if not customer:
            customer = Customer(email=email)
            session.add(customer)
            await session.flush()
        return customer

    async def update_kyc(self, request: UpdateKYCRequest) -> Customer:
        async with self.session_factory() as session:
            try:
                customer = await self._get_or_create(session, request.email)

                # Обновляем только переданные поля
                if request.first_name is not None:
                    customer.first_name = request.first_name
                if request.last_name is not None:
                    customer.last_name = request.last_name
                if request.phone_number is not None:
                    customer.mobile_number = request.phone_number

                customer.is_tourist = request.is_tourist
                customer.nationality = request.nationality
                # Турист предъявляет паспорт, резидент - Emirates ID
                customer.emirates_id = None if request.is_tourist else request.emirates_id
                customer.passport_number = request.passport_number if request.is_tourist else None
                customer.passport_country = request.passport_country if request.is_tourist else None
                customer.drivers_id = request.license_number
                customer.drivers_license_country = request.drivers_license_country
                customer.drivers_license_expiry = request.drivers_license_expiry
                customer.date_of_birth = request.date_of_birth
                customer.kyc_verified_at = datetime.now(timezone.utc)

                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"Ошибка сохранения KYC для {request.email}: {e}")
                raise BookingPersistenceError(str(e)) from e

            logger.info(f"KYC клиента {customer.id} обновлён")
            return customer

    async def update_card(self, request: UpdateCardRequest) -> Customer:
        async with self.session_factory() as session:
            try:
                customer = await self._get_or_create(session, request.email)

                customer.card_last4 = request.credit_card_number[-4:]
                customer.card_type = request.credit_card_type
                customer.card_holder_name = request.card_holder_name
                customer.bank_provider = request.bank_provider

                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"Ошибка сохранения карты для {request.email}: {e}")
                raise BookingPersistenceError(str(e)) from e

            logger.info(f"Карта клиента {customer.id} обновлена (****{customer.card_last4})")
            return customer
