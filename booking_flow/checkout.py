"""
Оформление бронирования после шага KYC: сохранение KYC и карты,
оплата, создание бронирования, проводка.
"""
from typing import Optional, Union

from loguru import logger

from booking_flow.flow import BookingFlow
from booking_flow.states import BookingFlowState, BookingStep
from booking_flow.storage import FlowStorage
from database.models.booking import PaymentMethod
from services.accounting import Payer
from services.api_client import RentalAPIClient
from services.exceptions import FlowStepError


async def checkout(
    flow: BookingFlow,
    state: BookingFlowState,
    client: RentalAPIClient,
    terms_accepted: bool,
    payment_method: Optional[PaymentMethod] = None,
    storage: Optional[FlowStorage] = None,
    user_id: Optional[Union[int, str]] = None,
) -> BookingFlowState:
    """
    Выполнить оплату и создать бронирование

    Сетевые вызовы идут строго последовательно, каждый ждёт завершения
    предыдущего. Повторов нет: BookingAPIError пробрасывается вызывающему,
    черновик остаётся на шаге оплаты и может быть отправлен снова.
    """
    if state.step != BookingStep.PAYMENT or state.kyc is None:
        raise FlowStepError("Checkout is available only at the payment step")
    # До любых сетевых вызовов: без согласия ничего не сохраняется
    if not terms_accepted:
        raise FlowStepError("Please accept the payment terms and conditions")

    kyc = state.kyc

    # 1. KYC и карта
    kyc_result = await client.update_kyc(kyc.kyc_payload())
    customer_id = kyc_result.get("data", {}).get("customerId") or state.customer_id
    await client.update_card(kyc.card_payload())

    # 2. Оплата и проводка (локально)
    payer = Payer(id=customer_id, first_name=kyc.first_name, last_name=kyc.last_name)
    state = flow.submit_payment(state, payer, terms_accepted, payment_method)

    # 3. Бронирование
    booking = await client.create_booking(flow.booking_payload(state, customer_id))
    logger.info(f"Бронирование {booking.get('bookingNumber')} создано для клиента {customer_id}")

    # 4. Проводка со ссылкой на бронирование
    entry = state.accounting_entry.with_reference(booking["id"])
    await client.record_accounting_entry(entry.to_dict())

    state = flow.confirm_booking(state, booking)

    if storage is not None and user_id is not None:
        await storage.clear(user_id)

    return state
