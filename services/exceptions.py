"""
Исключения предметной области бронирования
"""
from typing import List, Optional


class BookingError(Exception):
    """Базовая ошибка бронирования"""


class BookingValidationError(BookingError):
    """Не заполнены обязательные поля бронирования"""

    def __init__(self, missing: List[str], required: List[str]):
        self.missing = missing
        self.required = required
        super().__init__(f"Missing required fields: {', '.join(missing)}")


class InvalidStatusError(BookingError):
    """Недопустимый статус бронирования"""

    def __init__(self, status, valid_statuses: List[str]):
        self.status = status
        self.valid_statuses = valid_statuses
        super().__init__(f"Invalid status: {status}")


class BookingNotFoundError(BookingError):
    def __init__(self, booking_id: str):
        self.booking_id = booking_id
        super().__init__(f"Booking not found: {booking_id}")


class BookingPersistenceError(BookingError):
    """Ошибка БД при сохранении бронирования (транзакция откачена)"""

    def __init__(self, details: str):
        self.details = details
        super().__init__(details)


class InvalidRentalPeriodError(BookingError):
    """Дата окончания не позже даты начала"""


class KYCValidationError(BookingError):
    """Данные KYC не прошли проверку"""


class FlowStepError(BookingError):
    """Переход мастера бронирования невозможен из текущего шага"""


class BookingAPIError(BookingError):
    """Ошибка вызова REST API с человекочитаемым сообщением"""

    def __init__(self, message: str, status: Optional[int] = None):
        self.message = message
        self.status = status
        super().__init__(message)
