"""
Клиент REST API бронирований для мастера бронирования
"""
import asyncio
import json
from typing import Optional, Dict, Any

import aiohttp
from loguru import logger

from config.settings import settings
from services.exceptions import BookingAPIError


GENERIC_ERROR_MESSAGE = "Unable to complete the request. Please try again."


def extract_error_message(body: str, fallback: str = GENERIC_ERROR_MESSAGE) -> str:
    """Достать человекочитаемое сообщение из тела ответа с ошибкой"""
    try:
        data = json.loads(body)
    except (TypeError, ValueError):
        return fallback

    if not isinstance(data, dict):
        return fallback

    for key in ("message", "error"):
        value = data.get(key)
        if isinstance(value, str) and value:
            details = data.get("details")
            if isinstance(details, str) and details:
                return f"{value}: {details}"
            return value
    return fallback


class RentalAPIClient:
    """
    HTTP клиент к /api

    Повторов и ключа идемпотентности нет: повторная отправка после сетевой
    ошибки может создать второе бронирование.
    """

    def __init__(
        self,
        base_url: str = settings.api_base_url,
        token: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self._session = session

    def _get_headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None,
                       params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        own_session = self._session is None
        session = self._session or aiohttp.ClientSession()

        try:
            logger.debug(f"{method} {url}")
            async with session.request(method, url, json=payload, params=params,
                                       headers=self._get_headers()) as response:
                response_text = await response.text()

                if response.status >= 400:
                    message = extract_error_message(response_text)
                    logger.error(f"Ошибка API {method} {path}: {response.status} - {response_text}")
                    raise BookingAPIError(message, status=response.status)

                try:
                    return json.loads(response_text) if response_text else {}
                except ValueError:
                    raise BookingAPIError("Unexpected response from server", status=response.status)

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Сетевая ошибка {method} {path}: {e}")
            raise BookingAPIError(str(e) or GENERIC_ERROR_MESSAGE) from e
        finally:
            if own_session:
                await session.close()

    async def update_kyc(self, kyc_data: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("PUT", "/customers/kyc/update", kyc_data)

    async def update_card(self, card_data: Dict[str, Any]) -> Dict[str, Any]:
        """Сохранить карту клиента (передаются только последние 4 цифры)"""
        return await self._request("PUT", "/customers/card/update", card_data)

    async def create_booking(self, booking_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Создать бронирование

        Returns:
            Созданное бронирование (id, bookingNumber, status=PENDING, addons)
        """
        data = await self._request("POST", "/bookings", booking_data)
        return data["booking"]

    async def get_booking(self, booking_id: str) -> Dict[str, Any]:
        data = await self._request("GET", f"/bookings/{booking_id}")
        return data["booking"]

    async def list_bookings(self, page: int = 1, limit: int = 10, status: Optional[str] = None) -> Dict[str, Any]:
        params = {"page": page, "limit": limit}
        if status:
            params["status"] = status
        return await self._request("GET", "/bookings", params=params)

    async def update_booking_status(self, booking_id: str, status: str) -> Dict[str, Any]:
        data = await self._request("PATCH", f"/bookings/{booking_id}/status", {"status": status})
        return data["booking"]

    async def record_accounting_entry(self, entry: Dict[str, Any]) -> Dict[str, Any]:
        data = await self._request("POST", "/accounting/entries", entry)
        return data["data"]
