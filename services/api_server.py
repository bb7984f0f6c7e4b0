"""
REST API сервер бронирований (aiohttp)
"""
import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import aiohttp_cors
from aiohttp import web
from loguru import logger
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import async_sessionmaker

from config.settings import settings
from database.base import async_session_factory
from services.accounting import AccountingEntry, AccountingService
from services.booking_service import (
    BookingService,
    DEFAULT_LIMIT,
    DEFAULT_PAGE,
    serialize_booking,
    serialize_booking_details,
    serialize_booking_summary,
)
from services.customer_service import CustomerService
from services.exceptions import (
    BookingNotFoundError,
    BookingPersistenceError,
    BookingValidationError,
    InvalidStatusError,
)
from services.schemas import UpdateCardRequest, UpdateKYCRequest


BOOKING_SERVICE = web.AppKey("booking_service", BookingService)
CUSTOMER_SERVICE = web.AppKey("customer_service", CustomerService)
ACCOUNTING_SERVICE = web.AppKey("accounting_service", AccountingService)

SERVICE_NAME = "Vesla Rent-a-Car API"


class InvalidRequestBody(Exception):
    pass


async def read_json(request: web.Request) -> Dict[str, Any]:
    try:
        data = await request.json()
    except ValueError:
        # JSONDecodeError и UnicodeDecodeError
        raise InvalidRequestBody("Invalid JSON body")
    if not isinstance(data, dict):
        raise InvalidRequestBody("JSON object expected")
    return data


def error_response(status: int, error: str, **extra) -> web.Response:
    return web.json_response({"error": error, **extra}, status=status)


def validation_details(e: ValidationError) -> List[Dict[str, Any]]:
    return json.loads(e.json(include_url=False))


def parse_positive_int(value: Optional[str], default: int) -> int:
    if value in (None, ""):
        return default
    number = int(value)
    if number < 1:
        raise ValueError(value)
    return number


# ---------------------------------------------------------------------------
# Бронирования
# ---------------------------------------------------------------------------

async def create_booking(request: web.Request) -> web.Response:
    """POST /api/bookings"""
    try:
        payload = await read_json(request)
        booking = await request.app[BOOKING_SERVICE].create_booking(payload)
    except InvalidRequestBody as e:
        return error_response(400, str(e))
    except BookingValidationError as e:
        return error_response(400, "Missing required fields", required=e.required, missing=e.missing)
    except ValidationError as e:
        return error_response(400, "Invalid booking data", details=validation_details(e))
    except BookingPersistenceError as e:
        return error_response(500, "Failed to create booking", details=e.details)

    return web.json_response(
        {
            "success": True,
            "booking": serialize_booking(booking),
            "message": "Booking created successfully",
        },
        status=201
    )


async def count_bookings(request: web.Request) -> web.Response:
    """GET /api/bookings/count?status="""
    status = request.query.get("status")
    try:
        total = await request.app[BOOKING_SERVICE].count_bookings(status)
    except InvalidStatusError as e:
        return error_response(400, "Invalid status", validStatuses=e.valid_statuses)

    return web.json_response({"success": True, "total": total, "status": status or "all"})


async def list_bookings(request: web.Request) -> web.Response:
    """GET /api/bookings?page&limit&status"""
    try:
        page = parse_positive_int(request.query.get("page"), DEFAULT_PAGE)
        limit = parse_positive_int(request.query.get("limit"), DEFAULT_LIMIT)
    except ValueError:
        return error_response(400, "page and limit must be positive integers")

    try:
        bookings, pagination = await request.app[BOOKING_SERVICE].list_bookings(
            page=page,
            limit=limit,
            status=request.query.get("status")
        )
    except InvalidStatusError as e:
        return error_response(400, "Invalid status", validStatuses=e.valid_statuses)

    return web.json_response({
        "success": True,
        "bookings": [serialize_booking_summary(booking) for booking in bookings],
        "pagination": pagination,
    })


async def get_booking(request: web.Request) -> web.Response:
    """GET /api/bookings/{id}"""
    try:
        booking = await request.app[BOOKING_SERVICE].get_booking(request.match_info["id"])
    except BookingNotFoundError:
        return error_response(404, "Booking not found")

    return web.json_response({"success": True, "booking": serialize_booking_details(booking)})


async def update_booking_status(request: web.Request) -> web.Response:
    """PATCH /api/bookings/{id}/status"""
    try:
        payload = await read_json(request)
        status = payload.get("status")
        booking = await request.app[BOOKING_SERVICE].update_status(request.match_info["id"], status)
    except InvalidRequestBody as e:
        return error_response(400, str(e))
    except InvalidStatusError as e:
        return error_response(400, "Invalid status", validStatuses=e.valid_statuses)
    except BookingNotFoundError:
        return error_response(404, "Booking not found")
    except BookingPersistenceError as e:
        return error_response(500, "Failed to update booking status", details=e.details)

    return web.json_response({
        "success": True,
        "booking": serialize_booking(booking),
        "message": f"Booking status updated to {status}",
    })


# ---------------------------------------------------------------------------
# Клиенты (KYC и карта)
# ---------------------------------------------------------------------------

async def update_customer_kyc(request: web.Request) -> web.Response:
    """PUT /api/customers/kyc/update"""
    try:
        payload = await read_json(request)
        customer = await request.app[CUSTOMER_SERVICE].update_kyc(UpdateKYCRequest.model_validate(payload))
    except InvalidRequestBody as e:
        return error_response(400, str(e))
    except ValidationError as e:
        return error_response(400, "Invalid KYC data", details=validation_details(e))
    except BookingPersistenceError as e:
        return error_response(500, "Failed to update KYC", details=e.details)

    return web.json_response({"success": True, "data": {"customerId": customer.id}})


async def update_customer_card(request: web.Request) -> web.Response:
    """PUT /api/customers/card/update"""
    try:
        payload = await read_json(request)
        customer = await request.app[CUSTOMER_SERVICE].update_card(UpdateCardRequest.model_validate(payload))
    except InvalidRequestBody as e:
        return error_response(400, str(e))
    except ValidationError as e:
        return error_response(400, "Invalid card data", details=validation_details(e))
    except BookingPersistenceError as e:
        return error_response(500, "Failed to update card", details=e.details)

    return web.json_response({
        "success": True,
        "data": {"customerId": customer.id, "cardLast4": customer.card_last4},
    })


# ---------------------------------------------------------------------------
# Бухгалтерия
# ---------------------------------------------------------------------------

async def create_accounting_entry(request: web.Request) -> web.Response:
    """POST /api/accounting/entries"""
    try:
        payload = await read_json(request)
        entry = AccountingEntry.from_dict(payload)
        record = await request.app[ACCOUNTING_SERVICE].record_entry(entry, payload.get("referenceId"))
    except InvalidRequestBody as e:
        return error_response(400, str(e))
    except (KeyError, TypeError, ValueError, ArithmeticError) as e:
        return error_response(400, "Invalid accounting entry", details=str(e))
    except BookingPersistenceError as e:
        return error_response(500, "Failed to record accounting entry", details=e.details)

    return web.json_response(
        {"success": True, "data": {"id": record.id, "entryNumber": record.entry_number}},
        status=201
    )


# ---------------------------------------------------------------------------
# Служебные
# ---------------------------------------------------------------------------

async def health_check(request: web.Request) -> web.Response:
    """Health check endpoint"""
    return web.json_response({
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": SERVICE_NAME,
    })


async def index(request: web.Request) -> web.Response:
    return web.json_response({
        "message": SERVICE_NAME,
        "version": "1.0.0",
        "endpoints": {"health": "/health", "bookings": "/api/bookings"},
    })


def setup_cors(app: web.Application, origins: List[str]) -> None:
    """CORS для веб- и мобильного клиента на всех маршрутах"""
    cors = aiohttp_cors.setup(app, defaults={
        origin: aiohttp_cors.ResourceOptions(
            allow_credentials=True,
            allow_headers=("Content-Type", "Authorization"),
            allow_methods=["GET", "POST", "PUT", "PATCH"],
        )
        for origin in origins
    })
    for route in list(app.router.routes()):
        cors.add(route)


def create_api_app(
    session_factory: async_sessionmaker = async_session_factory,
    cors_origins: Optional[List[str]] = None
) -> web.Application:
    """Создать приложение REST API"""
    app = web.Application()

    app[BOOKING_SERVICE] = BookingService(session_factory)
    app[CUSTOMER_SERVICE] = CustomerService(session_factory)
    app[ACCOUNTING_SERVICE] = AccountingService(session_factory)

    # Маршруты (count регистрируется раньше {id})
    app.router.add_post("/api/bookings", create_booking)
    app.router.add_get("/api/bookings/count", count_bookings)
    app.router.add_get("/api/bookings", list_bookings)
    app.router.add_get("/api/bookings/{id}", get_booking)
    app.router.add_patch("/api/bookings/{id}/status", update_booking_status)
    app.router.add_put("/api/customers/kyc/update", update_customer_kyc)
    app.router.add_put("/api/customers/card/update", update_customer_card)
    app.router.add_post("/api/accounting/entries", create_accounting_entry)
    app.router.add_get("/health", health_check)
    app.router.add_get("/", index)

    setup_cors(app, cors_origins if cors_origins is not None else settings.cors_origins)

    return app


async def run_api_server(host: str = settings.api_host, port: int = settings.api_port):
    """
    Запустить REST API сервер

    Args:
        host: Хост для прослушивания
        port: Порт для прослушивания
    """
    app = create_api_app()
    runner = web.AppRunner(app)
    await runner.setup()

    site = web.TCPSite(runner, host, port)
    await site.start()

    logger.info(f"🌐 API сервер запущен на http://{host}:{port}")
    logger.info(f"   - Бронирования: http://{host}:{port}/api/bookings")
    logger.info(f"   - Health check: GET http://{host}:{port}/health")

    try:
        # Держим сервер запущенным
        while True:
            await asyncio.sleep(3600)
    finally:
        await runner.cleanup()
