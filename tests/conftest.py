from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from booking_flow.states import VehicleRates
from database.base import init_db
from database.models import Company, Customer, Vehicle
from services.api_server import create_api_app


TEST_ORIGIN = "http://localhost:8081"


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def api(aiohttp_client, session_factory):
    app = create_api_app(session_factory, cors_origins=[TEST_ORIGIN])
    return await aiohttp_client(app)


@pytest.fixture
async def fleet(session_factory):
    """Компания, автомобиль и клиент для выборок с деталями"""
    async with session_factory() as session:
        company = Company(id="company-1", name="Vesla Rent-a-Car")
        vehicle = Vehicle(
            id="vehicle-1",
            company_id="company-1",
            make="Toyota",
            model="Camry",
            year=2024,
            plate_number="DXB-12345",
            color="White",
            daily_rate=Decimal("100.00"),
            weekly_rate=Decimal("600.00"),
            monthly_rate=Decimal("2000.00"),
        )
        customer = Customer(id="customer-1", email="sara@example.com", first_name="Sara", last_name="Haddad")
        session.add_all([company, vehicle, customer])
        await session.commit()
    return {"company": company, "vehicle": vehicle, "customer": customer}


@pytest.fixture
def vehicle_rates():
    return VehicleRates(
        id="vehicle-1",
        company_id="company-1",
        make="Toyota",
        model="Camry",
        year=2024,
        daily_rate=Decimal("100.00"),
        monthly_rate=Decimal("2000.00"),
        weekly_rate=Decimal("600.00"),
    )


@pytest.fixture
def booking_payload():
    return {
        "companyId": "company-1",
        "vehicleId": "vehicle-1",
        "customerId": "customer-1",
        "startDate": "2026-11-01T10:00:00+00:00",
        "endDate": "2026-12-16T10:00:00+00:00",
        "totalDays": 45,
        "monthlyPeriods": 1,
        "remainingDays": 15,
        "dailyRate": "100.00",
        "monthlyRate": "2000.00",
        "totalAmount": "4462.50",
        "notes": "Airport pickup",
        "addOns": [
            {"name": "GPS Navigation", "dailyRate": "750.00", "quantity": 1, "totalAmount": "750.00"},
        ],
    }
