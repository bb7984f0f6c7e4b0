"""
Расчёт стоимости аренды: тарифы, дополнительные услуги, НДС
"""
import enum
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Dict, Any, Tuple

from services.exceptions import InvalidRentalPeriodError


# НДС ОАЭ, не настраивается для отдельного бронирования
VAT_RATE = Decimal("0.05")
# Залог: 20% от суммы с НДС (не списывается)
SECURITY_DEPOSIT_RATE = Decimal("0.20")

DAYS_PER_WEEK = 7
DAYS_PER_MONTH = 30

# (минимум месяцев, скидка с месячного тарифа), от большего к меньшему
MONTHLY_DISCOUNT_TIERS: Tuple[Tuple[int, Decimal], ...] = (
    (6, Decimal("100")),
    (3, Decimal("50")),
)

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")


class RentalMode(enum.Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"


# Минимальная длительность аренды для режима, дней
MINIMUM_DAYS: Dict[RentalMode, int] = {
    RentalMode.DAILY: 1,
    RentalMode.WEEKLY: DAYS_PER_WEEK,
    RentalMode.MONTHLY: DAYS_PER_MONTH,
}


def to_decimal(value) -> Decimal:
    """Привести число или строку к Decimal без потерь двоичной арифметики"""
    if isinstance(value, Decimal):
        return value
    if value is None or value == "":
        return ZERO
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round2(value) -> Decimal:
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def count_days(start_date: datetime, end_date: datetime) -> int:
    """Количество суток между датами, неполные сутки округляются вверх"""
    days, remainder = divmod(end_date - start_date, timedelta(days=1))
    return days + 1 if remainder else days


@dataclass(frozen=True)
class RentalPeriod:
    start_date: datetime
    end_date: datetime
    total_days: int
    monthly_periods: int
    remaining_days: int


@dataclass(frozen=True)
class RateCalculation:
    total_days: int
    months: int
    remaining_days: int
    monthly_rate_applied: Decimal
    subtotal: Decimal
    savings: Decimal
    rental_mode: RentalMode = RentalMode.MONTHLY
    weeks: int = 0
    weekly_rate_applied: Decimal = ZERO

    @property
    def is_valid(self) -> bool:
        return self.total_days > 0

    def breakdown(self, daily_rate, currency: str = "AED") -> str:
        """Текстовая расшифровка расчёта для сводки бронирования"""
        if not self.is_valid:
            return "Invalid date range"

        daily = round2(daily_rate)
        if self.weeks:
            text = f"{self.weeks} week{'s' if self.weeks > 1 else ''} × {currency} {self.weekly_rate_applied}"
        elif self.months:
            text = f"{self.months} month{'s' if self.months > 1 else ''} × {currency} {self.monthly_rate_applied}"
        else:
            return f"{self.total_days} day{'s' if self.total_days > 1 else ''} × {currency} {daily}/day"

        if self.remaining_days:
            text += f" + {self.remaining_days} day{'s' if self.remaining_days > 1 else ''} × {currency} {daily}"
        return text


INVALID_RATE = RateCalculation(
    total_days=0,
    months=0,
    remaining_days=0,
    monthly_rate_applied=ZERO,
    subtotal=ZERO,
    savings=ZERO,
)


def tiered_monthly_rate(base_monthly_rate, months: int) -> Decimal:
    """Месячный тариф с учётом скидки за длительность (границы включительно, не ниже нуля)"""
    base = round2(base_monthly_rate)
    for min_months, discount in MONTHLY_DISCOUNT_TIERS:
        if months >= min_months:
            return max(round2(base - discount), ZERO)
    return base


def _daily_rate(total_days: int, daily: Decimal, base_monthly: Decimal, rental_mode: RentalMode) -> RateCalculation:
    return RateCalculation(
        total_days=total_days,
        months=0,
        remaining_days=total_days,
        monthly_rate_applied=base_monthly,
        subtotal=round2(total_days * daily),
        savings=ZERO,
        rental_mode=rental_mode,
    )


def calculate_rate(
    start_date: datetime,
    end_date: datetime,
    daily_rate,
    base_monthly_rate,
    rental_mode: RentalMode = RentalMode.MONTHLY,
    weekly_rate=None,
) -> RateCalculation:
    """
    Рассчитать стоимость аренды в выбранном режиме

    MONTHLY: полные 30-дневные периоды по месячному тарифу со скидкой за
    длительность, остаток по дневному. WEEKLY: полные недели по недельному
    тарифу (без него - 7 дневных), остаток по дневному. DAILY: все дни по
    дневному тарифу. Если полных периодов нет, считается по дневному.

    Returns:
        RateCalculation; при end_date <= start_date - нулевой INVALID_RATE,
        отправку бронирования в этом случае нужно блокировать
    """
    total_days = count_days(start_date, end_date)
    if total_days <= 0:
        return INVALID_RATE

    daily = round2(daily_rate)
    base_monthly = round2(base_monthly_rate)

    if rental_mode == RentalMode.DAILY:
        return _daily_rate(total_days, daily, base_monthly, rental_mode)

    if rental_mode == RentalMode.WEEKLY:
        weekly = round2(weekly_rate) if weekly_rate is not None else daily * DAYS_PER_WEEK
        weeks, remaining_days = divmod(total_days, DAYS_PER_WEEK)
        if not weeks:
            return _daily_rate(total_days, daily, base_monthly, rental_mode)

        subtotal = weeks * weekly + remaining_days * daily
        return RateCalculation(
            total_days=total_days,
            months=0,
            remaining_days=remaining_days,
            monthly_rate_applied=base_monthly,
            subtotal=round2(subtotal),
            savings=round2(total_days * daily - subtotal),
            rental_mode=rental_mode,
            weeks=weeks,
            weekly_rate_applied=weekly,
        )

    months, remaining_days = divmod(total_days, DAYS_PER_MONTH)
    monthly_rate_applied = tiered_monthly_rate(base_monthly, months)

    if months > 0:
        subtotal = months * monthly_rate_applied + remaining_days * daily
        savings = (months * base_monthly + remaining_days * daily) - subtotal
    else:
        subtotal = total_days * daily
        savings = ZERO

    return RateCalculation(
        total_days=total_days,
        months=months,
        remaining_days=remaining_days,
        monthly_rate_applied=monthly_rate_applied,
        subtotal=round2(subtotal),
        savings=round2(savings),
    )


def check_minimum_period(total_days: int, rental_mode: RentalMode) -> None:
    """Минимальная длительность для режима: 1 день, 7 дней, 30 дней"""
    minimum = MINIMUM_DAYS[rental_mode]
    if total_days >= minimum:
        return
    if rental_mode == RentalMode.DAILY:
        raise InvalidRentalPeriodError("Daily rental requires at least 1 day")
    raise InvalidRentalPeriodError(
        f"{rental_mode.value.capitalize()} rental requires at least {minimum} days. "
        f"You selected {total_days} days."
    )


def build_rental_period(start_date: datetime, end_date: datetime) -> RentalPeriod:
    if end_date <= start_date:
        raise InvalidRentalPeriodError("End date must be after start date")

    total_days = count_days(start_date, end_date)
    months, remaining_days = divmod(total_days, DAYS_PER_MONTH)
    return RentalPeriod(
        start_date=start_date,
        end_date=end_date,
        total_days=total_days,
        monthly_periods=months,
        remaining_days=remaining_days,
    )


# ---------------------------------------------------------------------------
# Дополнительные услуги
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AddOn:
    id: str
    name: str
    monthly_rate: Decimal
    description: str = ""
    selected: bool = False

    def toggled(self) -> "AddOn":
        return replace(self, selected=not self.selected)


DEFAULT_ADDONS: Tuple[AddOn, ...] = (
    AddOn("gps", "GPS Navigation", Decimal("750.00"), "GPS device with UAE maps"),
    AddOn("child-seat", "Child Safety Seat", Decimal("900.00"), "Certified child car seat"),
    AddOn("additional-driver", "Additional Driver", Decimal("1500.00"), "Add one extra authorized driver"),
    AddOn("insurance-upgrade", "Premium Insurance", Decimal("2250.00"), "Zero deductible comprehensive coverage"),
)


def toggle_addon(addons: Iterable[AddOn], addon_id: str) -> List[AddOn]:
    return [addon.toggled() if addon.id == addon_id else addon for addon in addons]


def selected_addons(addons: Iterable[AddOn]) -> List[AddOn]:
    return [addon for addon in addons if addon.selected]


def calculate_addons_total(addons: Iterable[AddOn], months: int) -> Decimal:
    """
    Сумма выбранных услуг за полные месяцы аренды.

    Аренда короче 30 дней не содержит полных месяцев, поэтому услуги
    в ней не тарифицируются.
    """
    total = sum((round2(addon.monthly_rate) * months for addon in selected_addons(addons)), ZERO)
    return round2(total)


def addon_line_items(addons: Iterable[AddOn], months: int) -> List[Dict[str, Any]]:
    """Строки услуг для POST /api/bookings; dailyRate несёт ставку за единицу (месяц)"""
    return [
        {
            "name": addon.name,
            "dailyRate": str(round2(addon.monthly_rate)),
            "quantity": months,
            "totalAmount": str(round2(round2(addon.monthly_rate) * months)),
        }
        for addon in selected_addons(addons)
    ]


# ---------------------------------------------------------------------------
# НДС и итог
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PriceBreakdown:
    subtotal: Decimal
    add_ons_total: Decimal
    vat_rate: Decimal
    vat_amount: Decimal
    total_with_vat: Decimal
    security_deposit: Decimal

    @property
    def grand_total(self) -> Decimal:
        return self.total_with_vat


def calculate_vat(amount, vat_rate: Decimal = VAT_RATE) -> Decimal:
    return round2(to_decimal(amount) * vat_rate)


def compose_price(subtotal, add_ons_total) -> PriceBreakdown:
    subtotal = round2(subtotal)
    add_ons_total = round2(add_ons_total)

    vat_amount = calculate_vat(subtotal + add_ons_total)
    total_with_vat = subtotal + add_ons_total + vat_amount

    return PriceBreakdown(
        subtotal=subtotal,
        add_ons_total=add_ons_total,
        vat_rate=VAT_RATE,
        vat_amount=vat_amount,
        total_with_vat=total_with_vat,
        security_deposit=round2(total_with_vat * SECURITY_DEPOSIT_RATE),
    )


@dataclass(frozen=True)
class Quote:
    rate: RateCalculation
    price: PriceBreakdown


def price_booking(start_date: datetime, end_date: datetime, daily_rate, base_monthly_rate,
                  addons: Iterable[AddOn] = (), rental_mode: RentalMode = RentalMode.MONTHLY,
                  weekly_rate=None) -> Quote:
    """Полный расчёт: тариф -> услуги -> НДС"""
    rate = calculate_rate(start_date, end_date, daily_rate, base_monthly_rate, rental_mode, weekly_rate)
    # Услуги тарифицируются за полные 30-дневные периоды в любом режиме
    addons_total = calculate_addons_total(addons, rate.total_days // DAYS_PER_MONTH)
    return Quote(rate=rate, price=compose_price(rate.subtotal, addons_total))
