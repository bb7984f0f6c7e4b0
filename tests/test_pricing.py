from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from services.exceptions import InvalidRentalPeriodError
from services.pricing import (
    DEFAULT_ADDONS,
    VAT_RATE,
    RentalMode,
    addon_line_items,
    build_rental_period,
    calculate_addons_total,
    calculate_rate,
    calculate_vat,
    check_minimum_period,
    compose_price,
    count_days,
    price_booking,
    tiered_monthly_rate,
    toggle_addon,
)


START = datetime(2026, 1, 1, 10, 0, tzinfo=timezone.utc)
DAILY = Decimal("100.00")
MONTHLY = Decimal("2000.00")
WEEKLY = Decimal("600.00")


def rate_for(days, hours=0):
    return calculate_rate(START, START + timedelta(days=days, hours=hours), DAILY, MONTHLY)


def test_45_day_rental_has_no_discount_tier():
    rate = rate_for(45)

    assert rate.total_days == 45
    assert rate.months == 1
    assert rate.remaining_days == 15
    assert rate.monthly_rate_applied == Decimal("2000.00")
    assert rate.subtotal == Decimal("3500.00")
    assert rate.savings == Decimal("0.00")


def test_100_day_rental_gets_three_month_tier():
    rate = rate_for(100)

    assert (rate.months, rate.remaining_days) == (3, 10)
    assert rate.monthly_rate_applied == Decimal("1950.00")
    assert rate.subtotal == Decimal("6850.00")
    assert rate.savings == Decimal("150.00")


def test_200_day_rental_gets_six_month_tier():
    rate = rate_for(200)

    assert (rate.months, rate.remaining_days) == (6, 20)
    assert rate.monthly_rate_applied == Decimal("1900.00")
    assert rate.subtotal == Decimal("13400.00")
    assert rate.savings == Decimal("600.00")


@pytest.mark.parametrize("days", [1, 7, 15, 29])
def test_short_rentals_are_billed_daily(days):
    rate = rate_for(days)

    assert rate.months == 0
    assert rate.subtotal == days * DAILY
    assert rate.savings == Decimal("0.00")


@pytest.mark.parametrize("days, expected_rate", [
    (89, Decimal("2000.00")),
    (90, Decimal("1950.00")),
    (179, Decimal("1950.00")),
    (180, Decimal("1900.00")),
    (400, Decimal("1900.00")),
])
def test_tier_boundaries_are_inclusive(days, expected_rate):
    assert rate_for(days).monthly_rate_applied == expected_rate


def test_partial_day_is_rounded_up():
    rate = rate_for(29, hours=1)

    assert rate.total_days == 30
    assert rate.months == 1
    assert rate.remaining_days == 0
    assert rate.subtotal == Decimal("2000.00")


@pytest.mark.parametrize("end", [START, START - timedelta(days=3)])
def test_non_positive_range_returns_zeroed_result(end):
    rate = calculate_rate(START, end, DAILY, MONTHLY)

    assert not rate.is_valid
    assert rate.total_days == 0
    assert rate.subtotal == Decimal("0.00")
    assert rate.breakdown(DAILY) == "Invalid date range"


def test_count_days_ceil():
    assert count_days(START, START + timedelta(hours=1)) == 1
    assert count_days(START, START + timedelta(days=2)) == 2
    assert count_days(START, START - timedelta(hours=1)) == 0


def test_rental_period_invariant():
    period = build_rental_period(START, START + timedelta(days=75))

    assert period.total_days == 75
    assert period.monthly_periods == 2
    assert period.remaining_days == 15
    assert period.total_days == period.monthly_periods * 30 + period.remaining_days


def test_rental_period_rejects_end_before_start():
    with pytest.raises(InvalidRentalPeriodError):
        build_rental_period(START, START)


def test_tiered_rate_is_flat_discount():
    assert tiered_monthly_rate("3000", 2) == Decimal("3000.00")
    assert tiered_monthly_rate("3000", 3) == Decimal("2950.00")
    assert tiered_monthly_rate("3000", 6) == Decimal("2900.00")


def test_tier_discount_never_goes_below_zero():
    assert tiered_monthly_rate("40", 3) == Decimal("0.00")
    assert tiered_monthly_rate("80", 6) == Decimal("0.00")
    assert rate_for(100).monthly_rate_applied >= 0
    assert calculate_rate(START, START + timedelta(days=90), DAILY, "40").monthly_rate_applied == Decimal("0.00")


def test_weekly_mode():
    rate = calculate_rate(START, START + timedelta(days=17), DAILY, MONTHLY, RentalMode.WEEKLY, WEEKLY)

    assert rate.rental_mode == RentalMode.WEEKLY
    assert (rate.weeks, rate.remaining_days, rate.months) == (2, 3, 0)
    assert rate.weekly_rate_applied == Decimal("600.00")
    assert rate.subtotal == Decimal("1500.00")
    assert rate.savings == Decimal("200.00")
    assert rate.breakdown(DAILY) == "2 weeks × AED 600.00 + 3 days × AED 100.00"


def test_weekly_mode_without_full_week_is_billed_daily():
    rate = calculate_rate(START, START + timedelta(days=5), DAILY, MONTHLY, RentalMode.WEEKLY, WEEKLY)

    assert rate.weeks == 0
    assert rate.subtotal == Decimal("500.00")
    assert rate.savings == Decimal("0.00")


def test_weekly_mode_without_weekly_rate_uses_seven_days():
    rate = calculate_rate(START, START + timedelta(days=14), DAILY, MONTHLY, RentalMode.WEEKLY)

    assert rate.subtotal == Decimal("1400.00")
    assert rate.savings == Decimal("0.00")


def test_daily_mode_ignores_monthly_tiers():
    rate = calculate_rate(START, START + timedelta(days=100), DAILY, MONTHLY, RentalMode.DAILY)

    assert (rate.months, rate.weeks) == (0, 0)
    assert rate.subtotal == Decimal("10000.00")
    assert rate.savings == Decimal("0.00")
    assert rate.breakdown(DAILY) == "100 days × AED 100.00/day"


def test_monthly_is_the_default_mode():
    assert rate_for(100) == calculate_rate(START, START + timedelta(days=100), DAILY, MONTHLY, RentalMode.MONTHLY)


@pytest.mark.parametrize("mode, days", [
    (RentalMode.DAILY, 1),
    (RentalMode.WEEKLY, 7),
    (RentalMode.MONTHLY, 30),
])
def test_minimum_period_is_inclusive(mode, days):
    check_minimum_period(days, mode)

    with pytest.raises(InvalidRentalPeriodError, match="requires at least"):
        check_minimum_period(days - 1, mode)


def test_addons_in_weekly_mode_bill_whole_months():
    addons = toggle_addon(DEFAULT_ADDONS, "gps")

    quote = price_booking(START, START + timedelta(days=63), DAILY, MONTHLY, addons,
                          rental_mode=RentalMode.WEEKLY, weekly_rate=WEEKLY)

    assert quote.rate.subtotal == Decimal("5400.00")
    assert quote.price.add_ons_total == Decimal("1500.00")


def test_breakdown_text():
    assert rate_for(45).breakdown(DAILY) == "1 month × AED 2000.00 + 15 days × AED 100.00"
    assert rate_for(3).breakdown(DAILY) == "3 days × AED 100.00/day"


def test_addons_bill_per_whole_month():
    addons = toggle_addon(toggle_addon(DEFAULT_ADDONS, "gps"), "additional-driver")

    assert calculate_addons_total(addons, 3) == Decimal("6750.00")


def test_addons_are_free_for_sub_month_rentals():
    addons = toggle_addon(DEFAULT_ADDONS, "insurance-upgrade")

    assert calculate_addons_total(addons, 0) == Decimal("0.00")


def test_unselected_addons_are_ignored():
    assert calculate_addons_total(DEFAULT_ADDONS, 6) == Decimal("0.00")


def test_toggle_does_not_mutate_catalog():
    addons = toggle_addon(DEFAULT_ADDONS, "gps")

    assert addons[0].selected
    assert not DEFAULT_ADDONS[0].selected
    assert not toggle_addon(addons, "gps")[0].selected


def test_addon_line_items():
    addons = toggle_addon(DEFAULT_ADDONS, "child-seat")

    assert addon_line_items(addons, 2) == [
        {"name": "Child Safety Seat", "dailyRate": "900.00", "quantity": 2, "totalAmount": "1800.00"},
    ]


def test_vat_scenario():
    price = compose_price(Decimal("1000"), Decimal("200"))

    assert price.vat_rate == VAT_RATE
    assert price.vat_amount == Decimal("60.00")
    assert price.total_with_vat == Decimal("1260.00")
    assert price.security_deposit == Decimal("252.00")
    assert price.grand_total == price.total_with_vat


def test_vat_rounds_half_up():
    assert calculate_vat(Decimal("10.10")) == Decimal("0.51")
    assert calculate_vat(Decimal("0.30")) == Decimal("0.02")


def test_float_inputs_do_not_drift():
    price = compose_price(0.1, 0.2)

    assert price.subtotal + price.add_ons_total == Decimal("0.30")


@pytest.mark.parametrize("subtotal, addons", [
    ("0", "0"),
    ("1.99", "0"),
    ("3500.00", "750.00"),
    ("13400.00", "9000.00"),
    ("123.45", "67.89"),
])
def test_total_equals_sum_of_parts(subtotal, addons):
    price = compose_price(subtotal, addons)

    assert price.subtotal + price.add_ons_total + price.vat_amount == price.total_with_vat
    assert price.total_with_vat == price.total_with_vat.quantize(Decimal("0.01"))


def test_price_booking_chains_all_steps():
    addons = toggle_addon(DEFAULT_ADDONS, "gps")
    quote = price_booking(START, START + timedelta(days=45), DAILY, MONTHLY, addons)

    assert quote.rate.subtotal == Decimal("3500.00")
    assert quote.price.add_ons_total == Decimal("750.00")
    assert quote.price.vat_amount == Decimal("212.50")
    assert quote.price.total_with_vat == Decimal("4462.50")
