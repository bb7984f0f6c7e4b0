import re
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select

from database.models import AccountingEntryRecord, EntryStatus
from services.accounting import (
    CARD_CLEARING_ACCOUNT,
    AccountingEntry,
    AccountingService,
    Payer,
    build_payment_entry,
    generate_entry_number,
)


PAID_AT = datetime(2026, 3, 14, 9, 30, tzinfo=timezone.utc)


def make_entry(**kwargs):
    params = dict(
        total_with_vat=Decimal("1260.00"),
        payer=Payer(id="customer-1", first_name="Sara", last_name="Haddad"),
        company_id="company-1",
        vehicle_label="Toyota Camry",
        receipt_number="REC-20260314-0042",
        created_at=PAID_AT,
    )
    params.update(kwargs)
    return build_payment_entry(**params)


def test_entry_is_balanced_on_total_with_vat():
    entry = make_entry()

    assert entry.debit_amount == entry.credit_amount == Decimal("1260.00")
    assert entry.is_balanced
    assert entry.status == EntryStatus.POSTED
    assert entry.posted_at == PAID_AT


@pytest.mark.parametrize("amount", ["0", "0.01", "99.995", "13400", 4462.5])
def test_debit_always_equals_credit(amount):
    entry = make_entry(total_with_vat=amount)

    assert entry.debit_amount == entry.credit_amount


def test_accounts():
    entry = make_entry()

    assert entry.debit_account == CARD_CLEARING_ACCOUNT
    assert entry.debit_account_name == "Credit Card Clearing"
    assert entry.credit_account == "1200-CUST-customer-1"
    assert entry.credit_account_name == "Sara Haddad - Receivable"
    assert entry.description == "Payment for vehicle rental - Toyota Camry - REC-20260314-0042"


def test_guest_payer():
    entry = make_entry(payer=Payer())

    assert entry.credit_account == "1200-CUST-guest"
    assert entry.credit_account_name.startswith("Customer")
    assert entry.created_by is None


def test_entry_number_format():
    assert generate_entry_number(PAID_AT, 7) == "JE-2026-0007"
    assert re.fullmatch(r"JE-2026-\d{4}", generate_entry_number(PAID_AT))
    assert make_entry(sequence=1234).entry_number == "JE-2026-1234"


def test_reference_is_set_without_mutation():
    entry = make_entry()
    linked = entry.with_reference("booking-1")

    assert linked.reference_id == "booking-1"
    assert entry.reference_id is None


def test_dict_round_trip_keeps_amounts():
    entry = make_entry().with_reference("booking-1")

    assert AccountingEntry.from_dict(entry.to_dict()) == entry


async def test_record_entry(session_factory):
    service = AccountingService(session_factory)
    entry = make_entry()

    record = await service.record_entry(entry, booking_id="booking-1")

    async with session_factory() as session:
        stored = (await session.execute(
            select(AccountingEntryRecord).where(AccountingEntryRecord.id == record.id)
        )).scalar_one()

    assert stored.entry_number == entry.entry_number
    assert stored.reference_id == "booking-1"
    assert stored.debit_amount == stored.credit_amount == Decimal("1260.00")
    assert stored.status == EntryStatus.POSTED
