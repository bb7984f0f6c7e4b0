"""
Бухгалтерские проводки по оплате бронирования (двойная запись)
"""
import secrets
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Dict, Any

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from database.models.accounting import AccountingEntryRecord, EntryStatus
from services.exceptions import BookingPersistenceError
from services.pricing import round2, to_decimal


# План счетов
CARD_CLEARING_ACCOUNT = "1100-CC-CLEARING"
CARD_CLEARING_ACCOUNT_NAME = "Credit Card Clearing"
CUSTOMER_RECEIVABLE_PREFIX = "1200-CUST-"


@dataclass(frozen=True)
class Payer:
    id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


@dataclass(frozen=True)
class AccountingEntry:
    entry_number: str
    entry_date: datetime
    company_id: str
    description: str
    debit_account: str
    debit_account_name: str
    debit_amount: Decimal
    credit_account: str
    credit_account_name: str
    credit_amount: Decimal
    status: EntryStatus
    entry_type: str = "PAYMENT"
    reference_type: str = "BOOKING"
    reference_id: Optional[str] = None
    created_by: Optional[str] = None
    posted_at: Optional[datetime] = None

    @property
    def is_balanced(self) -> bool:
        return self.debit_amount == self.credit_amount

    def with_reference(self, booking_id: str) -> "AccountingEntry":
        return replace(self, reference_id=booking_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entryNumber": self.entry_number,
            "entryDate": self.entry_date.isoformat(),
            "entryType": self.entry_type,
            "companyId": self.company_id,
            "description": self.description,
            "referenceType": self.reference_type,
            "referenceId": self.reference_id,
            "debitAccount": self.debit_account,
            "debitAccountName": self.debit_account_name,
            "debitAmount": str(self.debit_amount),
            "creditAccount": self.credit_account,
            "creditAccountName": self.credit_account_name,
            "creditAmount": str(self.credit_amount),
            "status": self.status.value,
            "createdBy": self.created_by,
            "postedAt": self.posted_at.isoformat() if self.posted_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AccountingEntry":
        posted_at = data.get("postedAt")
        return cls(
            entry_number=data["entryNumber"],
            entry_date=datetime.fromisoformat(data["entryDate"]),
            entry_type=data.get("entryType", "PAYMENT"),
            company_id=data["companyId"],
            description=data.get("description") or "",
            reference_type=data.get("referenceType", "BOOKING"),
            reference_id=data.get("referenceId"),
            debit_account=data["debitAccount"],
            debit_account_name=data.get("debitAccountName") or "",
            debit_amount=to_decimal(data["debitAmount"]),
            credit_account=data["creditAccount"],
            credit_account_name=data.get("creditAccountName") or "",
            credit_amount=to_decimal(data["creditAmount"]),
            status=EntryStatus(data.get("status", EntryStatus.POSTED.value)),
            created_by=data.get("createdBy"),
            posted_at=datetime.fromisoformat(posted_at) if posted_at else None,
        )


def generate_entry_number(when: datetime, sequence: Optional[int] = None) -> str:
    """Номер проводки JE-{год}-{4 цифры}"""
    if sequence is None:
        sequence = secrets.randbelow(10000)
    return f"JE-{when.year}-{sequence % 10000:04d}"


def build_payment_entry(
    total_with_vat,
    payer: Payer,
    company_id: str,
    vehicle_label: str = "",
    receipt_number: str = "",
    created_at: Optional[datetime] = None,
    sequence: Optional[int] = None,
) -> AccountingEntry:
    """
    Построить проводку оплаты картой

    Дебет: клиринговый счёт карт; кредит: дебиторская задолженность клиента.
    Обе стороны получают одну и ту же сумму, поэтому проводка всегда
    сбалансирована.
    """
    created_at = created_at or datetime.now(timezone.utc)
    amount = round2(total_with_vat)

    first_name = payer.first_name or "Customer"
    last_name = payer.last_name or ""

    description = "Payment for vehicle rental"
    if vehicle_label:
        description += f" - {vehicle_label}"
    if receipt_number:
        description += f" - {receipt_number}"

    return AccountingEntry(
        entry_number=generate_entry_number(created_at, sequence),
        entry_date=created_at,
        company_id=company_id,
        description=description,
        debit_account=CARD_CLEARING_ACCOUNT,
        debit_account_name=CARD_CLEARING_ACCOUNT_NAME,
        debit_amount=amount,
        credit_account=f"{CUSTOMER_RECEIVABLE_PREFIX}{payer.id or 'guest'}",
        credit_account_name=f"{first_name} {last_name} - Receivable",
        credit_amount=amount,
        status=EntryStatus.POSTED,
        created_by=payer.id,
        posted_at=created_at,
    )


class AccountingService:
    """Сохранение проводок в БД"""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def record_entry(self, entry: AccountingEntry, booking_id: Optional[str] = None) -> AccountingEntryRecord:
        """Сохранить проводку, привязав её к бронированию"""
        if not entry.is_balanced:
            raise ValueError(f"Unbalanced entry {entry.entry_number}")

        async with self.session_factory() as session:
            record = AccountingEntryRecord(
                company_id=entry.company_id,
                entry_number=entry.entry_number,
                entry_date=entry.entry_date,
                entry_type=entry.entry_type,
                description=entry.description,
                reference_type=entry.reference_type,
                reference_id=booking_id or entry.reference_id,
                debit_account=entry.debit_account,
                debit_account_name=entry.debit_account_name,
                debit_amount=entry.debit_amount,
                credit_account=entry.credit_account,
                credit_account_name=entry.credit_account_name,
                credit_amount=entry.credit_amount,
                status=entry.status,
                created_by=entry.created_by,
                posted_at=entry.posted_at,
            )
            try:
                session.add(record)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"Ошибка сохранения проводки {entry.entry_number}: {e}")
                raise BookingPersistenceError(str(e)) from e

            logger.info(f"Проводка {entry.entry_number} сохранена: {entry.debit_amount} (booking={record.reference_id})")
            return record
