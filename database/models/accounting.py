import enum

from sqlalchemy import Column, String, DateTime, Enum, Numeric, Text
from sqlalchemy.sql import func
from database.base import Base
from database.models.booking import generate_uuid


class EntryStatus(enum.Enum):
    DRAFT = "DRAFT"      # Черновик
    POSTED = "POSTED"    # Проведена


class AccountingEntryRecord(Base):
    """Проводка по двойной записи: дебет и кредит на одну сумму"""
    __tablename__ = "accounting_entries"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    company_id = Column(String(36), nullable=False, index=True)

    entry_number = Column(String(30), nullable=False, index=True)
    entry_date = Column(DateTime(timezone=True), nullable=False)
    entry_type = Column(String(30), default="PAYMENT", nullable=False)
    description = Column(Text, nullable=True)

    # Ссылка на документ-основание
    reference_type = Column(String(30), default="BOOKING", nullable=False)
    reference_id = Column(String(36), nullable=True, index=True)

    debit_account = Column(String(100), nullable=False)
    debit_account_name = Column(String(255), nullable=True)
    debit_amount = Column(Numeric(12, 2), nullable=False)

    credit_account = Column(String(100), nullable=False)
    credit_account_name = Column(String(255), nullable=True)
    credit_amount = Column(Numeric(12, 2), nullable=False)

    status = Column(Enum(EntryStatus), default=EntryStatus.DRAFT, nullable=False)
    created_by = Column(String(36), nullable=True)
    posted_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<AccountingEntryRecord(number={self.entry_number}, amount={self.debit_amount}, status={self.status.value})>"

    @property
    def is_balanced(self) -> bool:
        return self.debit_amount == self.credit_amount
