"""
Commission ledger and binary daily payout aggregate.

The ledger is append-only. Every entry carries an idempotency key
"{sourceSaleID}:{commissionType}:{beneficiaryID}" so recomputing a sale
never writes a second payout.
"""
from sqlalchemy import Column, Integer, BigInteger, String, DateTime, UniqueConstraint
from models.base import Base, _get_current_time

COMMISSION_TYPES = ("fast_start", "binary", "unilevel_l1", "unilevel_l2")


def make_idempotency_key(source_sale_id: int, commission_type: str, beneficiary_id: int) -> str:
    return f"{source_sale_id}:{commission_type}:{beneficiary_id}"


class CommissionLedgerEntry(Base):
    __tablename__ = 'commission_ledger'

    entryID = Column(Integer, primary_key=True, autoincrement=True)

    sourceSaleID = Column(Integer, nullable=False, index=True)
    beneficiaryID = Column(Integer, nullable=False, index=True)
    commissionType = Column(String(20), nullable=False)
    amount = Column(BigInteger, nullable=False)  # cents
    idempotencyKey = Column(String(80), nullable=False, unique=True)

    computedAt = Column(DateTime, default=_get_current_time, index=True)

    def __repr__(self):
        return (
            f"<CommissionLedgerEntry(sale={self.sourceSaleID}, type={self.commissionType}, "
            f"beneficiary={self.beneficiaryID}, amount={self.amount})>"
        )


class BinaryDailyPayout(Base):
    """Running total of binary commission paid to a distributor on one day."""
    __tablename__ = 'binary_daily_payouts'

    id = Column(Integer, primary_key=True, autoincrement=True)
    distributorID = Column(Integer, nullable=False)
    payoutDay = Column(String(10), nullable=False)  # ISO date, e.g. 2025-01-31
    paidAmount = Column(BigInteger, nullable=False, default=0)  # cents

    __table_args__ = (
        UniqueConstraint('distributorID', 'payoutDay', name='_binary_day_uc'),
    )

    def __repr__(self):
        return f"<BinaryDailyPayout(distributor={self.distributorID}, day={self.payoutDay}, paid={self.paidAmount})>"
