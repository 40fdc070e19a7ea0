"""
ReferralRecord model - used only for aggregate counting, never volume-bearing.
"""
from sqlalchemy import Column, Integer, String, DateTime, Index
from models.base import Base, _get_current_time

REFERRAL_STATUSES = ("pending", "clicked", "customer", "distributor")


class ReferralRecord(Base):
    __tablename__ = 'referral_records'

    id = Column(Integer, primary_key=True, autoincrement=True)

    referrerCode = Column(String(32), nullable=False, index=True)
    referrerName = Column(String, nullable=True)  # Shown redacted on leaderboards
    referredContact = Column(String, nullable=False)
    status = Column(String(20), default="pending")

    createdAt = Column(DateTime, default=_get_current_time)

    __table_args__ = (
        Index('ix_referral_created', 'createdAt'),
    )

    def __repr__(self):
        return f"<ReferralRecord(referrer={self.referrerCode}, status={self.status})>"
