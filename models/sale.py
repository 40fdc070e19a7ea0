"""
SaleEvent model - immutable record of a paid sale credited to a distributor.
"""
from sqlalchemy import Column, Integer, BigInteger, String, DateTime
from models.base import Base, _get_current_time

SALE_TYPES = ("personal", "customer-referred")


class SaleEvent(Base):
    __tablename__ = 'sale_events'

    saleID = Column(Integer, primary_key=True, autoincrement=True)

    distributorID = Column(Integer, nullable=False, index=True)  # Who gets personal credit
    amount = Column(BigInteger, nullable=False)  # cents
    pv = Column(Integer, nullable=False)  # 1 PV per major currency unit
    saleType = Column(String(20), nullable=False, default="personal")

    createdAt = Column(DateTime, default=_get_current_time, index=True)

    def __repr__(self):
        return f"<SaleEvent(saleID={self.saleID}, distributor={self.distributorID}, amount={self.amount})>"
