"""
Territory models.

TerritoryApplication - a requested coverage circle moving through review.
ClaimedTerritory     - created only when an application is approved; while
                       status == 'active' its circle must not overlap any
                       other active claimed territory.
"""
from sqlalchemy import Column, Integer, BigInteger, String, Float, DateTime, Index
from models.base import Base, AuditMixin

# Applications stop at approved; "active" is carried for claimed territories
APPLICATION_STATUSES = (
    "pending", "submitted", "under_review", "approved", "rejected", "active", "expired"
)


class TerritoryApplication(Base, AuditMixin):
    __tablename__ = 'territory_applications'

    applicationID = Column(Integer, primary_key=True, autoincrement=True)
    applicantUserID = Column(String, nullable=True, index=True)

    # Coverage circle
    centerLat = Column(Float, nullable=False)
    centerLng = Column(Float, nullable=False)
    radiusMiles = Column(Float, nullable=False)

    territoryName = Column(String, nullable=False)
    state = Column(String(2), nullable=True)
    city = Column(String, nullable=True)
    population = Column(Integer, nullable=True)
    areaSqMiles = Column(Float, nullable=True)
    termMonths = Column(Integer, default=12)

    priceCents = Column(BigInteger, nullable=True)  # Quote at submission time
    status = Column(String(20), default="pending", index=True)

    reviewedBy = Column(String, nullable=True)
    reviewNotes = Column(String, nullable=True)

    def __repr__(self):
        return f"<TerritoryApplication(applicationID={self.applicationID}, name={self.territoryName}, status={self.status})>"


class ClaimedTerritory(Base, AuditMixin):
    __tablename__ = 'claimed_territories'

    territoryID = Column(Integer, primary_key=True, autoincrement=True)
    applicationID = Column(Integer, nullable=True, index=True)
    ownerUserID = Column(String, nullable=True, index=True)

    centerLat = Column(Float, nullable=False)
    centerLng = Column(Float, nullable=False)
    radiusMiles = Column(Float, nullable=False)

    territoryName = Column(String, nullable=False)
    population = Column(Integer, nullable=True)
    areaSqMiles = Column(Float, nullable=True)

    status = Column(String(20), default="active")  # active, expired
    expiresAt = Column(DateTime, nullable=True)

    __table_args__ = (
        Index('ix_claimed_status_lat_lng', 'status', 'centerLat', 'centerLng'),
    )

    def __repr__(self):
        return f"<ClaimedTerritory(territoryID={self.territoryID}, name={self.territoryName}, status={self.status})>"
