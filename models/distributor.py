"""
Distributor model - a node in both the sponsor tree and the binary placement tree.

Both trees are stored as parent ids (sponsorID, binaryParentID), never as
object references. All volumes are integer minor currency units (cents).
"""
from sqlalchemy import Column, Integer, BigInteger, String, Boolean, UniqueConstraint, Index
from models.base import Base, AuditMixin


class Distributor(Base, AuditMixin):
    __tablename__ = 'distributors'

    # Primary key
    distributorID = Column(Integer, primary_key=True, autoincrement=True)

    # Caller-supplied identity and public code (PREFIX-ALNUM)
    userID = Column(String, nullable=False, unique=True, index=True)
    code = Column(String(32), nullable=False, unique=True, index=True)
    displayName = Column(String, nullable=True)

    # Sponsor tree (who enrolled whom)
    sponsorID = Column(Integer, nullable=True, index=True)

    # Binary tree (placement, left/right legs)
    binaryParentID = Column(Integer, nullable=True, index=True)
    binarySide = Column(String(5), nullable=True)  # left, right, NULL for root
    depthLevel = Column(Integer, default=0)

    # Rank and activity
    rank = Column(String(20), default="starter")
    isActive = Column(Boolean, default=False)
    activeLegCount = Column(Integer, default=0)
    status = Column(String(20), default="active")  # active, inactive, terminated

    # Volumes (cents)
    personalVolume = Column(BigInteger, default=0)
    monthlyPV = Column(BigInteger, default=0)
    leftLegVolume = Column(BigInteger, default=0)
    rightLegVolume = Column(BigInteger, default=0)
    teamVolume = Column(BigInteger, default=0)

    __table_args__ = (
        # One left and one right child per parent
        UniqueConstraint('binaryParentID', 'binarySide', name='_binary_slot_uc'),
        Index('ix_distributor_sponsor_created', 'sponsorID', 'createdAt'),
    )

    @property
    def weakerLegVolume(self) -> int:
        return min(self.leftLegVolume or 0, self.rightLegVolume or 0)

    def __repr__(self):
        return (
            f"<Distributor(distributorID={self.distributorID}, code={self.code}, "
            f"rank={self.rank}, side={self.binarySide})>"
        )
