"""
Database models for the NEON network engine.
Import all models here for easy access.
"""

# Base and mixins
from models.base import Base, AuditMixin

# Network models
from models.distributor import Distributor
from models.sale import SaleEvent, SALE_TYPES
from models.commission import (
    CommissionLedgerEntry,
    BinaryDailyPayout,
    COMMISSION_TYPES,
    make_idempotency_key,
)
from models.referral import ReferralRecord, REFERRAL_STATUSES

# Territory models
from models.territory import TerritoryApplication, ClaimedTerritory, APPLICATION_STATUSES

__all__ = [
    # Base
    'Base',
    'AuditMixin',

    # Network
    'Distributor',
    'SaleEvent',
    'SALE_TYPES',
    'CommissionLedgerEntry',
    'BinaryDailyPayout',
    'COMMISSION_TYPES',
    'make_idempotency_key',
    'ReferralRecord',
    'REFERRAL_STATUSES',

    # Territory
    'TerritoryApplication',
    'ClaimedTerritory',
    'APPLICATION_STATUSES',
]
