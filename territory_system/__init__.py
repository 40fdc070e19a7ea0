# territory_system/__init__.py
"""
Territory System - geo-pricing, overlap checks and territory claims.
"""

# Services
from territory_system.services.pricing_service import (
    TerritoryPricingEngine,
    TerritoryPricingInput,
    TerritoryPricingOutput,
    BreakdownItem,
    AppliedRule,
)
from territory_system.services.overlap_service import TerritoryOverlapService, AvailabilityResult
from territory_system.services.claim_service import TerritoryClaimService, ExpirationSummary

# Utilities
from territory_system.utils.geo import distance_miles

__all__ = [
    # Services
    'TerritoryPricingEngine',
    'TerritoryPricingInput',
    'TerritoryPricingOutput',
    'BreakdownItem',
    'AppliedRule',
    'TerritoryOverlapService',
    'AvailabilityResult',
    'TerritoryClaimService',
    'ExpirationSummary',

    # Utils
    'distance_miles',
]
