"""
MLM ranks configuration and constants.

Rank thresholds are expressed in PV (1 PV per major currency unit).
Volumes on the Distributor row are stored in cents, so callers convert
with cents_to_pv() before comparing.
"""
from enum import Enum
from typing import Dict, Any, List
import logging

logger = logging.getLogger(__name__)


class Rank(Enum):
    """MLM rank enumeration, lowest first."""
    STARTER = "starter"
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"
    DIAMOND = "diamond"
    CROWN = "crown"
    AMBASSADOR = "ambassador"


# Ladder order; index is the rank level
RANK_ORDER: List[Rank] = [
    Rank.STARTER,
    Rank.BRONZE,
    Rank.SILVER,
    Rank.GOLD,
    Rank.PLATINUM,
    Rank.DIAMOND,
    Rank.CROWN,
    Rank.AMBASSADOR,
]

RANK_CONFIG: Dict[Rank, Dict[str, Any]] = {
    Rank.STARTER: {
        "displayName": "Starter",
        "personalPV": 0,
        "teamPV": 0,
        "activeLegs": 0,
        "legVolume": 0,
    },
    Rank.BRONZE: {
        "displayName": "Bronze",
        "personalPV": 75,
        "teamPV": 400,
        "activeLegs": 1,
        "legVolume": 200,
    },
    Rank.SILVER: {
        "displayName": "Silver",
        "personalPV": 100,
        "teamPV": 1500,
        "activeLegs": 2,
        "legVolume": 600,
    },
    Rank.GOLD: {
        "displayName": "Gold",
        "personalPV": 150,
        "teamPV": 4000,
        "activeLegs": 2,
        "legVolume": 1500,
    },
    Rank.PLATINUM: {
        "displayName": "Platinum",
        "personalPV": 200,
        "teamPV": 12000,
        "activeLegs": 2,
        "legVolume": 5000,
    },
    Rank.DIAMOND: {
        "displayName": "Diamond",
        "personalPV": 250,
        "teamPV": 40000,
        "activeLegs": 2,
        "legVolume": 15000,
    },
    Rank.CROWN: {
        "displayName": "Crown Diamond",
        "personalPV": 300,
        "teamPV": 120000,
        "activeLegs": 2,
        "legVolume": 50000,
    },
    Rank.AMBASSADOR: {
        "displayName": "Ambassador",
        "personalPV": 400,
        "teamPV": 400000,
        "activeLegs": 2,
        "legVolume": 150000,
    },
}

# Monthly activity requirements
MIN_MONTHLY_PV = 48
MIN_ACTIVE_DOWNLINE = 1
# Documented downline threshold; the activity check does not consult it
MIN_DOWNLINE_PV = 48

# Minimum weaker/total leg ratio for a balanced binary
BALANCE_RATIO = 0.33


def cents_to_pv(amount: int) -> int:
    """Whole PV for an amount in cents."""
    return int(amount) // 100


def rank_level(rank: Rank) -> int:
    return RANK_ORDER.index(rank)


def get_rank(value: str) -> Rank:
    """
    Resolve a stored rank string.

    Unknown values fall back to STARTER with a warning.
    """
    try:
        return Rank(value)
    except ValueError:
        logger.warning(f"Unknown rank '{value}', treating as starter")
        return Rank.STARTER
