"""
Referral leaderboard - aggregate counts, tiers and privacy-redacted names.

Entries are ordered by raw referral count, not by points. The points
figure is display-only and the two orderings can disagree.
"""
from collections import OrderedDict
from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, List, Optional
import logging

from core.errors import ValidationError
from mlm_system.utils.time_machine import timeMachine
from repositories.base import ReferralRepository

logger = logging.getLogger(__name__)

TIMEFRAMES = {
    "all": None,
    "month": timedelta(days=30),
    "week": timedelta(days=7),
}
TIMEFRAME_ALIASES = {
    "monthly": "month",
    "weekly": "week",
}

MAX_LIMIT = 100

# (minimum referrals, tier), highest first
TIERS = [
    (100, "Diamond"),
    (50, "Platinum"),
    (25, "Gold"),
    (10, "Silver"),
    (5, "Bronze"),
    (0, "Starter"),
]

POINTS_PER_REFERRAL = 10
POINTS_PER_CUSTOMER = 50
POINTS_PER_DISTRIBUTOR = 100


@dataclass
class LeaderboardEntry:
    position: int
    referrerCode: str
    name: str
    totalReferrals: int
    customersReferred: int
    distributorsReferred: int
    points: int
    tier: str


@dataclass
class LeaderboardStats:
    totalReferrers: int
    totalReferrals: int
    totalCustomerConversions: int
    totalDistributorConversions: int
    averageReferrals: float


def tier_for(referrals: int) -> str:
    for minimum, tier in TIERS:
        if referrals >= minimum:
            return tier
    return "Starter"


def points_for(referrals: int, customers: int, distributors: int) -> int:
    return (
            referrals * POINTS_PER_REFERRAL
            + customers * POINTS_PER_CUSTOMER
            + distributors * POINTS_PER_DISTRIBUTOR
    )


def redact_name(name: Optional[str]) -> str:
    """
    "Alexandra" -> "Al***", "John Doe" -> "J. D.", "" -> "Anonymous".
    """
    if not name or not name.strip():
        return "Anonymous"

    parts = name.split()
    if len(parts) == 1:
        return parts[0][:2] + "***"

    return f"{parts[0][0].upper()}. {parts[-1][0].upper()}."


class LeaderboardService:
    """Service for referral leaderboard aggregation."""

    def __init__(self, repository: ReferralRepository):
        self.repository = repository

    @staticmethod
    def _normalize_timeframe(timeframe: str) -> str:
        timeframe = TIMEFRAME_ALIASES.get(timeframe, timeframe)
        if timeframe not in TIMEFRAMES:
            raise ValidationError(f"Unknown timeframe {timeframe}", field="timeframe")
        return timeframe

    def _aggregate(self, timeframe: str) -> List[Dict]:
        window = TIMEFRAMES[self._normalize_timeframe(timeframe)]
        since = timeMachine.now - window if window else None

        totals: Dict[str, Dict] = OrderedDict()
        for record in self.repository.list_referrals(since=since):
            row = totals.setdefault(record.referrerCode, {
                "referrerCode": record.referrerCode,
                "name": None,
                "referrals": 0,
                "customers": 0,
                "distributors": 0,
            })
            row["referrals"] += 1
            if record.status == "customer":
                row["customers"] += 1
            elif record.status == "distributor":
                row["distributors"] += 1
            if record.referrerName:
                row["name"] = record.referrerName

        return sorted(totals.values(), key=lambda r: (-r["referrals"], r["referrerCode"]))

    @staticmethod
    def _entry(index: int, row: Dict) -> LeaderboardEntry:
        return LeaderboardEntry(
            position=index + 1,
            referrerCode=row["referrerCode"],
            name=redact_name(row["name"]),
            totalReferrals=row["referrals"],
            customersReferred=row["customers"],
            distributorsReferred=row["distributors"],
            points=points_for(row["referrals"], row["customers"], row["distributors"]),
            tier=tier_for(row["referrals"]),
        )

    def leaderboard(self, limit: int = 50, timeframe: str = "all") -> List[LeaderboardEntry]:
        """
        Top referrers.

        Args:
            limit: 1..100 entries
            timeframe: all, month (last 30 days) or week (last 7 days)
        """
        if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= MAX_LIMIT:
            raise ValidationError(f"limit must be between 1 and {MAX_LIMIT}", field="limit")

        rows = self._aggregate(timeframe)[:limit]
        return [self._entry(index, row) for index, row in enumerate(rows)]

    def leaderboard_stats(self, timeframe: str = "all") -> LeaderboardStats:
        rows = self._aggregate(timeframe)
        totalReferrals = sum(r["referrals"] for r in rows)

        return LeaderboardStats(
            totalReferrers=len(rows),
            totalReferrals=totalReferrals,
            totalCustomerConversions=sum(r["customers"] for r in rows),
            totalDistributorConversions=sum(r["distributors"] for r in rows),
            averageReferrals=round(totalReferrals / len(rows), 2) if rows else 0,
        )

    def position_for(self, referrer_code: str, timeframe: str = "all") -> Optional[LeaderboardEntry]:
        """Full entry for one referrer, None if they have no referrals."""
        for index, row in enumerate(self._aggregate(timeframe)):
            if row["referrerCode"] == referrer_code:
                return self._entry(index, row)
        return None
