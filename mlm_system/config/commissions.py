"""
Commission plan constants.

Rates are Decimal fractions. Money amounts are integer cents.
"""
from decimal import Decimal, ROUND_HALF_UP

# Fast Start - one-time bonus to the direct sponsor on a recruit's first sale
FAST_START_RATES = {
    "customer-referred": Decimal("0.15"),
    "personal": Decimal("0.20"),
}
FAST_START_DURATION_DAYS = 30

# Binary - paid on newly matched volume at every active binary ancestor
BINARY_RATE = Decimal("0.08")
BINARY_MAX_DAILY_CENTS = 250_000

# Unilevel - sponsor-tree overrides by level
UNILEVEL_RATES = {
    1: Decimal("0.04"),
    2: Decimal("0.02"),
}

UNILEVEL_TYPES = {
    1: "unilevel_l1",
    2: "unilevel_l2",
}


def commission_cents(amount: int, rate: Decimal) -> int:
    """Apply a rate to an amount in cents, rounding half-up to a whole cent."""
    return int((Decimal(amount) * rate).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
