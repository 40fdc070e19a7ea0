"""
Territory pricing tables.

Valuation model: net annual gross profit of the territory, less fixed
licensing fees and municipal sugar-sweetened beverage (SSB) excise tax,
spread per square mile and scaled by a blue-sky multiple and the
density/demographic/regional multipliers.

All money figures here are whole dollars (floats inside the engine, cents
at the boundary).
"""
from typing import Dict, Any, List

# ═══════════════════════════════════════════════════════════════════════════
# STATE LICENSING FEES (base + renewal + additional)
# ═══════════════════════════════════════════════════════════════════════════

STATE_LICENSING_FEES: Dict[str, Dict[str, Any]] = {
    "SC": {"name": "South Carolina", "baseFee": 300, "renewalFee": 2200, "additionalFees": 500},
    "MA": {"name": "Massachusetts", "baseFee": 75, "renewalFee": 300, "additionalFees": 200},
    "CA": {"name": "California", "baseFee": 1200, "renewalFee": 1200, "additionalFees": 76},
    "FL": {"name": "Florida", "baseFee": 400, "renewalFee": 1250, "additionalFees": 150},
    "TX": {"name": "Texas", "baseFee": 500, "renewalFee": 500, "additionalFees": 100},
    "CO": {"name": "Colorado", "baseFee": 350, "renewalFee": 350, "additionalFees": 75},
    "WA": {"name": "Washington", "baseFee": 400, "renewalFee": 400, "additionalFees": 100},
    "PA": {"name": "Pennsylvania", "baseFee": 600, "renewalFee": 600, "additionalFees": 150},
    "AR": {"name": "Arkansas", "baseFee": 250, "renewalFee": 250, "additionalFees": 50},
    "NY": {"name": "New York", "baseFee": 800, "renewalFee": 800, "additionalFees": 200},
    "GA": {"name": "Georgia", "baseFee": 350, "renewalFee": 350, "additionalFees": 75},
    "NC": {"name": "North Carolina", "baseFee": 400, "renewalFee": 400, "additionalFees": 100},
    "AZ": {"name": "Arizona", "baseFee": 300, "renewalFee": 300, "additionalFees": 75},
    "NV": {"name": "Nevada", "baseFee": 500, "renewalFee": 500, "additionalFees": 150},
    "IL": {"name": "Illinois", "baseFee": 550, "renewalFee": 550, "additionalFees": 125},
    "OH": {"name": "Ohio", "baseFee": 400, "renewalFee": 400, "additionalFees": 100},
    "MI": {"name": "Michigan", "baseFee": 400, "renewalFee": 400, "additionalFees": 100},
    "NJ": {"name": "New Jersey", "baseFee": 700, "renewalFee": 700, "additionalFees": 175},
    "VA": {"name": "Virginia", "baseFee": 450, "renewalFee": 450, "additionalFees": 100},
    "TN": {"name": "Tennessee", "baseFee": 350, "renewalFee": 350, "additionalFees": 75},
}

DEFAULT_LICENSING_FEES: Dict[str, Any] = {"name": None, "baseFee": 400, "renewalFee": 400, "additionalFees": 100}

# ═══════════════════════════════════════════════════════════════════════════
# MUNICIPAL SSB TAXES, keyed "{city-slug}-{state}"
# ═══════════════════════════════════════════════════════════════════════════

MUNICIPAL_SSB_TAXES: Dict[str, Dict[str, Any]] = {
    "boulder-co": {"city": "Boulder", "state": "CO", "impactPer24Case": 7.68},
    "seattle-wa": {"city": "Seattle", "state": "WA", "impactPer24Case": 6.72},
    "philadelphia-pa": {"city": "Philadelphia", "state": "PA", "impactPer24Case": 5.76},
    "san-francisco-ca": {"city": "San Francisco", "state": "CA", "impactPer24Case": 3.84},
    "oakland-ca": {"city": "Oakland", "state": "CA", "impactPer24Case": 3.84},
    "albany-ca": {"city": "Albany", "state": "CA", "impactPer24Case": 3.84},
    "berkeley-ca": {"city": "Berkeley", "state": "CA", "impactPer24Case": 3.84},
}

# ═══════════════════════════════════════════════════════════════════════════
# MULTIPLIERS
# ═══════════════════════════════════════════════════════════════════════════

# People per square mile
URBAN_MIN_DENSITY = 4000
SUBURBAN_MIN_DENSITY = 1500

DENSITY_MULTIPLIERS = {
    "urban": 1.5,
    "suburban": 1.0,
    "rural": 0.6,
}

HIGH_INCOME_THRESHOLD = 0.20
HIGH_INCOME_MULTIPLIER = 1.25
YOUNG_ADULT_THRESHOLD = 0.15
YOUNG_ADULT_MULTIPLIER = 1.15
FITNESS_MULTIPLIER = 1.20

REGIONS: Dict[str, List[str]] = {
    "southeast": ["SC", "GA", "FL", "NC", "TN", "AL", "MS", "LA"],
    "southwest": ["TX", "AZ", "NV", "NM"],
    "west": ["CA", "WA", "CO", "OR", "UT"],
    "northeast": ["MA", "NY", "PA", "NJ", "CT", "RI", "NH", "VT", "ME"],
    "midwest": ["OH", "MI", "IL", "IN", "WI", "MN", "IA", "MO", "KS", "NE", "SD", "ND"],
}

REGIONAL_MULTIPLIERS = {
    "southeast": 1.20,
    "southwest": 1.10,
    "west": 1.05,
    "northeast": 0.95,
    "midwest": 0.90,
}

BLUE_SKY_DEFAULT = 10
BOTTLER_ALIGNED_MULTIPLIER = 1.15

# ═══════════════════════════════════════════════════════════════════════════
# MARKET ASSUMPTIONS
# ═══════════════════════════════════════════════════════════════════════════

CONSUMPTION_COEFFICIENT = 0.055  # cases per capita per month
TARGET_MARKET_SHARE = 0.05
TARGET_GROSS_MARGIN = 0.54
AVG_CASE_PRICE = 59.99

MINIMUM_PRICE_PER_SQ_MILE = 500
MINIMUM_LICENSING_FEE = 2500

# ═══════════════════════════════════════════════════════════════════════════
# VOLUME DISCOUNT TIERS - ascending by maxSqMiles, first match wins
# ═══════════════════════════════════════════════════════════════════════════

TERRITORY_TIERS: List[Dict[str, Any]] = [
    {"key": "micro", "name": "Micro Territory", "maxSqMiles": 5, "discount": 0.0},
    {"key": "small", "name": "Small Territory", "maxSqMiles": 25, "discount": 0.05},
    {"key": "medium", "name": "Medium Territory", "maxSqMiles": 100, "discount": 0.10},
    {"key": "large", "name": "Large Territory", "maxSqMiles": 500, "discount": 0.15},
    {"key": "regional", "name": "Regional Territory", "maxSqMiles": float("inf"), "discount": 0.20},
]

# ═══════════════════════════════════════════════════════════════════════════
# SAMPLE TERRITORIES (used by the --demo entry point)
# ═══════════════════════════════════════════════════════════════════════════

SAMPLE_TERRITORIES: List[Dict[str, Any]] = [
    {"location": "Charleston, SC", "state": "SC", "city": "Charleston", "population": 45000, "areaSqMiles": 15, "density": 3000},
    {"location": "Los Angeles, CA", "state": "CA", "city": "Los Angeles", "population": 85000, "areaSqMiles": 12, "density": 7083},
    {"location": "Miami, FL", "state": "FL", "city": "Miami", "population": 65000, "areaSqMiles": 10, "density": 6500},
    {"location": "Austin, TX", "state": "TX", "city": "Austin", "population": 55000, "areaSqMiles": 20, "density": 2750},
    {"location": "Boulder, CO", "state": "CO", "city": "Boulder", "population": 35000, "areaSqMiles": 18, "density": 1944},
    {"location": "Seattle, WA", "state": "WA", "city": "Seattle", "population": 70000, "areaSqMiles": 14, "density": 5000},
    {"location": "Philadelphia, PA", "state": "PA", "city": "Philadelphia", "population": 60000, "areaSqMiles": 11, "density": 5455},
    {"location": "Little Rock, AR", "state": "AR", "city": "Little Rock", "population": 40000, "areaSqMiles": 25, "density": 1600},
    {"location": "Boston, MA", "state": "MA", "city": "Boston", "population": 50000, "areaSqMiles": 8, "density": 6250},
    {"location": "Rural Iowa", "state": "IA", "city": None, "population": 5000, "areaSqMiles": 100, "density": 50},
]
