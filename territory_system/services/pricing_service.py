"""
Territory pricing engine.

    annualRevenue      = population x consumption x marketShare x casePrice x 12
    grossProfit        = annualRevenue x grossMargin
    netValue           = grossProfit - licensingFees - exciseTax
    basePricePerSqMile = max(500, netValue / area x blueSky / 10
                                  x density x demographic x regional)
    totalBasePrice     = basePricePerSqMile x area
    finalPrice         = max(2500, totalBasePrice x (1 - volumeDiscount) + licensingFees)

Multipliers come from MULTIPLIER_RULES, evaluated in list order; every
rule that fires is reported on the output. The breakdown decomposes the
final price line by line and its cent amounts always sum to
final_price_cents exactly.

Pure and deterministic: no I/O, no clock, no randomness.
"""
import math
import logging
from dataclasses import dataclass, field, replace
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, List, Optional, Dict, Any

from core.errors import ValidationError
from territory_system.config.pricing import (
    STATE_LICENSING_FEES,
    DEFAULT_LICENSING_FEES,
    MUNICIPAL_SSB_TAXES,
    URBAN_MIN_DENSITY,
    SUBURBAN_MIN_DENSITY,
    DENSITY_MULTIPLIERS,
    HIGH_INCOME_THRESHOLD,
    HIGH_INCOME_MULTIPLIER,
    YOUNG_ADULT_THRESHOLD,
    YOUNG_ADULT_MULTIPLIER,
    FITNESS_MULTIPLIER,
    REGIONS,
    REGIONAL_MULTIPLIERS,
    BLUE_SKY_DEFAULT,
    BOTTLER_ALIGNED_MULTIPLIER,
    CONSUMPTION_COEFFICIENT,
    TARGET_MARKET_SHARE,
    TARGET_GROSS_MARGIN,
    AVG_CASE_PRICE,
    MINIMUM_PRICE_PER_SQ_MILE,
    MINIMUM_LICENSING_FEE,
    TERRITORY_TIERS,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# TYPES
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TerritoryPricingInput:
    state: str
    population: int
    area_sq_miles: float
    population_density: float
    high_income_percent: float = 0.0  # share of households above $100k, 0..1
    young_adult_percent: float = 0.0  # share aged 18-34, 0..1
    city: Optional[str] = None
    has_fitness_orientation: bool = False
    is_coke_aligned: bool = False


@dataclass(frozen=True)
class MultiplierRule:
    """Named (predicate, factor) step applied to the per-square-mile value."""
    name: str
    group: str  # density, demographic, regional
    predicate: Callable[[TerritoryPricingInput], bool]
    factor: float
    description: str


@dataclass
class AppliedRule:
    name: str
    group: str
    factor: float
    description: str


@dataclass
class BreakdownItem:
    category: str
    amount_cents: int  # signed
    description: str


@dataclass
class TerritoryPricingOutput:
    annual_revenue: float
    gross_profit: float
    licensing_fees: float
    excise_tax_impact: float
    net_value: float
    density_category: str
    density_multiplier: float
    demographic_multiplier: float
    regional_multiplier: float
    blue_sky_multiple: float
    base_price_per_sq_mile: float
    total_base_price: float
    volume_discount: float
    tier_name: str
    final_price: float
    final_price_cents: int
    price_per_sq_mile: float
    applied_rules: List[AppliedRule] = field(default_factory=list)
    breakdown: List[BreakdownItem] = field(default_factory=list)
    fairness_rationale: str = ""


# ═══════════════════════════════════════════════════════════════════════════
# MULTIPLIER RULES - evaluated in this order
# ═══════════════════════════════════════════════════════════════════════════

def _in_region(region: str) -> Callable[[TerritoryPricingInput], bool]:
    return lambda i: i.state in REGIONS[region]


MULTIPLIER_RULES: List[MultiplierRule] = [
    # Density - exactly one fires
    MultiplierRule(
        "urban_density", "density",
        lambda i: i.population_density >= URBAN_MIN_DENSITY,
        DENSITY_MULTIPLIERS["urban"],
        f"urban zone (density >= {URBAN_MIN_DENSITY}/sq mi)"
    ),
    MultiplierRule(
        "suburban_density", "density",
        lambda i: SUBURBAN_MIN_DENSITY <= i.population_density < URBAN_MIN_DENSITY,
        DENSITY_MULTIPLIERS["suburban"],
        f"suburban zone ({SUBURBAN_MIN_DENSITY}-{URBAN_MIN_DENSITY - 1}/sq mi)"
    ),
    MultiplierRule(
        "rural_density", "density",
        lambda i: i.population_density < SUBURBAN_MIN_DENSITY,
        DENSITY_MULTIPLIERS["rural"],
        f"rural zone (density < {SUBURBAN_MIN_DENSITY}/sq mi)"
    ),

    # Demographic - independent, compounding
    MultiplierRule(
        "high_income", "demographic",
        lambda i: i.high_income_percent >= HIGH_INCOME_THRESHOLD,
        HIGH_INCOME_MULTIPLIER,
        "affluent households premium"
    ),
    MultiplierRule(
        "young_adult", "demographic",
        lambda i: i.young_adult_percent >= YOUNG_ADULT_THRESHOLD,
        YOUNG_ADULT_MULTIPLIER,
        "young adult (18-34) premium"
    ),
    MultiplierRule(
        "fitness_oriented", "demographic",
        lambda i: i.has_fitness_orientation,
        FITNESS_MULTIPLIER,
        "health-conscious area premium"
    ),

    # Regional - at most one fires, unmapped states stay at 1.0
    MultiplierRule("southeast_region", "regional", _in_region("southeast"),
                   REGIONAL_MULTIPLIERS["southeast"], "southeast consumption pattern"),
    MultiplierRule("southwest_region", "regional", _in_region("southwest"),
                   REGIONAL_MULTIPLIERS["southwest"], "southwest consumption pattern"),
    MultiplierRule("west_region", "regional", _in_region("west"),
                   REGIONAL_MULTIPLIERS["west"], "west consumption pattern"),
    MultiplierRule("northeast_region", "regional", _in_region("northeast"),
                   REGIONAL_MULTIPLIERS["northeast"], "northeast consumption pattern"),
    MultiplierRule("midwest_region", "regional", _in_region("midwest"),
                   REGIONAL_MULTIPLIERS["midwest"], "midwest consumption pattern"),
]

DENSITY_CATEGORIES = {
    "urban_density": "urban",
    "suburban_density": "suburban",
    "rural_density": "rural",
}


# ═══════════════════════════════════════════════════════════════════════════
# HELPERS
# ═══════════════════════════════════════════════════════════════════════════

def to_cents(amount: float) -> int:
    """Dollars to cents, nearest cent, half-up."""
    return int(Decimal(repr(amount * 100)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def city_key(city: str, state: str) -> str:
    """"San Francisco", "CA" -> "san-francisco-ca"."""
    return f"{'-'.join(city.lower().split())}-{state.lower()}"


def state_fees(state: str) -> Dict[str, Any]:
    return STATE_LICENSING_FEES.get(state, DEFAULT_LICENSING_FEES)


def volume_tier(area_sq_miles: float) -> Dict[str, Any]:
    """First tier, ascending, whose maxSqMiles covers the area."""
    for tier in sorted(TERRITORY_TIERS, key=lambda t: t["maxSqMiles"]):
        if area_sq_miles <= tier["maxSqMiles"]:
            return tier
    return TERRITORY_TIERS[-1]


def _validate(data: TerritoryPricingInput) -> None:
    if not isinstance(data.state, str) or not data.state.strip():
        raise ValidationError("state is required", field="state")

    area = data.area_sq_miles
    if isinstance(area, bool) or not isinstance(area, (int, float)) or not math.isfinite(area) or area <= 0:
        raise ValidationError("area_sq_miles must be a positive number", field="area_sq_miles")

    for name in ("population", "population_density"):
        value = getattr(data, name)
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value) or value < 0:
            raise ValidationError(f"{name} must be a non-negative number", field=name)

    for name in ("high_income_percent", "young_adult_percent"):
        value = getattr(data, name)
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not 0 <= value <= 1:
            raise ValidationError(f"{name} must be a share between 0 and 1", field=name)


# ═══════════════════════════════════════════════════════════════════════════
# ENGINE
# ═══════════════════════════════════════════════════════════════════════════

class TerritoryPricingEngine:
    """Prices a territory licence."""

    def __init__(self, rules: Optional[List[MultiplierRule]] = None):
        self.rules = rules if rules is not None else MULTIPLIER_RULES

    def apply_rules(self, data: TerritoryPricingInput) -> List[AppliedRule]:
        """Rules that fire for this input, in evaluation order."""
        return [
            AppliedRule(rule.name, rule.group, rule.factor, rule.description)
            for rule in self.rules
            if rule.predicate(data)
        ]

    def price(self, data: TerritoryPricingInput) -> TerritoryPricingOutput:
        """
        Price a territory.

        Raises:
            ValidationError: Non-positive area, negative population or
                             shares outside [0, 1]
        """
        _validate(data)
        state = data.state.strip().upper()
        if state != data.state:
            data = replace(data, state=state)
        area = float(data.area_sq_miles)

        # Fixed costs
        fees = state_fees(state)
        licensingFees = float(fees["baseFee"] + fees["renewalFee"] + fees["additionalFees"])

        exciseTax = 0.0
        if data.city:
            ssb = MUNICIPAL_SSB_TAXES.get(city_key(data.city, state))
            if ssb:
                annualCases = data.population * CONSUMPTION_COEFFICIENT * 12
                exciseTax = annualCases * ssb["impactPer24Case"]

        # Multipliers
        applied = self.apply_rules(data)
        multipliers = {"density": 1.0, "demographic": 1.0, "regional": 1.0}
        densityCategory = "suburban"
        for rule in applied:
            multipliers[rule.group] *= rule.factor
            if rule.name in DENSITY_CATEGORIES:
                densityCategory = DENSITY_CATEGORIES[rule.name]

        blueSky = BLUE_SKY_DEFAULT * (BOTTLER_ALIGNED_MULTIPLIER if data.is_coke_aligned else 1.0)
        blueSkyScale = blueSky / 10

        # Valuation
        annualRevenue = data.population * CONSUMPTION_COEFFICIENT * TARGET_MARKET_SHARE * AVG_CASE_PRICE * 12
        grossProfit = annualRevenue * TARGET_GROSS_MARGIN
        netValue = grossProfit - licensingFees - exciseTax

        adjustedPerSqMile = (
                (netValue / area) * blueSkyScale
                * multipliers["density"] * multipliers["demographic"] * multipliers["regional"]
        )
        basePricePerSqMile = max(MINIMUM_PRICE_PER_SQ_MILE, adjustedPerSqMile)
        totalBasePrice = basePricePerSqMile * area

        tier = volume_tier(area)
        discountAmount = totalBasePrice * tier["discount"]

        preMinimum = totalBasePrice - discountAmount + licensingFees
        finalPrice = max(MINIMUM_LICENSING_FEE, preMinimum)
        finalPriceCents = to_cents(finalPrice)

        output = TerritoryPricingOutput(
            annual_revenue=annualRevenue,
            gross_profit=grossProfit,
            licensing_fees=licensingFees,
            excise_tax_impact=exciseTax,
            net_value=netValue,
            density_category=densityCategory,
            density_multiplier=multipliers["density"],
            demographic_multiplier=multipliers["demographic"],
            regional_multiplier=multipliers["regional"],
            blue_sky_multiple=blueSky,
            base_price_per_sq_mile=basePricePerSqMile,
            total_base_price=totalBasePrice,
            volume_discount=tier["discount"],
            tier_name=tier["name"],
            final_price=finalPrice,
            final_price_cents=finalPriceCents,
            price_per_sq_mile=finalPrice / area,
            applied_rules=applied,
        )

        output.breakdown = self._breakdown(
            data, output, fees,
            adjusted=adjustedPerSqMile * area,
            discount=discountAmount,
            pre_minimum=preMinimum,
        )
        output.fairness_rationale = self._rationale(data, output)

        logger.debug(
            f"Priced {state} {data.city or ''} {area} sq mi: "
            f"{finalPriceCents} cents ({len(applied)} rules)"
        )
        return output

    # ------------------------------------------------------------------
    # Breakdown
    # ------------------------------------------------------------------

    def _breakdown(
            self,
            data: TerritoryPricingInput,
            out: TerritoryPricingOutput,
            fees: Dict[str, Any],
            adjusted: float,
            discount: float,
            pre_minimum: float
    ) -> List[BreakdownItem]:
        """
        Line items summing to final_price_cents.

        The multiplier adjustments are sequential: each one is priced on the
        value already adjusted by the groups before it, so together with the
        unadjusted value lines they add up to the adjusted territory value.
        """
        scale = out.blue_sky_multiple / 10
        unadjusted = out.net_value * scale
        d = out.density_multiplier
        dm = out.demographic_multiplier
        r = out.regional_multiplier

        lines = [
            ("Gross Territory Value", out.gross_profit * scale,
             f"Annual gross profit x {out.blue_sky_multiple:g} blue sky multiple / 10"),
            ("Licensing Fee Offset", -out.licensing_fees * scale,
             "Annual licensing fees deducted from territory value"),
        ]
        if out.excise_tax_impact > 0:
            lines.append(("Municipal SSB Tax Impact", -out.excise_tax_impact * scale,
                          f"{data.city} sugar-sweetened beverage tax"))
        if d != 1.0:
            lines.append(("Density Adjustment", unadjusted * (d - 1),
                          f"{out.density_category} zone ({d:g}x multiplier)"))
        if dm != 1.0:
            lines.append(("Demographic Premium", unadjusted * d * (dm - 1),
                          f"Income/age/fitness factors ({dm:.2f}x)"))
        if r != 1.0:
            lines.append(("Regional Adjustment", unadjusted * d * dm * (r - 1),
                          f"{data.state} regional consumption pattern ({r:g}x)"))

        floorAdjustment = out.total_base_price - adjusted
        if floorAdjustment > 0:
            lines.append(("Minimum Price Floor", floorAdjustment,
                          f"Raised to ${MINIMUM_PRICE_PER_SQ_MILE}/sq mi minimum"))
        if discount > 0:
            lines.append(("Volume Discount", -discount,
                          f"{out.tier_name} ({out.volume_discount * 100:.0f}% discount)"))

        lines.append(("State Licensing Fees", out.licensing_fees,
                      f"{fees['name'] or data.state} base + renewal + additional fees"))

        minimumAdjustment = out.final_price - pre_minimum
        if minimumAdjustment > 0:
            lines.append(("Minimum Licensing Fee Adjustment", minimumAdjustment,
                          f"Raised to the ${MINIMUM_LICENSING_FEE:,} minimum licensing fee"))

        items = [BreakdownItem(category, to_cents(amount), description) for category, amount, description in lines]

        # Per-line rounding can drift a few cents from the rounded total
        drift = out.final_price_cents - sum(item.amount_cents for item in items)
        if drift:
            items.append(BreakdownItem("Rounding", drift, "Per-line rounding to whole cents"))

        return items

    # ------------------------------------------------------------------
    # Fairness rationale
    # ------------------------------------------------------------------

    def _rationale(self, data: TerritoryPricingInput, out: TerritoryPricingOutput) -> str:
        area = float(data.area_sq_miles)
        rationale = f"This {area:.1f} sq mi territory in {data.state}"
        if data.city:
            rationale += f" ({data.city})"
        rationale += (
            f" is priced at ${out.final_price_cents / 100:,.2f}"
            f" (${out.price_per_sq_mile:,.2f}/sq mi). "
        )

        if out.density_category == "urban":
            rationale += "The urban density premium reflects high delivery efficiency and consumer accessibility. "
        elif out.density_category == "rural":
            rationale += "A rural logistics discount has been applied to account for higher case-mile delivery costs. "

        if out.regional_multiplier > 1.1:
            rationale += "This region shows above-average energy drink consumption patterns. "
        elif out.regional_multiplier < 0.95:
            rationale += "Regional consumption patterns are below the national average. "

        if out.demographic_multiplier > 1.2:
            rationale += "Premium demographic factors (income, age, fitness orientation) add value to this territory."

        return rationale.strip()


_default_engine = TerritoryPricingEngine()


def price(data: TerritoryPricingInput) -> TerritoryPricingOutput:
    """Price with the default rule set."""
    return _default_engine.price(data)
