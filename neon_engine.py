# neon/neon_engine.py
"""
NEON Network Engine - Main entry point.

Usage:
    python neon_engine.py --demo          # price the sample territories
    python neon_engine.py --maintenance   # period-boundary rank pass
    python neon_engine.py --expire        # expire lapsed territories
"""
import argparse
import logging
import sys

from config import Config, ConfigurationError
from core.db import setup_database, get_db_session_ctx
from core.engine import NetworkEngine
from core.logging_config import setup_logging
from territory_system.config.pricing import SAMPLE_TERRITORIES
from territory_system.services.pricing_service import TerritoryPricingEngine, TerritoryPricingInput

logger = logging.getLogger(__name__)


def initialize() -> None:
    """Load configuration, configure logging and create tables."""
    # ═══════════════════════════════════════════════════════════════════════
    # STEP 1: Load configuration from .env
    # ═══════════════════════════════════════════════════════════════════════
    Config.initialize_from_env()
    setup_logging()

    logger.info("=" * 60)
    logger.info("NEON NETWORK ENGINE INITIALIZATION")
    logger.info("=" * 60)

    # ═══════════════════════════════════════════════════════════════════════
    # STEP 2: Setup database
    # ═══════════════════════════════════════════════════════════════════════
    logger.info("💾 Setting up database...")
    setup_database()
    logger.info("✓ Database ready")


def run_demo() -> None:
    """Print pricing for the sample territories."""
    engine = TerritoryPricingEngine()

    print("\n" + "=" * 80)
    print("TERRITORY PRICING - SAMPLE TERRITORIES")
    print("=" * 80 + "\n")
    print(f"{'Location':20} {'Area':>8} {'Density':>9} {'Price':>14} {'$/sq mi':>11}  Rules")
    print("-" * 80)

    for sample in SAMPLE_TERRITORIES:
        result = engine.price(TerritoryPricingInput(
            state=sample["state"],
            city=sample["city"],
            population=sample["population"],
            area_sq_miles=sample["areaSqMiles"],
            population_density=sample["density"],
        ))
        rules = ", ".join(rule.name for rule in result.applied_rules)
        print(
            f"{sample['location']:20} {sample['areaSqMiles']:>8} {sample['density']:>9} "
            f"${result.final_price_cents / 100:>13,.2f} {result.price_per_sq_mile:>11,.2f}  {rules}"
        )

    print("\n" + "=" * 80 + "\n")


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description='NEON network and territory engine')
    parser.add_argument('--demo', action='store_true',
                        help='Price the sample territories and exit')
    parser.add_argument('--maintenance', action='store_true',
                        help='Run the period-boundary rank maintenance pass')
    parser.add_argument('--period', type=str,
                        help='Period key for --maintenance, e.g. 2025-01')
    parser.add_argument('--expire', action='store_true',
                        help='Expire claimed territories past their term')
    args = parser.parse_args()

    if args.demo:
        run_demo()
        return 0

    try:
        initialize()

        with get_db_session_ctx() as session:
            engine = NetworkEngine.from_session(session)

            if args.maintenance:
                report = engine.run_rank_maintenance(args.period)
                logger.info(
                    f"✓ Maintenance {report.period}: evaluated={report.evaluated}, "
                    f"promoted={len(report.promoted)}, demoted={len(report.demoted)}"
                )

            if args.expire:
                expired = engine.expire_territories()
                logger.info(f"✓ Expired {len(expired)} territories")

        logger.info("✅ Done")
        return 0

    except ConfigurationError as e:
        logger.critical(f"❌ Configuration error: {e}")
        return 1
    except Exception as e:
        logger.critical(f"❌ Fatal error: {e}", exc_info=True)
        return 1


if __name__ == '__main__':
    sys.exit(main())
