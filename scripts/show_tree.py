#!/usr/bin/env python3
"""
Display the binary placement tree.

Shows every distributor under a root with rank, activity and leg volumes.

Usage:
    python scripts/show_tree.py [--root-code NEON-XXXXXX] [--max-depth DEPTH] [--stats]
"""

import sys
import os
import argparse

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import Config
from core.db import get_session
from mlm_system.config.ranks import get_rank, RANK_CONFIG, RANK_ORDER
from mlm_system.services.network_service import NetworkService
from repositories.sql_repository import SqlRepository

import logging

logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)


def format_cents(cents: int) -> str:
    return f"${(cents or 0) / 100:,.2f}"


def print_tree(repository, root, max_depth=None):
    """Print ASCII tree of the binary structure."""
    network = NetworkService(repository)

    def print_node(distributor, side_label="", prefix="", is_last=True, depth=0):
        if max_depth is not None and depth > max_depth:
            return

        connector = "└─ " if is_last else "├─ "
        rank = get_rank(distributor.rank)
        rank_display = f"[{RANK_CONFIG[rank]['displayName']}]" if rank.value != "starter" else ""
        active_marker = "✅" if distributor.isActive else "❌"
        legs = f"L {format_cents(distributor.leftLegVolume)} / R {format_cents(distributor.rightLegVolume)}"

        print(
            f"{prefix}{connector}{side_label}{distributor.displayName or distributor.userID} "
            f"({distributor.code}) {active_marker} {rank_display} {legs}"
        )

        children = [
            (side, child) for side, child in network.get_binary_children(distributor.distributorID).items()
            if child is not None
        ]
        for i, (side, child) in enumerate(children):
            is_last_child = (i == len(children) - 1)
            new_prefix = prefix + ("    " if is_last else "│   ")
            print_node(child, f"{side[0].upper()}: ", new_prefix, is_last_child, depth + 1)

    print("\n" + "=" * 80)
    print("BINARY TREE")
    print("=" * 80)
    print("\nLegend:")
    print("  L:/R: = Placement side under the parent")
    print("  ✅ = Active distributor")
    print("  ❌ = Inactive distributor")
    print("  [rank] = Rank (if not Starter)")
    print("\n" + "=" * 80 + "\n")
    print_node(root)
    print("\n" + "=" * 80 + "\n")


def print_statistics(repository):
    """Print network statistics."""
    distributors = repository.list_distributors()
    total = len(distributors)

    print("\n" + "=" * 80)
    print("NETWORK STATISTICS")
    print("=" * 80 + "\n")

    if not total:
        print("No distributors enrolled")
        return

    active = sum(1 for d in distributors if d.isActive)
    print(f"Total distributors: {total}")
    print(f"Active:             {active} ({active / total * 100:.1f}%)")
    print(f"Inactive:           {total - active} ({(total - active) / total * 100:.1f}%)")

    print("\nDistributors by rank:")
    for rank in RANK_ORDER:
        count = sum(1 for d in distributors if d.rank == rank.value)
        if count:
            print(f"  {RANK_CONFIG[rank]['displayName']:14} {count:4} ({count / total * 100:.1f}%)")

    print("\n" + "=" * 80 + "\n")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description='Display binary placement tree')
    parser.add_argument('--root-code', type=str,
                        help='Distributor code to start from (default: network root)')
    parser.add_argument('--max-depth', type=int,
                        help='Maximum depth to display')
    parser.add_argument('--stats', action='store_true',
                        help='Show statistics only')
    args = parser.parse_args()

    # Initialize config
    Config.initialize_from_env()

    session = get_session()
    try:
        repository = SqlRepository(session)

        if args.stats:
            print_statistics(repository)
            return

        if args.root_code:
            root = repository.get_distributor_by_code(args.root_code.upper())
            if not root:
                print(f"❌ Distributor with code {args.root_code} not found!")
                return
        else:
            root = repository.get_binary_root()
            if not root:
                print("❌ Network is empty!")
                return

        print_tree(repository, root, args.max_depth)
        print_statistics(repository)

    finally:
        session.close()


if __name__ == "__main__":
    main()
