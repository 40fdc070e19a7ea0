# mlm_system/utils/chain_walker.py
"""
Safe MLM chain walking utilities.
Prevents infinite loops and validates chain integrity for both trees:

    sponsor - sponsorID links (who enrolled whom)
    binary  - binaryParentID links (left/right placement)
"""
from collections import deque
from typing import Optional, Callable, Set, List, Tuple
import logging

from core.errors import IntegrityWarning
from models import Distributor
from repositories.base import NetworkRepository

logger = logging.getLogger(__name__)

SPONSOR = "sponsor"
BINARY = "binary"

MAX_DEPTH = 1000


def _parent_id(distributor: Distributor, link: str) -> Optional[int]:
    if link == SPONSOR:
        return distributor.sponsorID
    return distributor.binaryParentID


class ChainWalker:
    """
    Safe utilities for walking MLM upline/downline chains.

    Broken links are never raised. Each one is logged and appended to
    `warnings` so callers can hand them back as diagnostics.
    """

    def __init__(self, repository: NetworkRepository):
        self.repository = repository
        self.warnings: List[IntegrityWarning] = []

    def _dangling(self, distributor: Distributor, missing_id: int, link: str) -> None:
        warning = IntegrityWarning(
            f"{link} parent {missing_id} of distributor {distributor.distributorID} not found",
            distributor_id=distributor.distributorID,
            missing_id=missing_id,
            link=link
        )
        logger.warning(warning.message)
        self.warnings.append(warning)

    def walk_upline(
            self,
            start: Distributor,
            callback: Callable[[Distributor, int], bool],
            link: str = SPONSOR,
            max_depth: int = MAX_DEPTH
    ) -> int:
        """
        Walk up the chain, calling callback for each ancestor.

        Args:
            start: Starting distributor (not passed to callback)
            callback: Function(ancestor, level) -> continue_walking (bool)
            link: SPONSOR or BINARY
            max_depth: Maximum depth to prevent runaway loops

        Returns:
            Number of ancestors processed

        Example:
            def pay(ancestor, level):
                print(f"Level {level}: {ancestor.code}")
                return level < 2

            walker.walk_upline(seller, pay)
        """
        current = start
        level = 1
        processed = 0
        visited = {start.distributorID}

        while level <= max_depth:
            parent_id = _parent_id(current, link)
            if parent_id is None:
                break

            if parent_id in visited:
                logger.error(f"Cycle detected in {link} chain at distributor {parent_id}")
                break

            parent = self.repository.get_distributor(parent_id)
            if parent is None:
                self._dangling(current, parent_id, link)
                break

            visited.add(parent_id)
            processed += 1

            if not callback(parent, level):
                break

            current = parent
            level += 1

        if level > max_depth:
            logger.error(f"Max depth ({max_depth}) exceeded starting from distributor {start.distributorID}")

        return processed

    def get_upline_chain(
            self,
            distributor: Distributor,
            link: str = SPONSOR,
            max_depth: int = MAX_DEPTH
    ) -> List[Distributor]:
        """
        Ancestors from the immediate parent to the root.
        """
        chain = []

        def collect(ancestor, level):
            chain.append(ancestor)
            return True

        self.walk_upline(distributor, collect, link, max_depth)
        return chain

    def get_binary_ancestors(self, distributor: Distributor) -> List[Tuple[Distributor, str]]:
        """
        Binary ancestors paired with the leg the start node sits in.

        Returns:
            [(ancestor, "left"|"right"), ...] from parent to root
        """
        ancestors = []
        child_side = [distributor.binarySide]

        def collect(ancestor, level):
            ancestors.append((ancestor, child_side[0]))
            child_side[0] = ancestor.binarySide
            return True

        self.walk_upline(distributor, collect, BINARY)
        return ancestors

    def is_ancestor(self, candidate_id: int, distributor_id: int, link: str) -> bool:
        """
        True if candidate_id is distributor_id itself or one of its ancestors.

        Used at insertion time to reject links that would close a cycle.
        """
        if candidate_id == distributor_id:
            return True

        start = self.repository.get_distributor(distributor_id)
        if start is None:
            return False

        found = [False]

        def check(ancestor, level):
            if ancestor.distributorID == candidate_id:
                found[0] = True
                return False
            return True

        self.walk_upline(start, check, link)
        return found[0]

    def walk_downline(
            self,
            start: Distributor,
            callback: Callable[[Distributor, int], None],
            link: str = BINARY,
            max_depth: int = MAX_DEPTH
    ) -> int:
        """
        Breadth-first walk below start.

        Args:
            start: Starting distributor (not passed to callback)
            callback: Function(distributor, level)
            link: SPONSOR or BINARY
            max_depth: Maximum depth

        Returns:
            Total number of distributors processed
        """
        visited: Set[int] = {start.distributorID}
        queue = deque([(start, 0)])
        processed = 0

        while queue:
            node, level = queue.popleft()
            if level >= max_depth:
                logger.warning(f"Max depth reached at distributor {node.distributorID}")
                continue

            if link == BINARY:
                children = self.repository.get_binary_children(node.distributorID)
            else:
                children = self.repository.get_sponsored(node.distributorID)

            for child in children:
                if child.distributorID in visited:
                    logger.error(f"Cycle detected in {link} downline at distributor {child.distributorID}")
                    continue
                visited.add(child.distributorID)

                callback(child, level + 1)
                processed += 1
                queue.append((child, level + 1))

        return processed

    def find_open_binary_slot(self, start: Distributor) -> Tuple[Distributor, str]:
        """
        Shallowest open slot in start's binary subtree.

        Breadth-first, left before right.

        Returns:
            (parent, side)
        """
        visited: Set[int] = set()
        queue = deque([start])

        while queue:
            node = queue.popleft()
            if node.distributorID in visited:
                logger.error(f"Cycle detected in binary subtree at distributor {node.distributorID}")
                continue
            visited.add(node.distributorID)

            children = self.repository.get_binary_children(node.distributorID)
            taken = {child.binarySide for child in children}

            for side in ("left", "right"):
                if side not in taken:
                    return node, side

            queue.extend(children)

        # A finite acyclic subtree always has an open slot below its leaves
        raise RuntimeError(f"No open binary slot under distributor {start.distributorID}")
