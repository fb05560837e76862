"""
Density rebalancing of tree lists.

Records representing many trees per hectare are split into several records
of at most `threshold` trees/ha before growth, so that the ranked
competition measures distinguish them, and recombined by density-weighted
averaging after growth.

Split records keep the plot and tree id of their parent and get a lineage
id: children are numbered 1..k and the parent becomes k+1. Each child gets a
small uniform jitter on diameter (and on height when measured) so the splits
no longer tie in the ranking.
"""
import math
from collections import defaultdict
from typing import List, Optional

import numpy as np

from .exceptions import InvalidParameterError
from .logging_config import get_logger
from .tree import TreeRecord

__all__ = ['DensityRebalancer', 'DEFAULT_EXPANSION_THRESHOLD', 'DEFAULT_JITTER']

DEFAULT_EXPANSION_THRESHOLD = 50.0
DEFAULT_JITTER = 0.005

logger = get_logger(__name__)


class DensityRebalancer:
    """Split and recombine high-density tree records.

    Attributes:
        threshold: Maximum trees/ha of a record after expansion
        jitter: Half-width of the uniform jitter added to split records
        rng: Random generator for the jitter
    """

    def __init__(self, threshold: float = DEFAULT_EXPANSION_THRESHOLD,
                 jitter: float = DEFAULT_JITTER,
                 rng: Optional[np.random.Generator] = None):
        if not threshold > 0:
            raise InvalidParameterError('expansion_threshold', threshold, "must be positive")
        self.threshold = float(threshold)
        self.jitter = float(jitter)
        self.rng = rng if rng is not None else np.random.default_rng()

    def _jittered_copy(self, tree: TreeRecord, lineage_id: int, tph: float) -> TreeRecord:
        child = tree.copy()
        child.lineage_id = lineage_id
        child.dbh += self.rng.uniform(-self.jitter, self.jitter)
        if child.height > 0.0:
            child.height += self.rng.uniform(-self.jitter, self.jitter)
        child.tph = tph
        child.compute_attributes()
        return child

    def expand(self, trees: List[TreeRecord]) -> bool:
        """Split records above the threshold, appending children to `trees`.

        Returns:
            False if the list is empty, True otherwise
        """
        if not trees:
            return False

        threshold = self.threshold
        n_split = 0
        for i in range(len(trees)):
            tree = trees[i]
            if not tree.tph > threshold:
                continue

            n_children = int(math.trunc(tree.tph / threshold)) - 1
            cum_tph = threshold
            lineage = 0
            for lineage in range(1, n_children + 1):
                trees.append(self._jittered_copy(tree, lineage, threshold))
                cum_tph += threshold

            if cum_tph < tree.tph:
                lineage += 1
                trees.append(self._jittered_copy(tree, lineage, tree.tph - cum_tph))

            tree.tph = threshold
            tree.lineage_id = lineage + 1
            tree.compute_attributes()
            n_split += 1

        if n_split:
            logger.debug(f"Expanded {n_split} records into {len(trees)} records")
        return True

    def contract(self, trees: List[TreeRecord]) -> bool:
        """Recombine split records and drop records with no density left.

        The first split record of each (plot, tree) group, in list order,
        receives the density-weighted mean of dbh, height, crown base and
        crown ratio of the whole group and the group's total density.
        """
        groups = defaultdict(list)
        for tree in trees:
            if tree.lineage_id > 0:
                groups[(tree.plot_id, tree.tree_id)].append(tree)

        for members in groups.values():
            head = members[0]
            total = sum(t.tph for t in members)
            if total > 0.0:
                head.dbh = sum(t.dbh * t.tph for t in members) / total
                head.height = sum(t.height * t.tph for t in members) / total
                head.hcb = sum(t.hcb * t.tph for t in members) / total
                head.crown_ratio = sum(t.crown_ratio * t.tph for t in members) / total
                head.tph = total
                head.lineage_id = 0
                head.compute_attributes()
            for t in members[1:]:
                t.tph = 0.0
                t.lineage_id = -1

        n_before = len(trees)
        trees[:] = [t for t in trees if t.tph != 0.0]
        if groups or n_before != len(trees):
            logger.debug(f"Contracted {n_before} records into {len(trees)} records")
        return True
