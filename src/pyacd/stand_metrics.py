"""
Stand metrics calculator for PyACD.

Stand-level aggregation of a tree list: competition in larger trees (BAL and
CCFL), basal area and density sums, quadratic mean diameter, crown
competition factor, top height, density-weighted tree statistics, and
Reineke SDI with relative density against the Weiskittel & Kuehne (2019)
maximum SDI.

Competition in larger trees is computed with a single ranked traversal
(see accumulate_in_larger): trees with exactly equal diameters see the same
value, which excludes each other.
"""
import math
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence, TYPE_CHECKING

from .exceptions import InternalConsistencyError, check_finite, computation_guard
from .species import SpeciesCode
from .tree_utils import calculate_record_sdi

if TYPE_CHECKING:
    from .tree import TreeRecord

__all__ = [
    'StandStatistics',
    'StandMetricsCalculator',
    'accumulate_in_larger',
    'maximum_sdi',
    'TOP_HEIGHT_DENSITY',
    'LARGE_TREE_DBH',
]

# Top height is the mean height of the tallest 100 trees/ha
TOP_HEIGHT_DENSITY = 100.0

# Lower diameter bound (cm) of the "large tree" subset
LARGE_TREE_DBH = 10.0

# Shade tolerance below which a hardwood counts as intolerant
INTOLERANT_SHADE = 2.0

# Floor on mean specific gravity in the maximum SDI equation
SDI_MAX_MIN_SG = 0.80


def accumulate_in_larger(records: Sequence, key: Callable, value: Callable,
                         include: Optional[Callable] = None) -> List[float]:
    """Sum of `value` over records with a strictly larger `key`.

    Records are visited in stable descending `key` order. A record tied with
    the one visited before it receives the same total, so tied records never
    count each other.

    Args:
        records: Records to rank
        key: Ranking key (e.g. dbh)
        value: Quantity to accumulate (e.g. basal area)
        include: Optional predicate; only included records add to the total,
            but every record is assigned one

    Returns:
        List of totals aligned with `records`

    Raises:
        InternalConsistencyError: If the traversal sees a key that is larger
            than its predecessor or that cannot be ordered (NaN)
    """
    results = [0.0] * len(records)
    order = sorted(range(len(records)), key=lambda i: key(records[i]), reverse=True)

    cum = 0.0
    pending = 0.0
    last_key = math.inf
    for i in order:
        k = key(records[i])
        if k < last_key:
            pending = cum
            last_key = k
        elif k != last_key:
            raise InternalConsistencyError(
                f"Ranked traversal out of order at record {i}: key {k} after {last_key}"
            )
        results[i] = pending
        if include is None or include(records[i]):
            cum += value(records[i])
    return results


def maximum_sdi(ba: float, ba_hw: float, mean_sg: float, dbh_range: float,
                n_species: int, elevation: float, csi: float) -> float:
    """Maximum SDI (Weiskittel & Kuehne 2019).

    Mean specific gravity is floored at 0.80. A non-positive prediction is
    replaced by the specific gravity-only model 1347.445 - 1003.870*SG.
    """
    sg = max(mean_sg, SDI_MAX_MIN_SG)
    with computation_guard('maximum_sdi', ba=ba, ba_hw=ba_hw, sg=sg, dbh_range=dbh_range,
                           elevation=elevation, csi=csi):
        sdi_max = (475.2079 - 1.5908 * (ba_hw / ba) - 236.9051 * math.log(sg)
                   + 50.3299 * math.sqrt(dbh_range) + 13.5202 * n_species
                   + 0.0685 * elevation - 2.8537 * math.sqrt(elevation)
                   + 222.7836 * (1.0 / csi))
        if sdi_max <= 0.0:
            sdi_max = 1347.445 - 1003.870 * sg
        return check_finite(sdi_max, 'maximum_sdi')


@dataclass
class StandStatistics:
    """Aggregates of a tree list; zero for an empty list."""
    ba: float = 0.0
    ba_sw: float = 0.0
    ba_hw: float = 0.0
    tph: float = 0.0
    qmd: float = 0.0
    ccf: float = 0.0
    top_height: float = 0.0
    balsam_fir_ba: float = 0.0
    intolerant_hw_ba: float = 0.0
    n_species: int = 0
    average_dbh: float = 0.0
    average_dbh_10: float = 0.0
    dbh_sd: float = 0.0
    dbh_10_sd: float = 0.0
    average_dbh_sw: float = 0.0
    average_dbh_hw: float = 0.0
    average_dbh_10_sw: float = 0.0
    average_dbh_10_hw: float = 0.0
    average_height_sw: float = 0.0
    average_height_hw: float = 0.0
    average_sg: float = 0.0
    average_sg_10: float = 0.0
    min_dbh: float = 0.0
    min_dbh_10: float = 0.0
    max_dbh: float = 0.0
    sdi: float = 0.0
    sdi_10: float = 0.0
    sdi_max: float = 0.0
    sdi_max_10: float = 0.0
    rd: float = 0.0
    rd_10: float = 0.0


def _weighted_sd(sum_x: float, sum_x2: float, weight: float) -> float:
    """Weighted standard deviation with the n/(n-1) correction on total weight."""
    if weight <= 1.0:
        return 0.0
    mean = sum_x / weight
    variance = (sum_x2 / weight - mean * mean) * weight / (weight - 1.0)
    return math.sqrt(max(variance, 0.0))


class StandMetricsCalculator:
    """Aggregator for a stand's tree list.

    Methods that assign per-tree competition (compute_bal, compute_ccfl)
    write into the records; the others only read them and fill in a
    StandStatistics instance.

    Attributes:
        csi: Climate site index (m)
        elevation: Stand elevation (m)
    """

    def __init__(self, csi: float, elevation: float):
        self.csi = csi
        self.elevation = elevation

    def compute_ba_tph_bal(self, trees: Sequence['TreeRecord'], stats: StandStatistics) -> None:
        """Basal area and density sums, QMD, and each tree's BAL."""
        stats.ba = stats.ba_sw = stats.ba_hw = 0.0
        stats.tph = stats.balsam_fir_ba = stats.intolerant_hw_ba = 0.0
        for t in trees:
            stats.ba += t.ba
            stats.tph += t.tph
            if t.softwood:
                stats.ba_sw += t.ba
            else:
                stats.ba_hw += t.ba
                if t.shade_tolerance < INTOLERANT_SHADE:
                    stats.intolerant_hw_ba += t.ba
            if t.species_code == SpeciesCode.BALSAM_FIR:
                stats.balsam_fir_ba += t.ba

        self.compute_bal(trees)
        stats.qmd = self.calculate_qmd(stats.ba, stats.tph)

    @staticmethod
    def compute_bal(trees: Sequence['TreeRecord']) -> None:
        """Assign bal, bal_sw and bal_hw to every record."""
        total = accumulate_in_larger(trees, key=_dbh, value=_ba)
        softwood = accumulate_in_larger(trees, key=_dbh, value=_ba, include=_is_softwood)
        for t, bal, bal_sw in zip(trees, total, softwood):
            t.bal = bal
            t.bal_sw = bal_sw
            t.bal_hw = bal - bal_sw

    @staticmethod
    def compute_ccfl(trees: Sequence['TreeRecord']) -> None:
        """Assign ccfl, ccfl_sw and ccfl_hw to every record."""
        total = accumulate_in_larger(trees, key=_dbh, value=_mca)
        softwood = accumulate_in_larger(trees, key=_dbh, value=_mca, include=_is_softwood)
        for t, ccfl, ccfl_sw in zip(trees, total, softwood):
            t.ccfl = ccfl
            t.ccfl_sw = ccfl_sw
            t.ccfl_hw = ccfl - ccfl_sw

    @staticmethod
    def calculate_ccf(trees: Iterable['TreeRecord']) -> float:
        """Crown competition factor: sum of maximum crown areas."""
        return sum(t.mca for t in trees)

    @staticmethod
    def calculate_qmd(ba: float, tph: float) -> float:
        if tph <= 0.0:
            return 0.0
        return math.sqrt(ba / tph / 0.00007854)

    @staticmethod
    def calculate_top_height(trees: Sequence['TreeRecord'],
                             density: float = TOP_HEIGHT_DENSITY) -> float:
        """Mean height of the tallest `density` trees per hectare.

        The record straddling the density limit contributes only the
        remaining density.
        """
        sum_tph = 0.0
        sum_ht = 0.0
        for t in sorted(trees, key=_height, reverse=True):
            if sum_tph >= density:
                break
            weight = min(t.tph, density - sum_tph)
            sum_ht += t.height * weight
            sum_tph += weight
        return sum_ht / sum_tph if sum_tph > 0.0 else 0.0

    @staticmethod
    def count_species(trees: Iterable['TreeRecord']) -> int:
        return len({t.species_code for t in trees})

    def compute_tree_statistics(self, trees: Sequence['TreeRecord'], stats: StandStatistics) -> None:
        """Density-weighted diameter, height and specific gravity statistics, and SDI."""
        sum_dbh = sum_dbh2 = sum_sg = 0.0
        sum_dbh_10 = sum_dbh2_10 = sum_sg_10 = tph_10 = 0.0
        sum_dbh_sw = sum_dbh_10_sw = sum_ht_sw = tph_sw = tph_10_sw = 0.0
        sum_dbh_hw = sum_dbh_10_hw = sum_ht_hw = tph_hw = tph_10_hw = 0.0
        sdi = sdi_10 = 0.0
        min_dbh = min_dbh_10 = math.inf
        max_dbh = 0.0
        tph = 0.0

        with computation_guard('tree_statistics', records=len(trees)):
            for t in trees:
                w = t.tph
                tph += w
                record_sdi = calculate_record_sdi(t.dbh, w)
                sum_dbh += t.dbh * w
                sum_dbh2 += t.dbh * t.dbh * w
                sum_sg += t.specific_gravity * w
                sdi += record_sdi

                large = t.dbh >= LARGE_TREE_DBH
                if large:
                    sum_dbh_10 += t.dbh * w
                    sum_dbh2_10 += t.dbh * t.dbh * w
                    sum_sg_10 += t.specific_gravity * w
                    tph_10 += w
                    sdi_10 += record_sdi
                    min_dbh_10 = min(min_dbh_10, t.dbh)

                if t.softwood:
                    sum_dbh_sw += t.dbh * w
                    sum_ht_sw += t.height * w
                    tph_sw += w
                    if large:
                        sum_dbh_10_sw += t.dbh * w
                        tph_10_sw += w
                else:
                    sum_dbh_hw += t.dbh * w
                    sum_ht_hw += t.height * w
                    tph_hw += w
                    if large:
                        sum_dbh_10_hw += t.dbh * w
                        tph_10_hw += w

                min_dbh = min(min_dbh, t.dbh)
                max_dbh = max(max_dbh, t.dbh)

            stats.average_dbh = sum_dbh / tph if tph > 0.0 else 0.0
            stats.average_sg = sum_sg / tph if tph > 0.0 else 0.0
            stats.dbh_sd = _weighted_sd(sum_dbh, sum_dbh2, tph)

            stats.average_dbh_10 = sum_dbh_10 / tph_10 if tph_10 > 0.0 else 0.0
            stats.average_sg_10 = sum_sg_10 / tph_10 if tph_10 > 0.0 else 0.0
            stats.dbh_10_sd = _weighted_sd(sum_dbh_10, sum_dbh2_10, tph_10)

            stats.average_dbh_sw = sum_dbh_sw / tph_sw if tph_sw > 0.0 else 0.0
            stats.average_height_sw = sum_ht_sw / tph_sw if tph_sw > 0.0 else 0.0
            # Softwood large-tree mean falls back to all softwoods
            stats.average_dbh_10_sw = sum_dbh_10_sw / tph_10_sw if tph_10_sw > 0.0 else stats.average_dbh_sw

            stats.average_dbh_hw = sum_dbh_hw / tph_hw if tph_hw > 0.0 else 0.0
            stats.average_height_hw = sum_ht_hw / tph_hw if tph_hw > 0.0 else 0.0
            stats.average_dbh_10_hw = sum_dbh_10_hw / tph_10_hw if tph_10_hw > 0.0 else stats.average_dbh_hw

        stats.min_dbh = min_dbh if trees else 0.0
        stats.min_dbh_10 = min_dbh_10 if tph_10 > 0.0 else 0.0
        stats.max_dbh = max_dbh
        stats.sdi = sdi
        stats.sdi_10 = sdi_10

    def compute_sdi_rd(self, stats: StandStatistics) -> None:
        """Maximum SDI and relative density for all and large trees."""
        if stats.ba <= 0.0:
            stats.sdi_max = stats.sdi_max_10 = stats.rd = stats.rd_10 = 0.0
            return

        dbh_range = stats.max_dbh - stats.min_dbh if stats.min_dbh < stats.max_dbh else 0.0
        dbh_range_10 = stats.max_dbh - stats.min_dbh_10 if 0.0 < stats.min_dbh_10 < stats.max_dbh else 0.0

        stats.sdi_max = maximum_sdi(stats.ba, stats.ba_hw, stats.average_sg, dbh_range,
                                    stats.n_species, self.elevation, self.csi)
        stats.sdi_max_10 = maximum_sdi(stats.ba, stats.ba_hw, stats.average_sg_10, dbh_range_10,
                                       stats.n_species, self.elevation, self.csi)
        stats.rd = stats.sdi / stats.sdi_max
        stats.rd_10 = stats.sdi_10 / stats.sdi_max_10

    def calculate_all_metrics(self, trees: Sequence['TreeRecord']) -> StandStatistics:
        """Full aggregation pass; assigns BAL and CCFL to the records."""
        stats = StandStatistics()
        stats.n_species = self.count_species(trees)
        stats.ccf = self.calculate_ccf(trees)
        self.compute_ba_tph_bal(trees, stats)
        self.compute_ccfl(trees)
        stats.top_height = self.calculate_top_height(trees)
        self.compute_tree_statistics(trees, stats)
        self.compute_sdi_rd(stats)
        return stats


def _dbh(t) -> float:
    return t.dbh


def _height(t) -> float:
    return t.height


def _ba(t) -> float:
    return t.ba


def _mca(t) -> float:
    return t.mca


def _is_softwood(t) -> bool:
    return t.softwood
