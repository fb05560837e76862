"""
Annual ingrowth for the Acadian Variant (Li et al. 2011).

Ingrowth is predicted in two parts from stand basal area (BA), hardwood
proportion of basal area, density, site, minimum recruit diameter and QMD:

    PI  = 1 / (1 + exp(-(a . x)))      probability that any ingrowth occurs
    IPH = exp(b . x)                   ingrowth trees/ha when it occurs
    x   = [1, BA, BA_hw/BA, TPH/1000, CSI, MinDBH, QMD]

With a cut point of 0 the expected value IPH*PI is used; otherwise IPH is
admitted only when PI reaches the cut point.

Recruits are allocated to seven species groups by normalized logistic
shares, then within a group to species by basal area, and within a species
to plots by the plot's share of that species' basal area. Species outside
the ingrowth groups recruit as generic other softwood or other hardwood.

Reference:
    Li, R., Weiskittel, A.R., Kershaw, J.A. 2011. Modeling annualized
    occurrence, frequency, and composition of ingrowth using mixed-effects
    zero-inflated models and permanent plots in the Acadian Forest Region of
    North America. Can. J. For. Res. 41: 2077-2089.
"""
import math
from collections import defaultdict
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from .exceptions import ConfigurationError, check_finite, computation_guard
from .logging_config import get_logger
from .species import SpeciesReference, default_species_reference
from .tree import TreeRecord
from .tree_utils import logistic

__all__ = ['IngrowthModelType', 'IngrowthModel', 'INGROWTH_FAMILY']

INGROWTH_FAMILY = 'ingrowth'
N_COVARIATES = 7
N_GROUP_COEFFICIENTS = 5

logger = get_logger(__name__)


class IngrowthModelType(Enum):
    """Fitted coefficient sets of the ingrowth model."""
    GNLS = 'GNLS'
    NLME = 'NLME'


class IngrowthModel:
    """Ingrowth amount and allocation.

    Attributes:
        model_type: Coefficient set in use
        reference: Species reference used to build recruits
    """

    def __init__(self, reference: Optional[SpeciesReference] = None,
                 model_type: IngrowthModelType = IngrowthModelType.GNLS):
        self.reference = reference or default_species_reference()
        self.model_type = IngrowthModelType(model_type)

        data = self.reference.get_raw_data(INGROWTH_FAMILY)
        try:
            model = data['models'][self.model_type.value]
            self.a = [float(v) for v in model['a']]
            self.b = [float(v) for v in model['b']]
            self.groups: Dict[str, List[float]] = {}
            self._group_of: Dict[int, str] = {}
            for name, entry in data['groups'].items():
                self.groups[name] = [float(v) for v in entry['g']]
                for code in entry['species']:
                    self._group_of[int(code)] = name
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigurationError(f"Malformed ingrowth coefficients: {e}") from e

        if len(self.a) != N_COVARIATES or len(self.b) != N_COVARIATES:
            raise ConfigurationError(f"Ingrowth model {self.model_type.value} needs {N_COVARIATES} coefficients")
        if any(len(g) != N_GROUP_COEFFICIENTS for g in self.groups.values()):
            raise ConfigurationError(f"Ingrowth groups need {N_GROUP_COEFFICIENTS} coefficients")

    def recruit_species(self, tree: TreeRecord) -> int:
        """Species code under which a tree's basal area recruits."""
        if tree.species_code in self._group_of:
            return tree.species_code
        return self.reference.generic_code(tree.softwood)

    def group_of(self, species_code: int) -> str:
        return self._group_of[species_code]

    def probability_and_count(self, ba: float, ba_hw: float, tph: float, csi: float,
                              min_dbh: float, qmd: float) -> Tuple[float, float]:
        """Probability of ingrowth and trees/ha when ingrowth occurs."""
        with computation_guard('ingrowth', ba=ba, ba_hw=ba_hw, tph=tph, csi=csi, min_dbh=min_dbh, qmd=qmd):
            x = (1.0, ba, ba_hw / ba, tph / 1000.0, csi, min_dbh, qmd)
            link = sum(c * v for c, v in zip(self.a, x))
            eta = sum(c * v for c, v in zip(self.b, x))
            return logistic(link), check_finite(math.exp(eta), 'ingrowth')

    def predict_iph(self, ba: float, ba_hw: float, tph: float, csi: float,
                    min_dbh: float, qmd: float, cut_point: float = 0.5) -> float:
        """Ingrowth trees/ha for one year after cut point gating."""
        pi, iph = self.probability_and_count(ba, ba_hw, tph, csi, min_dbh, qmd)
        if cut_point == 0.0:
            return iph * pi
        return iph if pi >= cut_point else 0.0

    def group_shares(self, group_ba: Dict[str, float], ba: float, csi: float,
                     min_dbh: float) -> Dict[str, float]:
        """Normalized share of ingrowth for each group present in the stand."""
        raw = {}
        with computation_guard('ingrowth_composition', ba=ba, csi=csi, min_dbh=min_dbh):
            for name, gba in group_ba.items():
                g = self.groups[name]
                raw[name] = logistic(g[0] + g[1] * ba + g[2] * (gba / ba) + g[3] * csi + g[4] * min_dbh)
            total = sum(raw.values())
            return {name: share / total for name, share in raw.items()}

    def allocate(self, trees: Sequence[TreeRecord], iph: float, ba: float, csi: float,
                 min_dbh: float, next_tree_id: int) -> List[TreeRecord]:
        """Create recruit records for `iph` trees/ha.

        One record is created for every (plot, species) with basal area in
        the stand. Records without live basal area take no share, so the
        recruits always sum to `iph` when any live basal area remains. Tree
        ids are assigned from `next_tree_id` upward.

        Returns:
            New tree records, not yet added to the stand
        """
        species_ba: Dict[int, float] = defaultdict(float)
        group_ba: Dict[str, float] = defaultdict(float)
        plot_species_ba: Dict[int, Dict[int, float]] = defaultdict(lambda: defaultdict(float))

        for t in trees:
            if not (t.tph > 0.0 and t.ba > 0.0):
                continue
            code = self.recruit_species(t)
            species_ba[code] += t.ba
            group_ba[self.group_of(code)] += t.ba
            plot_species_ba[t.plot_id][code] += t.ba

        shares = self.group_shares(group_ba, ba, csi, min_dbh)

        recruits = []
        tree_id = next_tree_id
        for code, sba in species_ba.items():
            group = self.group_of(code)
            species_iph = shares[group] * iph * sba / group_ba[group]
            for plot_id, plot_ba in plot_species_ba.items():
                plot_share = plot_ba.get(code, 0.0) / sba
                if plot_share > 0.0:
                    recruits.append(TreeRecord(
                        plot_id, tree_id, code, min_dbh,
                        height=0.0, tph=species_iph * plot_share, crown_ratio=0.0,
                        form=0, risk=0, reference=self.reference,
                    ))
                    tree_id += 1

        logger.debug(f"Allocated {iph:.2f} ingrowth trees/ha to {len(recruits)} records")
        return recruits
