"""
Annual tree survival and mortality for the Acadian Variant.

Survival probability uses a complementary log-log form in diameter and
basal area in larger trees:

    p = 1 - exp(-exp(-m0 + m1 * DBH^m2 / (BAL + 1)))

The probability is multiplied by three independently toggled modifiers,
each capped at 1 so they can only reduce survival: spruce budworm
defoliation, hardwood stem form, and the reciprocal of the thinning
mortality multiplier.

Mortality removed from a record each year is

    dTPH = TPH * (1 - p) * stand_defoliation * stand_thinning

where the stand-level multipliers are >= 1 when their switch is on.
"""
import math
from typing import Optional, TYPE_CHECKING

from .defoliation import stand_mortality_defoliation_modifier, survival_defoliation_modifier
from .exceptions import check_finite, computation_guard
from .form_risk import survival_form_modifier
from .logging_config import get_logger
from .model_base import ParameterizedModel
from .thinning import stand_mortality_thinning_modifier, survival_thinning_modifier

if TYPE_CHECKING:
    from .growth_parameters import GrowthParameters
    from .species import SpeciesReference
    from .tree import TreeRecord

logger = get_logger(__name__)


class SurvivalModel(ParameterizedModel):
    """Annual survival probability model."""

    COEFFICIENT_FAMILY = 'mortality'
    REQUIRED_COEFFICIENTS = ('m0', 'm1', 'm2')

    def survival_probability(self, dbh: float, bal: float) -> float:
        """Base survival probability before modifiers.

        Args:
            dbh: Diameter at breast height (cm)
            bal: Basal area in larger trees (m2/ha)

        Returns:
            Survival probability in [0, 1]
        """
        m = self.coefficients
        with computation_guard('survival', dbh=dbh, bal=bal):
            x = -m['m0'] + m['m1'] * (math.pow(dbh, m['m2']) / (bal + 1.0))
            return check_finite(1.0 - math.exp(-math.exp(x)), 'survival')

    def survival(self, tree: 'TreeRecord', params: 'GrowthParameters') -> float:
        """Survival probability for a tree including all active modifiers."""
        p = self.survival_probability(tree.dbh, tree.bal)
        p *= survival_defoliation_modifier(tree, params)
        p *= survival_form_modifier(tree, params)
        p *= survival_thinning_modifier(tree.species_code, params.active_thinning, params.year)
        return p


def stand_mortality_multiplier(params: 'GrowthParameters', balsam_fir_ba: float) -> float:
    """Combined stand-level mortality multiplier for one growth year.

    Args:
        params: Stand context for the year
        balsam_fir_ba: Balsam fir basal area (m2/ha)

    Returns:
        Multiplier (>= 1 in practice) on each record's mortality
    """
    multiplier = 1.0
    if params.use_defoliation:
        multiplier *= stand_mortality_defoliation_modifier(
            params.region, params.top_height, params.ba, balsam_fir_ba, params.cdef)
    if params.use_thinning:
        multiplier *= stand_mortality_thinning_modifier(params.thinning, params.year)
    if multiplier != 1.0:
        logger.debug(f"Stand mortality multiplier {multiplier:.4f} in year {params.year}")
    return multiplier


def mortality_density(tph: float, survival: float, multiplier: float = 1.0) -> float:
    """Trees per hectare lost from a record in one year."""
    return tph * (1.0 - survival) * multiplier


def create_survival_model(species_code: int,
                          reference: Optional['SpeciesReference'] = None) -> SurvivalModel:
    """Factory function to create a survival model."""
    return SurvivalModel(species_code, reference)
