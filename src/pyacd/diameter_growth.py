"""
Annual diameter increment for the Acadian Variant.

Potential increment is a log-linear function of diameter, crown ratio,
basal area in larger trees (BAL) and climate site index (CSI):

    D = max(DBH, 1)
    dDBH = exp(b0 + b1*ln(D + 1) + b2*D + b3*ln(CR) + b4*BAL/ln(D + 1) + b5*ln(CSI))

The potential is multiplied by three modifiers, each identity unless its
switch is on and the tree qualifies:

    - thinning response (balsam fir, red spruce)
    - spruce budworm defoliation (balsam fir, white, black and red spruce)
    - hardwood form and risk (red oak, yellow birch, red maple, paper birch,
      quaking aspen)
"""
import math
from typing import Optional, TYPE_CHECKING

from .defoliation import diameter_defoliation_modifier
from .exceptions import check_finite, computation_guard
from .form_risk import diameter_form_risk_modifier
from .model_base import ParameterizedModel
from .thinning import diameter_thinning_modifier

if TYPE_CHECKING:
    from .growth_parameters import GrowthParameters
    from .species import SpeciesReference
    from .tree import TreeRecord


class DiameterGrowthModel(ParameterizedModel):
    """Diameter increment model (cm/yr).

    Attributes:
        species_code: FIA species code
        coefficients: b0 through b5
    """

    COEFFICIENT_FAMILY = 'diameter_growth'
    REQUIRED_COEFFICIENTS = ('b0', 'b1', 'b2', 'b3', 'b4', 'b5')

    def potential_increment(self, dbh: float, crown_ratio: float, bal: float, csi: float) -> float:
        """Diameter increment before modifiers."""
        b = self.coefficients
        d = max(dbh, 1.0)
        with computation_guard('diameter_growth', dbh=dbh, crown_ratio=crown_ratio, bal=bal, csi=csi):
            log_d = math.log(d + 1.0)
            x = (b['b0'] + b['b1'] * log_d + b['b2'] * d + b['b3'] * math.log(crown_ratio)
                 + b['b4'] * bal / log_d + b['b5'] * math.log(csi))
            return check_finite(math.exp(x), 'diameter_growth')

    def increment(self, tree: 'TreeRecord', params: 'GrowthParameters') -> float:
        """Diameter increment for a tree including all active modifiers."""
        ddbh = self.potential_increment(tree.dbh, tree.crown_ratio, tree.bal, params.csi)
        thin = diameter_thinning_modifier(tree.species_code, params.active_thinning, params.year)
        defoliation = diameter_defoliation_modifier(tree, params)
        form_risk = diameter_form_risk_modifier(tree, params)
        return ddbh * thin * defoliation * form_risk


def create_diameter_growth_model(species_code: int,
                                 reference: Optional['SpeciesReference'] = None) -> DiameterGrowthModel:
    """Factory function to create a diameter growth model."""
    return DiameterGrowthModel(species_code, reference)
