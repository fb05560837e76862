"""
Annual crown recession (change in height to crown base).

    dHCB = b0 * (HCB/b5)^b2 * ((HT - HCB) + dHT^b1) * (1 - exp(-b3*(CCF + 1)))^b4

dHT is the tree's pending height increment for the same year, so crown
recession must be evaluated after height growth. A thinning modifier (never
above 1) slows recession of balsam fir and red spruce after thinning.
"""
import math
from typing import Optional, TYPE_CHECKING

from .exceptions import check_finite, computation_guard
from .model_base import ParameterizedModel
from .thinning import crown_recession_thinning_modifier

if TYPE_CHECKING:
    from .growth_parameters import GrowthParameters
    from .species import SpeciesReference
    from .tree import TreeRecord


class CrownRecessionModel(ParameterizedModel):
    """Height to crown base increment model (m/yr)."""

    COEFFICIENT_FAMILY = 'crown_recession'
    REQUIRED_COEFFICIENTS = ('b0', 'b1', 'b2', 'b3', 'b4', 'b5')

    def potential_increment(self, hcb: float, height: float, dht: float, ccf: float) -> float:
        b = self.coefficients
        with computation_guard('crown_recession', hcb=hcb, height=height, dht=dht, ccf=ccf):
            dhcb = (b['b0']
                    * math.pow(hcb / b['b5'], b['b2'])
                    * ((height - hcb) + math.pow(dht, b['b1']))
                    * math.pow(1.0 - math.exp(-b['b3'] * (ccf + 1.0)), b['b4']))
            return check_finite(dhcb, 'crown_recession')

    def increment(self, tree: 'TreeRecord', params: 'GrowthParameters', dht: float) -> float:
        dhcb = self.potential_increment(tree.hcb, tree.height, dht, params.ccf)
        return dhcb * crown_recession_thinning_modifier(tree.species_code, params.active_thinning, params.year)


def create_crown_recession_model(species_code: int,
                                 reference: Optional['SpeciesReference'] = None) -> CrownRecessionModel:
    """Factory function to create a crown recession model."""
    return CrownRecessionModel(species_code, reference)
