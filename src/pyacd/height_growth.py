"""
Annual height increment for the Acadian Variant.

The potential increment is the derivative of a Chapman-Richards curve in
height, scaled by crown ratio and site, and damped by crown competition in
larger trees (CCFL):

    dHT = b0*b1*b2 * CR^b3 * (CSI/30)^b5 * exp(-b1*HT - b4*CCFL/100) * (1 - exp(-b1*HT))^(b2 - 1)

Modifiers: thinning response for balsam fir and red spruce during the first
five years after thinning, and spruce budworm defoliation.
"""
import math
from typing import Optional, TYPE_CHECKING

from .defoliation import height_defoliation_modifier
from .exceptions import check_finite, computation_guard
from .model_base import ParameterizedModel
from .thinning import height_thinning_modifier

if TYPE_CHECKING:
    from .growth_parameters import GrowthParameters
    from .species import SpeciesReference
    from .tree import TreeRecord

# Site index at which the site term equals 1 (m)
REFERENCE_SITE_INDEX = 30.0


class HeightGrowthModel(ParameterizedModel):
    """Height increment model (m/yr)."""

    COEFFICIENT_FAMILY = 'height_growth'
    REQUIRED_COEFFICIENTS = ('b0', 'b1', 'b2', 'b3', 'b4', 'b5')

    def potential_increment(self, height: float, crown_ratio: float, ccfl: float, csi: float) -> float:
        b = self.coefficients
        with computation_guard('height_growth', height=height, crown_ratio=crown_ratio, ccfl=ccfl, csi=csi):
            shape = 1.0 - math.exp(-b['b1'] * height)
            dht = (b['b0'] * b['b1'] * b['b2']
                   * math.pow(crown_ratio, b['b3'])
                   * math.pow(csi / REFERENCE_SITE_INDEX, b['b5'])
                   * math.exp(-b['b1'] * height - b['b4'] * (ccfl / 100.0))
                   * math.pow(shape, b['b2'] - 1.0))
            return check_finite(dht, 'height_growth')

    def increment(self, tree: 'TreeRecord', params: 'GrowthParameters') -> float:
        """Height increment for a tree including all active modifiers."""
        dht = self.potential_increment(tree.height, tree.crown_ratio, tree.ccfl, params.csi)
        thin = height_thinning_modifier(tree.species_code, params.active_thinning, params.year)
        defoliation = height_defoliation_modifier(tree, params)
        return dht * thin * defoliation


def create_height_growth_model(species_code: int,
                               reference: Optional['SpeciesReference'] = None) -> HeightGrowthModel:
    """Factory function to create a height growth model."""
    return HeightGrowthModel(species_code, reference)
