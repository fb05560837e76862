"""
Crown width models for the Acadian Variant.

Maximum crown width (MCW) is the open-grown crown width of a tree of a given
diameter; largest crown width (LCW) is the stand-grown crown width derived
from it. Maximum crown area (MCA) expresses the MCW crown projection of a
tree record as a percent of a hectare and is summed into the crown
competition factor (CCF).

    MCW = a1 * DBH^a2
    LCW = MCW / (a1' * DBH^a2')
    MCA = 100 * (pi * MCW^2 / 4) / 10000 * TPH
"""
import math

from .exceptions import check_finite, computation_guard
from .model_base import ParameterizedModel

__all__ = [
    'CrownWidthModel',
    'LargestCrownWidthModel',
    'calculate_crown_area',
]


class CrownWidthModel(ParameterizedModel):
    """Maximum (open-grown) crown width, m."""

    COEFFICIENT_FAMILY = 'crown_width'
    REQUIRED_COEFFICIENTS = ('a1', 'a2')

    def maximum_crown_width(self, dbh: float) -> float:
        a1 = self.coefficients['a1']
        a2 = self.coefficients['a2']
        with computation_guard('maximum_crown_width', dbh=dbh, species=self.species_code):
            return check_finite(a1 * math.pow(dbh, a2), 'maximum_crown_width')


class LargestCrownWidthModel(ParameterizedModel):
    """Largest (stand-grown) crown width, m."""

    COEFFICIENT_FAMILY = 'largest_crown_width'
    REQUIRED_COEFFICIENTS = ('a1', 'a2')

    def largest_crown_width(self, dbh: float, mcw: float) -> float:
        a1 = self.coefficients['a1']
        a2 = self.coefficients['a2']
        with computation_guard('largest_crown_width', dbh=dbh, mcw=mcw, species=self.species_code):
            return check_finite(mcw / (a1 * math.pow(dbh, a2)), 'largest_crown_width')


def calculate_crown_area(mcw: float, tph: float) -> float:
    """Maximum crown area of a record as percent of one hectare."""
    return 100.0 * ((math.pi * (mcw * mcw / 4.0)) / 10000.0) * tph
