"""
Spruce budworm defoliation modifiers (Chen et al. 2017).

Cumulative defoliation (CDEF, percent) reduces the diameter and height growth
and the survival of balsam fir and the spruces. Each tree-level modifier is
the ratio of two evaluations of the same fitted model, with and without the
defoliation term, so it is identity when CDEF is zero. Coefficients differ by
region (Maine, New Brunswick).

References:
    Chen, C., Weiskittel, A., Bataineh, M., MacLean, D.A. 2017. Even low
    levels of spruce budworm defoliation affect mortality and ingrowth but net
    growth is more driven by competition. Can. J. For. Res. 47: 1546-1556.

    Chen, C., Weiskittel, A., Bataineh, M., MacLean, D.A. 2017. Evaluating the
    influence of varying levels of spruce budworm defoliation on annualized
    individual tree growth and mortality in Maine, USA and New Brunswick,
    Canada. For. Ecol. Manage. 396: 184-194.
"""
import math
from typing import TYPE_CHECKING

from .exceptions import check_finite, computation_guard
from .species import SpeciesCode
from .tree_utils import logistic

if TYPE_CHECKING:
    from .growth_parameters import GrowthParameters
    from .tree import TreeRecord

__all__ = [
    'DEFOLIATION_SPECIES',
    'diameter_defoliation_modifier',
    'height_defoliation_modifier',
    'survival_defoliation_modifier',
    'stand_mortality_defoliation_modifier',
]

DEFOLIATION_SPECIES = frozenset({
    SpeciesCode.BALSAM_FIR,
    SpeciesCode.WHITE_SPRUCE,
    SpeciesCode.BLACK_SPRUCE,
    SpeciesCode.RED_SPRUCE,
})

# Red and black spruce share coefficients
_SPECIES_GROUP = {
    SpeciesCode.BALSAM_FIR: 'BF',
    SpeciesCode.RED_SPRUCE: 'RS',
    SpeciesCode.BLACK_SPRUCE: 'RS',
    SpeciesCode.WHITE_SPRUCE: 'WS',
}

# dDBH = b1*DBH * exp(b2*BALhw + b3*BALsw + b4*TOPHT + b5*CR + b6*DBH/DBHsw [+ b7*CDEF])
DIAMETER_COEFFICIENTS = {
    'ME': {
        'shared': {'b2': 0.0019, 'b3': -0.0327, 'b4': -0.0412, 'b5': 0.3950},
        'BF': {'b1': 0.1187, 'b6': -1.2813, 'b7': -0.0016},
        'RS': {'b1': 0.0675, 'b6': -0.9477, 'b7': -0.0006},
        'WS': {'b1': 0.0321, 'b6': -0.3715, 'b7': -0.0183},
    },
    'NB': {
        'shared': {'b2': -0.0190, 'b3': -0.0277, 'b4': -0.0027, 'b5': 0.0},
        'BF': {'b1': 0.0701, 'b6': -0.8200, 'b7': -0.0018},
        'RS': {'b1': 0.0320, 'b6': -0.6861, 'b7': -0.0012},
        'WS': {'b1': 0.0487, 'b6': -0.7839, 'b7': -0.0006},
    },
}

# dHT = b1*DBH * exp(b2*DBH^2 + b3*TOPHT + b4*CR + b5*DBH/DBHsw [+ b6*CDEF])
HEIGHT_COEFFICIENTS = {
    'shared': {'b2': -0.0011, 'b3': 0.0316, 'b4': 2.4512},
    'BF': {'b1': 0.0013, 'b5': 0.3676, 'b6': -0.0017},
    'RS': {'b1': 0.0009, 'b5': 0.2881, 'b6': -0.0014},
    'WS': {'b1': 0.0005, 'b5': 0.6800, 'b6': 0.0001},
}

# mort = 1 - exp(-exp(b1 + b2*CR + b3*DBH + b4*HTsw + b5*HT/HTsw + b6*BALsw + b7*BALhw [+ b8*CDEF]))
SURVIVAL_COEFFICIENTS = {
    'ME': {
        'shared': {'b1': -6.5208, 'b2': -0.4866, 'b4': 0.0316, 'b6': -0.0175, 'b7': 0.0274},
        'BF': {'b3': -0.0355, 'b5': 1.5087, 'b8': 0.0040},
        'RS': {'b3': -0.1231, 'b5': 1.5087, 'b8': 0.0056},
        'WS': {'b3': -0.1755, 'b5': 1.5087, 'b8': 0.0207},
    },
    'NB': {
        'shared': {'b1': -6.8310, 'b2': 0.0, 'b4': 0.2025, 'b6': 0.0, 'b7': 0.0},
        'BF': {'b3': -0.2285, 'b5': 2.1703, 'b8': 0.0029},
        'RS': {'b3': -0.2285, 'b5': 2.0809, 'b8': 0.0101},
        'WS': {'b3': -0.2285, 'b5': 1.5802, 'b8': 0.0021},
    },
}

# Stand-level mortality multiplier: (b1, b2, b3, b4) by region
STAND_MORTALITY_COEFFICIENTS = {
    'ME': (-2.6380, 0.0114, -0.0076, 0.0074),
    'NB': (-3.0893, 0.0071, -0.0037, 0.0),
}


def _applies(tree: 'TreeRecord', params: 'GrowthParameters') -> bool:
    return (params.use_defoliation
            and params.defoliation_supplied
            and tree.species_code in DEFOLIATION_SPECIES)


def _coefficients(table: dict, species_code: int) -> dict:
    coefs = dict(table['shared'])
    coefs.update(table[_SPECIES_GROUP[species_code]])
    return coefs


def diameter_defoliation_modifier(tree: 'TreeRecord', params: 'GrowthParameters') -> float:
    """Ratio of defoliated to undefoliated diameter increment."""
    if not _applies(tree, params):
        return 1.0
    b = _coefficients(DIAMETER_COEFFICIENTS[params.region], tree.species_code)
    with computation_guard('diameter_defoliation_modifier', dbh=tree.dbh,
                           average_dbh_sw=params.average_dbh_sw, cdef=params.cdef):
        x = (b['b2'] * tree.bal_hw + b['b3'] * tree.bal_sw + b['b4'] * params.top_height
             + b['b5'] * tree.crown_ratio + b['b6'] * (tree.dbh / params.average_dbh_sw))
        undefoliated = b['b1'] * tree.dbh * math.exp(x)
        defoliated = b['b1'] * tree.dbh * math.exp(x + b['b7'] * params.cdef)
        return check_finite(defoliated / undefoliated, 'diameter_defoliation_modifier')


def height_defoliation_modifier(tree: 'TreeRecord', params: 'GrowthParameters') -> float:
    """Ratio of defoliated to undefoliated height increment."""
    if not _applies(tree, params):
        return 1.0
    b = _coefficients(HEIGHT_COEFFICIENTS, tree.species_code)
    with computation_guard('height_defoliation_modifier', dbh=tree.dbh,
                           average_dbh_sw=params.average_dbh_sw, cdef=params.cdef):
        x = (b['b2'] * tree.dbh * tree.dbh + b['b3'] * params.top_height
             + b['b4'] * tree.crown_ratio + b['b5'] * (tree.dbh / params.average_dbh_sw))
        undefoliated = b['b1'] * tree.dbh * math.exp(x)
        defoliated = b['b1'] * tree.dbh * math.exp(x + b['b6'] * params.cdef)
        return check_finite(defoliated / undefoliated, 'height_defoliation_modifier')


def survival_defoliation_modifier(tree: 'TreeRecord', params: 'GrowthParameters') -> float:
    """Ratio of defoliated to undefoliated survival, capped at 1."""
    if not _applies(tree, params):
        return 1.0
    b = _coefficients(SURVIVAL_COEFFICIENTS[params.region], tree.species_code)
    with computation_guard('survival_defoliation_modifier', dbh=tree.dbh, height=tree.height,
                           average_height_sw=params.average_height_sw, cdef=params.cdef):
        x = (b['b1'] + b['b2'] * tree.crown_ratio + b['b3'] * tree.dbh
             + b['b4'] * params.average_height_sw
             + b['b5'] * (tree.height / params.average_height_sw)
             + b['b6'] * tree.bal_sw + b['b7'] * tree.bal_hw)
        mort_a = 1.0 - math.exp(-math.exp(x))
        mort_b = 1.0 - math.exp(-math.exp(x + b['b8'] * params.cdef))
        modifier = (1.0 - mort_b) / (1.0 - mort_a) if mort_a > 0.0 else 1.0
        return min(check_finite(modifier, 'survival_defoliation_modifier'), 1.0)


def stand_mortality_defoliation_modifier(region: str, top_height: float, ba: float,
                                         bf_ba: float, cdef: float) -> float:
    """Stand-level mortality multiplier driven by balsam fir basal area.

    Args:
        region: 'ME' or 'NB'
        top_height: Stand top height (m)
        ba: Stand basal area (m2/ha)
        bf_ba: Balsam fir basal area (m2/ha)
        cdef: Cumulative defoliation; negative disables the modifier

    Returns:
        Multiplier on per-record mortality (1 when defoliation is not supplied)
    """
    if cdef < 0.0:
        return 1.0
    b1, b2, b3, b4 = STAND_MORTALITY_COEFFICIENTS[region]
    with computation_guard('stand_mortality_defoliation_modifier', ba=ba, bf_ba=bf_ba, cdef=cdef):
        volume = (top_height / 2.0) * ba
        baseline = logistic(b1) * logistic(b3 * volume)
        defoliated = logistic(b1) * logistic(b2 * cdef * bf_ba + b3 * volume + b4 * cdef)
        return check_finite(defoliated / baseline, 'stand_mortality_defoliation_modifier') if baseline > 0.0 else 1.0
