"""
Thinning response modifiers (Kuehne et al. 2016).

Commercial thinning changes the growth, crown recession and survival of
balsam fir and red spruce for several years after treatment. Each response is
a multiplier on the unthinned prediction, driven by the proportion of basal
area removed, the pre-thin basal area, the ratio of post- to pre-thin
quadratic mean diameter and the years since thinning (t):

    diameter:      1 + exp(y0 + y1/(100*p*q + 0.01)) * y2^t * t^y3      in [0.75, 1.25]
    height:        1 - exp(y0 + y1/(100*p + 0.01)) * y2^t * t^y3         in [0.75, 1.25], t < 5
    crown base:    min(|1 - exp(y0 + y1/(100*p*q + 0.01)) * y2^t * t^y3|, 1)
    survival:      min(1 / (1 + exp(y0 + y1/(X + 0.01)) * y2^t * t^y3), 1)
    stand:         1 + exp(y0 + y1/(100*p + BApre + 0.01)) * y2^t * t^y3

For survival X is (100*p + BApre)*q for balsam fir and 100*p + BApre for red
spruce. Every modifier is identity unless the thinning event is active: a
non-negative thinning year at or before the current year with positive
removal, pre-thin basal area and QMD ratio.
"""
import math
from dataclasses import dataclass
from typing import Optional

from .exceptions import InvalidParameterError, check_finite, computation_guard, validate_proportion
from .species import SpeciesCode

__all__ = [
    'ThinningEvent',
    'THINNING_SPECIES',
    'diameter_thinning_modifier',
    'height_thinning_modifier',
    'crown_recession_thinning_modifier',
    'survival_thinning_modifier',
    'stand_mortality_thinning_modifier',
]

THINNING_SPECIES = frozenset({SpeciesCode.BALSAM_FIR, SpeciesCode.RED_SPRUCE})

# Coefficients (y0, y1, y2, y3) by species
DIAMETER_COEFFICIENTS = {
    SpeciesCode.BALSAM_FIR: (-0.2566, -22.7609, 0.7745, 1.0511),
    SpeciesCode.RED_SPRUCE: (-0.5010, -20.1147, 0.8067, 1.1905),
}

HEIGHT_COEFFICIENTS = {
    SpeciesCode.BALSAM_FIR: (-1.8443, 5.2969, 1.0532, 0.0),
    SpeciesCode.RED_SPRUCE: (-1.8426, 6.2781, 1.1596, 0.0),
}

CROWN_RECESSION_COEFFICIENTS = {
    SpeciesCode.BALSAM_FIR: (-0.4208, -17.0998, 0.7986, 0.0521),
    SpeciesCode.RED_SPRUCE: (-1.0778, -14.7694, 0.7758, 1.1164),
}

SURVIVAL_COEFFICIENTS = {
    SpeciesCode.BALSAM_FIR: (1.7414, 7.0805, 0.6677, 0.8474),
    SpeciesCode.RED_SPRUCE: (10.5057, -650.8260, 0.6948, 0.6429),
}

STAND_MORTALITY_COEFFICIENTS = (8.3385, -601.3096, 0.5507, 1.5798)

GROWTH_MODIFIER_BOUNDS = (0.75, 1.25)
HEIGHT_RESPONSE_YEARS = 5


@dataclass(frozen=True)
class ThinningEvent:
    """A thinning applied to the stand.

    Attributes:
        percent_ba_removed: Proportion of basal area removed (0-1)
        ba_pre_thin: Basal area before thinning (m2/ha)
        qmd_ratio: Post-thin QMD divided by pre-thin QMD
        thin_year: Calendar year of the thinning; negative means no thinning
    """
    percent_ba_removed: float
    ba_pre_thin: float
    qmd_ratio: float
    thin_year: int

    def __post_init__(self):
        validate_proportion(self.percent_ba_removed, 'percent_ba_removed')
        if self.ba_pre_thin < 0:
            raise InvalidParameterError('ba_pre_thin', self.ba_pre_thin, "must not be negative")
        if self.qmd_ratio < 0:
            raise InvalidParameterError('qmd_ratio', self.qmd_ratio, "must not be negative")

    def is_active(self, year: int) -> bool:
        """True when the thinning has happened and its descriptors are usable."""
        return (0 <= self.thin_year <= year
                and self.percent_ba_removed > 0.0
                and self.qmd_ratio > 0.0
                and self.ba_pre_thin > 0.0)

    def years_since(self, year: int) -> int:
        return year - self.thin_year


def _decay(y2: float, y3: float, t: int) -> float:
    return math.pow(y2, t) * math.pow(t, y3)


def _clamp(value: float, bounds=GROWTH_MODIFIER_BOUNDS) -> float:
    low, high = bounds
    return max(low, min(value, high))


def diameter_thinning_modifier(species_code: int, thinning: Optional[ThinningEvent], year: int) -> float:
    """Diameter increment multiplier after thinning."""
    if thinning is None or not thinning.is_active(year) or species_code not in DIAMETER_COEFFICIENTS:
        return 1.0
    y0, y1, y2, y3 = DIAMETER_COEFFICIENTS[species_code]
    t = thinning.years_since(year)
    with computation_guard('diameter_thinning_modifier', species=species_code, years_since_thinning=t):
        intensity = 100.0 * thinning.percent_ba_removed * thinning.qmd_ratio + 0.01
        modifier = 1.0 + math.exp(y0 + y1 / intensity) * _decay(y2, y3, t)
        return _clamp(check_finite(modifier, 'diameter_thinning_modifier'))


def height_thinning_modifier(species_code: int, thinning: Optional[ThinningEvent], year: int) -> float:
    """Height increment multiplier in the first five years after thinning."""
    if thinning is None or not thinning.is_active(year) or species_code not in HEIGHT_COEFFICIENTS:
        return 1.0
    t = thinning.years_since(year)
    if t >= HEIGHT_RESPONSE_YEARS:
        return 1.0
    y0, y1, y2, y3 = HEIGHT_COEFFICIENTS[species_code]
    with computation_guard('height_thinning_modifier', species=species_code, years_since_thinning=t):
        intensity = 100.0 * thinning.percent_ba_removed + 0.01
        modifier = 1.0 - math.exp(y0 + y1 / intensity) * _decay(y2, y3, t)
        return _clamp(check_finite(modifier, 'height_thinning_modifier'))


def crown_recession_thinning_modifier(species_code: int, thinning: Optional[ThinningEvent], year: int) -> float:
    """Crown recession multiplier after thinning, never above 1."""
    if thinning is None or not thinning.is_active(year) or species_code not in CROWN_RECESSION_COEFFICIENTS:
        return 1.0
    y0, y1, y2, y3 = CROWN_RECESSION_COEFFICIENTS[species_code]
    t = thinning.years_since(year)
    with computation_guard('crown_recession_thinning_modifier', species=species_code, years_since_thinning=t):
        intensity = 100.0 * thinning.percent_ba_removed * thinning.qmd_ratio + 0.01
        modifier = 1.0 - math.exp(y0 + y1 / intensity) * _decay(y2, y3, t)
        return min(abs(check_finite(modifier, 'crown_recession_thinning_modifier')), 1.0)


def survival_thinning_modifier(species_code: int, thinning: Optional[ThinningEvent], year: int) -> float:
    """Survival probability multiplier after thinning.

    The fitted model predicts a mortality multiplier m >= 1; survival is
    scaled by its reciprocal, capped at 1.
    """
    if thinning is None or not thinning.is_active(year) or species_code not in SURVIVAL_COEFFICIENTS:
        return 1.0
    y0, y1, y2, y3 = SURVIVAL_COEFFICIENTS[species_code]
    t = thinning.years_since(year)
    with computation_guard('survival_thinning_modifier', species=species_code, years_since_thinning=t):
        removal = 100.0 * thinning.percent_ba_removed + thinning.ba_pre_thin
        if species_code == SpeciesCode.BALSAM_FIR:
            removal *= thinning.qmd_ratio
        mortality_multiplier = 1.0 + math.exp(y0 + y1 / (removal + 0.01)) * _decay(y2, y3, t)
        check_finite(mortality_multiplier, 'survival_thinning_modifier')
        return min(1.0 / mortality_multiplier, 1.0)


def stand_mortality_thinning_modifier(thinning: Optional[ThinningEvent], year: int) -> float:
    """Stand-level multiplier on the mortality of every record (>= 1)."""
    if thinning is None or not thinning.is_active(year):
        return 1.0
    y0, y1, y2, y3 = STAND_MORTALITY_COEFFICIENTS
    t = thinning.years_since(year)
    with computation_guard('stand_mortality_thinning_modifier', years_since_thinning=t):
        removal = 100.0 * thinning.percent_ba_removed + thinning.ba_pre_thin
        modifier = 1.0 + math.exp(y0 + y1 / (removal + 0.01)) * _decay(y2, y3, t)
        return check_finite(modifier, 'stand_mortality_thinning_modifier')
