"""
Hardwood stem form and risk (Castle et al. 2017).

Northern hardwood form (1-8) and risk (1-4) codes follow the NHRI
classification. Form classes 1, 3, 4 and 7 are "A" stems; all other valid
forms are "B". Risk classes 1 and 2 are low risk. Two uses:

- growth and survival modifiers for red oak, yellow birch, red maple, paper
  birch and quaking aspen, contrasting the tree's actual class with the ideal
  class;
- classification probabilities (probability of high risk, and of each form
  class) for red maple, red oak, sugar maple and yellow birch.

Reference:
    Castle, M., Weiskittel, A., Wagner, R., Ducey, M., Frank, J., Pelletier, G.
    2017. Variation in stem form and risk of four commercially important
    hardwood species in the Acadian Forest: implications for potential
    sawlog volume and tree classification systems. Can. J. For. Res. 47:
    1457-1467.
"""
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .exceptions import check_finite, computation_guard
from .species import SpeciesCode
from .tree_utils import logistic

if TYPE_CHECKING:
    from .growth_parameters import GrowthParameters
    from .tree import TreeRecord

__all__ = [
    'FORM_RISK_SPECIES',
    'CLASSIFICATION_SPECIES',
    'FormClassProbabilities',
    'decode_form_and_risk',
    'diameter_form_risk_modifier',
    'survival_form_modifier',
    'risk_probability',
    'form_probability',
]

FORM_RISK_SPECIES = frozenset({
    SpeciesCode.NORTHERN_RED_OAK,
    SpeciesCode.YELLOW_BIRCH,
    SpeciesCode.RED_MAPLE,
    SpeciesCode.PAPER_BIRCH,
    SpeciesCode.QUAKING_ASPEN,
})

CLASSIFICATION_SPECIES = frozenset({
    SpeciesCode.RED_MAPLE,
    SpeciesCode.NORTHERN_RED_OAK,
    SpeciesCode.SUGAR_MAPLE,
    SpeciesCode.YELLOW_BIRCH,
})

FORM_A_CLASSES = frozenset({1, 3, 4, 7})
LOW_RISK_CLASSES = frozenset({1, 2})

# Diameter growth: a = b0 + b1*DBH + b2*ln(DBH) + b3*BAL + b4 + b5*DBH
DIAMETER_FIXED = {'b0': -2.9487, 'b1': -0.1090, 'b2': 1.2111, 'b3': -0.0430}
DIAMETER_SPECIES = {
    SpeciesCode.QUAKING_ASPEN: (-0.1059, 0.0476),
    SpeciesCode.RED_MAPLE: (-0.6377, 0.0477),
    SpeciesCode.NORTHERN_RED_OAK: (-0.3453, 0.0511),
    SpeciesCode.YELLOW_BIRCH: (-0.2494, 0.0251),
    SpeciesCode.PAPER_BIRCH: (0.0, 0.0),
}
IDEAL_CLASS_EFFECT = 0.2176
FORM_B_EFFECT = -0.0250

# Survival: x = b0 + b1*DBH + b2*BAL + b3*sqrt(BA) + b4 + b6*DBH, form shift b5
SURVIVAL_FIXED = {'b0': 15.1991, 'b1': -0.1509, 'b2': -0.1232, 'b3': -1.4053}
SURVIVAL_SPECIES = {
    SpeciesCode.QUAKING_ASPEN: (-2.7907, 0.0791),
    SpeciesCode.RED_MAPLE: (-3.9809, 0.8343),
    SpeciesCode.NORTHERN_RED_OAK: (-0.7937, 0.8944),
    SpeciesCode.YELLOW_BIRCH: (5.2531, 0.1528),
    SpeciesCode.PAPER_BIRCH: (3.3082, 0.0),
}
SURVIVAL_FORM_EFFECT = {1: 3.3082, 2: 2.2518}

# Risk classification, red maple is the reference species
RISK_FIXED = (-0.6886, -0.0001)
RISK_SPECIES = {
    SpeciesCode.NORTHERN_RED_OAK: (-0.0184, -0.0393),
    SpeciesCode.SUGAR_MAPLE: (-0.1513, -0.0164),
    SpeciesCode.YELLOW_BIRCH: (-0.9851, 0.0196),
}

# Form classification (intercept, dbh slope) per class
FORM_FIXED = {
    'stm': (-0.9491, 0.0174),
    'lsw': (-1.1143, -0.0322),
    'mst': (-0.4110, 0.0),
    'lf': (-4.0677, 0.0322),
}
FORM_SPECIES = {
    SpeciesCode.NORTHERN_RED_OAK: {'stm': -0.2826, 'lsw': 0.7910, 'mst': -0.5009, 'lf': 0.1139},
    SpeciesCode.SUGAR_MAPLE: {'stm': 0.7541, 'lsw': -0.2325, 'mst': -1.1347, 'lf': 0.6278},
    SpeciesCode.YELLOW_BIRCH: {'stm': -0.0208, 'lsw': 0.2980, 'mst': -0.7557, 'lf': 1.0681},
}


@dataclass(frozen=True)
class FormClassProbabilities:
    """Probabilities of the four stem form classes.

    Attributes:
        stm: Single straight stem
        lsw: Extensive sweep and lean
        mst: Multiple stems
        lf: Significant fork in the first 5 m
    """
    stm: float = 0.0
    lsw: float = 0.0
    mst: float = 0.0
    lf: float = 0.0

    @property
    def total(self) -> float:
        return self.stm + self.lsw + self.mst + self.lf


def is_valid_form(form: int) -> bool:
    return 1 <= form <= 8


def is_valid_risk(risk: int) -> bool:
    return 1 <= risk <= 4


def decode_form_and_risk(form: int, risk: int):
    """Decode NHRI codes into (form_b, low_risk).

    Invalid codes decode to an "A" stem at low risk.
    """
    if is_valid_form(form) and is_valid_risk(risk):
        return form not in FORM_A_CLASSES, risk in LOW_RISK_CLASSES
    return False, True


def diameter_form_risk_modifier(tree: 'TreeRecord', params: 'GrowthParameters') -> float:
    """Diameter increment ratio of the tree's form/risk class to the ideal class."""
    if (not params.use_form_risk
            or tree.species_code not in FORM_RISK_SPECIES
            or not (is_valid_form(tree.form) and is_valid_risk(tree.risk))):
        return 1.0

    b = DIAMETER_FIXED
    b4, b5 = DIAMETER_SPECIES[tree.species_code]
    b6a = IDEAL_CLASS_EFFECT
    b6b = FORM_B_EFFECT * tree.form_b + IDEAL_CLASS_EFFECT * tree.low_risk

    with computation_guard('diameter_form_risk_modifier', dbh=tree.dbh, bal=tree.bal):
        a = (b['b0'] + b['b1'] * tree.dbh + b['b2'] * math.log(tree.dbh)
             + b['b3'] * tree.bal + b4 + b5 * tree.dbh)
        return check_finite(math.exp(a + b6b) / math.exp(a + b6a), 'diameter_form_risk_modifier')


def survival_form_modifier(tree: 'TreeRecord', params: 'GrowthParameters') -> float:
    """Survival ratio for hardwood stem form, capped at 1."""
    if (not params.use_form_risk
            or tree.species_code not in FORM_RISK_SPECIES
            or not is_valid_form(tree.form)):
        return 1.0

    b = SURVIVAL_FIXED
    b4, b6 = SURVIVAL_SPECIES[tree.species_code]
    b5 = SURVIVAL_FORM_EFFECT.get(tree.form, 0.0)

    with computation_guard('survival_form_modifier', dbh=tree.dbh, bal=tree.bal, ba=params.ba):
        x = b['b0'] + b['b1'] * tree.dbh + b['b2'] * tree.bal + b['b3'] * math.sqrt(params.ba) + b4 + b6 * tree.dbh
        baseline = logistic(x)
        modifier = logistic(x + b5) / baseline if baseline != 0.0 else 1.0
        return min(check_finite(modifier, 'survival_form_modifier'), 1.0)


def risk_probability(species_code: int, dbh: float) -> float:
    """Probability that a hardwood is high risk (0 for unsupported species)."""
    if species_code not in CLASSIFICATION_SPECIES:
        return 0.0
    b0, b1 = RISK_FIXED
    b2, b3 = RISK_SPECIES.get(species_code, (0.0, 0.0))
    return logistic(b0 + b1 * dbh + b2 + b3 * dbh)


def form_probability(species_code: int, dbh: float) -> FormClassProbabilities:
    """Probabilities of each form class, normalized to sum to 1.

    Unsupported species return all zeros.
    """
    if species_code not in CLASSIFICATION_SPECIES:
        return FormClassProbabilities()

    effects = FORM_SPECIES.get(species_code, {})
    raw = {}
    for name, (intercept, slope) in FORM_FIXED.items():
        raw[name] = logistic(intercept + slope * dbh + effects.get(name, 0.0))

    total = sum(raw.values())
    return FormClassProbabilities(**{name: value / total for name, value in raw.items()})
