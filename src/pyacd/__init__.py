"""
PyACD: Python implementation of the Acadian Variant individual-tree growth model.

Projects weighted tree lists of the Acadian forest (Maine and New Brunswick)
forward on an annual step: diameter and height growth, crown recession,
mortality and ingrowth, with optional thinning, spruce budworm defoliation
and hardwood form/risk modifiers.

Basic usage:
    from pyacd import Stand, StandConfig

    config = StandConfig(region='ME', year=2024, csi=15.0, elevation=150.0)
    stand = Stand(config, seed=42)
    stand.add_tree(plot_id=1, tree_id=1, species_code=12, dbh=20.0, tph=100.0)
    trees = stand.grow(10)
"""

__version__ = "0.1.0"
__author__ = "PyACD Development Team"

from .exceptions import (
    ACDError,
    ComputationError,
    ConfigurationError,
    DataError,
    InternalConsistencyError,
    InvalidDataError,
    InvalidParameterError,
    SpeciesLookupError,
)
from .config_loader import ConfigLoader, get_config_loader
from .species import SpeciesCode, SpeciesID, SpeciesReference, default_species_reference
from .tree import TreeRecord
from .thinning import ThinningEvent
from .ingrowth import IngrowthModel, IngrowthModelType
from .rebalance import DensityRebalancer
from .stand_metrics import StandMetricsCalculator, StandStatistics, accumulate_in_larger
from .stand import Region, SimulationState, Stand, StandConfig
from .form_risk import FormClassProbabilities, form_probability, risk_probability
from .logging_config import get_logger, setup_logging

__all__ = [
    'ACDError',
    'ComputationError',
    'ConfigurationError',
    'DataError',
    'InternalConsistencyError',
    'InvalidDataError',
    'InvalidParameterError',
    'SpeciesLookupError',
    'ConfigLoader',
    'get_config_loader',
    'SpeciesCode',
    'SpeciesID',
    'SpeciesReference',
    'default_species_reference',
    'TreeRecord',
    'ThinningEvent',
    'IngrowthModel',
    'IngrowthModelType',
    'DensityRebalancer',
    'StandMetricsCalculator',
    'StandStatistics',
    'accumulate_in_larger',
    'Region',
    'SimulationState',
    'Stand',
    'StandConfig',
    'FormClassProbabilities',
    'form_probability',
    'risk_probability',
    'get_logger',
    'setup_logging',
]
