"""
Shared pytest fixtures for PyACD tests.

This module provides commonly used fixtures for building tree records and
stands, reducing code duplication across test files.
"""
import logging

import pytest

from pyacd.growth_parameters import GrowthParameters
from pyacd.logging_config import ROOT_LOGGER_NAME
from pyacd.species import default_species_reference
from pyacd.stand import Stand, StandConfig
from pyacd.tree import TreeRecord


# =============================================================================
# Species Reference
# =============================================================================

@pytest.fixture(scope="session")
def reference():
    """Species reference built from the packaged configuration."""
    return default_species_reference()


# =============================================================================
# Tree Fixtures
# =============================================================================

@pytest.fixture
def make_tree(reference):
    """Factory for tree records with sensible defaults.

    Defaults to a balsam fir of 20 cm DBH, 15 m tall, 50% crown, 40 trees/ha.
    """
    def _make(species_code=12, dbh=20.0, height=15.0, tph=40.0, crown_ratio=0.5,
              plot_id=1, tree_id=1, **kwargs):
        return TreeRecord(plot_id, tree_id, species_code, dbh, height=height, tph=tph,
                          crown_ratio=crown_ratio, reference=reference, **kwargs)
    return _make


@pytest.fixture
def balsam_fir(make_tree):
    """Single balsam fir record: 20 cm DBH, 15 m height, CR 0.5, 40 trees/ha."""
    return make_tree()


@pytest.fixture
def params():
    """Growth parameters for a mid-density stand with every modifier off."""
    return GrowthParameters(
        region='ME', year=2024, csi=15.0, ba=25.0, ccf=150.0,
        top_height=16.0, average_dbh_sw=18.0, average_height_sw=14.0,
    )


# =============================================================================
# Stand Fixtures
# =============================================================================

# (plot, tree, species, dbh, height, tph) of a small mixedwood tree list
MIXEDWOOD_TREES = [
    (1, 1, 12, 14.0, 11.5, 120.0),
    (1, 2, 12, 22.0, 15.0, 40.0),
    (1, 3, 97, 26.0, 17.5, 30.0),
    (1, 4, 316, 18.0, 14.0, 60.0),
    (2, 5, 375, 20.0, 15.5, 45.0),
    (2, 6, 12, 10.0, 8.0, 150.0),
    (2, 7, 371, 30.0, 18.0, 20.0),
    (2, 8, 129, 35.0, 21.0, 15.0),
]


@pytest.fixture
def stand_config():
    """Maine stand settings with all optional modifiers off."""
    return StandConfig(region='ME', year=2024, csi=15.0, elevation=150.0)


@pytest.fixture
def mixedwood_stand(stand_config, reference):
    """Two-plot mixedwood stand with measured heights and no crown ratios."""
    stand = Stand(stand_config, reference=reference, seed=42)
    for plot_id, tree_id, species, dbh, height, tph in MIXEDWOOD_TREES:
        stand.add_tree(plot_id, tree_id, species, dbh, height=height, tph=tph)
    return stand


# =============================================================================
# Logging
# =============================================================================

@pytest.fixture
def reset_package_logger():
    """Restore the package logger after a test installs handlers on it."""
    yield
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
