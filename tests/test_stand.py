"""
Unit tests for stand settings, initialization and the annual growth cycle.
"""
import numpy as np
import pandas as pd
import pytest

from pyacd.exceptions import ComputationError, ConfigurationError, InvalidDataError, InvalidParameterError
from pyacd.ingrowth import IngrowthModelType
from pyacd.stand import OUTPUT_COLUMNS, Region, SimulationState, Stand, StandConfig
from pyacd.thinning import ThinningEvent


# =============================================================================
# Parametrized Test Data
# =============================================================================

INVALID_CONFIGS = [
    pytest.param({'region': 'XX'}, id="unknown_region"),
    pytest.param({'csi': 0.0}, id="zero_csi"),
    pytest.param({'elevation': -10.0}, id="negative_elevation"),
    pytest.param({'cut_point': 1.5}, id="cut_point_above_one"),
    pytest.param({'expansion_threshold': 0.0}, id="zero_expansion_threshold"),
    pytest.param({'use_ingrowth': True, 'min_dbh': 0.0}, id="ingrowth_without_min_dbh"),
    pytest.param({'ingrowth_model': 'OLS'}, id="unknown_ingrowth_model"),
    pytest.param({'thinning': (0.3, 30.0, 1.1, 2020)}, id="thinning_not_an_event"),
]

GROWTH_YEARS = [
    pytest.param(1, id="one_year"),
    pytest.param(5, id="five_years"),
]


def grown_copy(config, trees, years, seed=1):
    stand = Stand(config, seed=seed)
    for plot_id, tree_id, species, dbh, height, tph in trees:
        stand.add_tree(plot_id, tree_id, species, dbh, height=height, tph=tph, crown_ratio=0.5)
    stand.grow(years)
    return stand


# =============================================================================
# Stand Settings
# =============================================================================

class TestStandConfig:
    """Tests for stand settings validation."""

    @pytest.mark.parametrize("kwargs", INVALID_CONFIGS)
    def test_invalid_settings(self, kwargs):
        with pytest.raises(ConfigurationError):
            StandConfig(**kwargs)

    def test_invalid_parameter_is_configuration_error(self):
        with pytest.raises(InvalidParameterError):
            StandConfig(csi=-1.0)

    @pytest.mark.parametrize("region,expected", [
        pytest.param('nb', 'NB', id="lowercase"),
        pytest.param(Region.ME, 'ME', id="enum_member"),
    ])
    def test_region_normalized(self, region, expected):
        assert StandConfig(region=region).region == expected

    def test_defaults(self):
        config = StandConfig()
        assert config.region == 'ME'
        assert config.cdef < 0
        assert config.ingrowth_model is IngrowthModelType.GNLS
        assert not (config.use_defoliation or config.use_form_risk or config.use_thinning or config.use_ingrowth)

    def test_frozen(self):
        config = StandConfig()
        with pytest.raises(AttributeError):
            config.csi = 20.0


# =============================================================================
# Lifecycle
# =============================================================================

class TestStandLifecycle:
    """Tests for the simulation state machine."""

    def test_new_stand_is_uninitialized(self, mixedwood_stand):
        assert mixedwood_stand.state is SimulationState.UNINITIALIZED
        assert not mixedwood_stand.initialized

    def test_initialize(self, mixedwood_stand):
        mixedwood_stand.initialize()
        assert mixedwood_stand.state is SimulationState.READY
        assert mixedwood_stand.initialized
        assert mixedwood_stand.stats.ba > 0
        assert mixedwood_stand.max_tree_id == 8

    def test_grow_finishes_done(self, mixedwood_stand):
        mixedwood_stand.grow(1)
        assert mixedwood_stand.state is SimulationState.DONE
        assert mixedwood_stand.year == 2025

    def test_grow_again_after_done(self, mixedwood_stand):
        mixedwood_stand.grow(2)
        mixedwood_stand.grow(3)
        assert mixedwood_stand.state is SimulationState.DONE
        assert mixedwood_stand.year == 2029

    def test_adding_a_tree_requires_reinitialization(self, mixedwood_stand):
        mixedwood_stand.initialize()
        mixedwood_stand.add_tree(1, 99, 12, 12.0, height=10.0, tph=20.0)
        assert mixedwood_stand.state is SimulationState.UNINITIALIZED

    def test_empty_stand(self, stand_config):
        stand = Stand(stand_config)
        with pytest.raises(ComputationError):
            stand.grow(1)

    def test_negative_years(self, mixedwood_stand):
        with pytest.raises(InvalidParameterError):
            mixedwood_stand.grow(-1)

    def test_zero_years_round_trips_tree_list(self, mixedwood_stand):
        before = {(t.plot_id, t.tree_id): t.tph for t in mixedwood_stand.trees}
        trees = mixedwood_stand.grow(0)
        assert len(trees) == len(before)
        for t in trees:
            assert t.lineage_id == 0
            assert t.tph == pytest.approx(before[(t.plot_id, t.tree_id)])


# =============================================================================
# Initialization
# =============================================================================

class TestStandInitialization:
    """Tests for expansion, height imputation and crown prediction."""

    def test_expansion_caps_record_density(self, mixedwood_stand):
        total = sum(t.tph for t in mixedwood_stand.trees)
        mixedwood_stand.initialize()
        assert all(t.tph <= 50.0 + 1e-9 for t in mixedwood_stand.trees)
        assert sum(t.tph for t in mixedwood_stand.trees) == pytest.approx(total)
        assert mixedwood_stand.stats.tph == pytest.approx(total)

    def test_crowns_predicted(self, mixedwood_stand):
        mixedwood_stand.initialize()
        for t in mixedwood_stand.trees:
            assert 0.0 < t.crown_ratio < 1.0
            assert t.hcb == pytest.approx((1.0 - t.crown_ratio) * t.height)

    def test_heights_imputed(self, stand_config):
        stand = Stand(stand_config, seed=3)
        for i, dbh in enumerate(range(10, 30, 2)):
            stand.add_tree(1, i + 1, 12, float(dbh), tph=40.0)
        stand.initialize()
        assert stand.stats.ccf > 1.0
        assert all(t.height > 1.37 for t in stand.trees)
        assert stand.stats.top_height > 1.37

    def test_open_stand_cannot_impute_heights(self, stand_config):
        stand = Stand(stand_config)
        stand.add_tree(1, 1, 12, 5.0, tph=1.0)
        with pytest.raises(ComputationError):
            stand.initialize()


# =============================================================================
# Growth
# =============================================================================

class TestStandGrowth:
    """Tests for the annual growth cycle."""

    def test_single_tree_one_year(self, stand_config):
        stand = Stand(stand_config, seed=5)
        stand.add_tree(1, 1, 12, 20.0, height=15.0, tph=40.0, crown_ratio=0.5)
        trees = stand.grow(1)

        assert len(trees) == 1
        tree = trees[0]
        assert tree.dbh > 20.0
        assert tree.height > 15.0
        assert tree.tph <= 40.0
        assert 0.0 <= tree.crown_ratio <= 1.0

    @pytest.mark.parametrize("years", GROWTH_YEARS)
    def test_mixedwood_growth(self, mixedwood_stand, years):
        before = {(t.plot_id, t.tree_id): (t.dbh, t.height, t.tph) for t in mixedwood_stand.trees}
        trees = mixedwood_stand.grow(years)

        assert len(trees) == len(before)
        for t in trees:
            dbh, height, tph = before[(t.plot_id, t.tree_id)]
            assert t.dbh > dbh - 0.005
            assert t.height > height - 0.005
            assert t.tph <= tph + 1e-9
            assert 0.0 <= t.crown_ratio <= 1.0

    def test_metrics_track_tree_list(self, mixedwood_stand):
        mixedwood_stand.grow(2)
        metrics = mixedwood_stand.get_metrics()
        assert metrics['year'] == 2026
        assert metrics['tph'] == pytest.approx(sum(t.tph for t in mixedwood_stand.trees))
        assert metrics['ba'] == pytest.approx(metrics['ba_sw'] + metrics['ba_hw'])
        assert metrics['n_species'] == 6

    def test_seeded_runs_are_reproducible(self, stand_config):
        trees = [(1, 1, 12, 14.0, 11.5, 120.0), (1, 2, 316, 18.0, 14.0, 90.0)]
        first = grown_copy(stand_config, trees, 3, seed=9).to_dataframe()
        second = grown_copy(stand_config, trees, 3, seed=9).to_dataframe()
        pd.testing.assert_frame_equal(first, second)

    def test_defoliation_slows_fir_growth(self, stand_config):
        trees = [(1, 1, 12, 20.0, 15.0, 40.0), (1, 2, 97, 24.0, 17.0, 30.0)]
        defoliated = StandConfig(region='ME', year=2024, csi=15.0, elevation=150.0,
                                 use_defoliation=True, cdef=60.0)
        baseline = grown_copy(stand_config, trees, 1)
        affected = grown_copy(defoliated, trees, 1)
        assert affected.trees[0].dbh < baseline.trees[0].dbh

    def test_thinning_boosts_fir_growth(self, stand_config):
        trees = [(1, 1, 12, 20.0, 15.0, 40.0)]
        thinned = StandConfig(region='ME', year=2024, csi=15.0, elevation=150.0, use_thinning=True,
                              thinning=ThinningEvent(0.3, 30.0, 1.1, 2022))
        baseline = grown_copy(stand_config, trees, 1)
        released = grown_copy(thinned, trees, 1)
        assert released.trees[0].dbh > baseline.trees[0].dbh

    def test_future_thinning_changes_nothing(self, stand_config):
        trees = [(1, 1, 12, 20.0, 15.0, 40.0)]
        scheduled = StandConfig(region='ME', year=2024, csi=15.0, elevation=150.0, use_thinning=True,
                                thinning=ThinningEvent(0.3, 30.0, 1.1, 2030))
        baseline = grown_copy(stand_config, trees, 1)
        unaffected = grown_copy(scheduled, trees, 1)
        assert unaffected.trees[0].dbh == pytest.approx(baseline.trees[0].dbh)
        assert unaffected.trees[0].tph == pytest.approx(baseline.trees[0].tph)

    @pytest.mark.slow
    def test_long_projection_stays_valid(self, mixedwood_stand):
        trees = mixedwood_stand.grow(25)
        assert mixedwood_stand.year == 2049
        for t in trees:
            assert t.tph > 0.0
            assert 0.0 <= t.crown_ratio <= 1.0
            assert np.isfinite(t.dbh) and np.isfinite(t.height)


class TestStandIngrowth:
    """Tests for ingrowth within the growth cycle."""

    @pytest.fixture
    def ingrowth_stand(self, reference):
        config = StandConfig(region='ME', year=2024, csi=15.0, elevation=150.0,
                             use_ingrowth=True, cut_point=0.0, min_dbh=3.0)
        stand = Stand(config, reference=reference, seed=13)
        stand.add_tree(1, 1, 12, 20.0, height=15.0, tph=40.0, crown_ratio=0.5)
        stand.add_tree(1, 2, 316, 25.0, height=17.0, tph=30.0, crown_ratio=0.4)
        stand.add_tree(2, 3, 12, 15.0, height=12.0, tph=45.0, crown_ratio=0.5)
        return stand

    def test_recruits_added(self, ingrowth_stand):
        trees = ingrowth_stand.grow(1)
        recruits = [t for t in trees if t.tree_id > 3]
        assert {(t.plot_id, t.species_code) for t in recruits} == {(1, 12), (1, 316), (2, 12)}
        assert len({t.tree_id for t in recruits}) == len(recruits)
        for t in recruits:
            assert t.dbh > 3.0 - 0.005
            assert t.height > 1.37
            assert 0.0 < t.crown_ratio <= 1.0

    def test_recruit_ids_keep_increasing(self, ingrowth_stand):
        ingrowth_stand.grow(2)
        ids = [t.tree_id for t in ingrowth_stand.trees]
        assert len(ids) == len(set((t.plot_id, t.tree_id) for t in ingrowth_stand.trees))
        assert max(ids) == ingrowth_stand.max_tree_id


# =============================================================================
# DataFrame Exchange
# =============================================================================

class TestDataFrameExchange:
    """Tests for building stands from and exporting them to pandas."""

    @pytest.fixture
    def frame(self):
        return pd.DataFrame({
            'plot_id': [1, 1, 2],
            'tree_id': [1, 2, 3],
            'species': [12, 316, 97],
            'dbh': [20.0, 25.0, 18.0],
            'height': [15.0, 17.0, 14.0],
            'tph': [40.0, 30.0, 45.0],
            'crown_ratio': [0.5, 0.4, 0.45],
            'form': [0, 2, 0],
            'risk': [0, 3, 0],
        }, columns=OUTPUT_COLUMNS)

    def test_round_trip(self, stand_config, frame):
        stand = Stand.from_dataframe(stand_config, frame)
        pd.testing.assert_frame_equal(stand.to_dataframe(), frame, check_dtype=False)

    def test_optional_columns(self, stand_config, frame):
        stand = Stand.from_dataframe(stand_config, frame.drop(columns=['form', 'risk']))
        assert [t.form for t in stand.trees] == [0, 0, 0]

    def test_missing_measurements(self, stand_config, frame):
        frame.loc[0, 'height'] = float('nan')
        frame.loc[0, 'crown_ratio'] = float('nan')
        stand = Stand.from_dataframe(stand_config, frame)
        assert stand.trees[0].height == 0.0
        assert stand.trees[0].crown_ratio == 0.0

    def test_missing_columns(self, stand_config, frame):
        with pytest.raises(InvalidDataError):
            Stand.from_dataframe(stand_config, frame.drop(columns=['tph']))

    def test_grown_frame_has_output_columns(self, stand_config, frame):
        stand = Stand.from_dataframe(stand_config, frame, seed=2)
        stand.grow(1)
        grown = stand.to_dataframe()
        assert list(grown.columns) == OUTPUT_COLUMNS
        assert len(grown) == 3
