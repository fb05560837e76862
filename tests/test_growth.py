"""
Tests for the per-tree growth equations and TreeRecord growth staging.
"""
import math
from dataclasses import replace

import pytest

from pyacd.crown_ratio import CrownBaseModel
from pyacd.crown_recession import CrownRecessionModel, create_crown_recession_model
from pyacd.crown_width import CrownWidthModel, calculate_crown_area
from pyacd.diameter_growth import DiameterGrowthModel, create_diameter_growth_model
from pyacd.exceptions import ComputationError, InvalidParameterError
from pyacd.height_diameter import BREAST_HEIGHT, HeightPredictionModel
from pyacd.height_growth import HeightGrowthModel, create_height_growth_model
from pyacd.thinning import ThinningEvent


# =============================================================================
# Parametrized Test Data
# =============================================================================

GROWTH_SPECIES = [
    pytest.param(12, id="balsam_fir"),
    pytest.param(97, id="red_spruce"),
    pytest.param(316, id="red_maple"),
    pytest.param(375, id="paper_birch"),
    pytest.param(261, id="hemlock_generic_fallback"),
]

DBH_SEQUENCE = [5.0, 10.0, 20.0, 35.0, 50.0]


# =============================================================================
# Equation Models
# =============================================================================

class TestDiameterGrowthModel:
    """Tests for the potential diameter increment."""

    @pytest.mark.parametrize("species", GROWTH_SPECIES)
    def test_positive_increment(self, reference, species):
        model = create_diameter_growth_model(species, reference)
        assert model.potential_increment(20.0, 0.5, 10.0, 15.0) > 0

    def test_competition_reduces_growth(self, reference):
        model = DiameterGrowthModel(12, reference)
        open_grown = model.potential_increment(20.0, 0.5, 0.0, 15.0)
        suppressed = model.potential_increment(20.0, 0.5, 30.0, 15.0)
        assert suppressed < open_grown

    def test_larger_crown_grows_faster(self, reference):
        model = DiameterGrowthModel(12, reference)
        assert model.potential_increment(20.0, 0.7, 10.0, 15.0) > model.potential_increment(20.0, 0.3, 10.0, 15.0)

    def test_zero_crown_ratio_is_a_computation_error(self, reference):
        model = DiameterGrowthModel(12, reference)
        with pytest.raises(ComputationError):
            model.potential_increment(20.0, 0.0, 10.0, 15.0)

    def test_known_value(self, reference):
        model = DiameterGrowthModel(12, reference)
        b = model.coefficients
        log_d = math.log(21.0)
        expected = math.exp(b['b0'] + b['b1'] * log_d + b['b2'] * 20.0 + b['b3'] * math.log(0.5)
                            + b['b4'] * 5.0 / log_d + b['b5'] * math.log(15.0))
        assert model.potential_increment(20.0, 0.5, 5.0, 15.0) == pytest.approx(expected)


class TestHeightGrowthModel:
    """Tests for the potential height increment."""

    @pytest.mark.parametrize("species", GROWTH_SPECIES)
    def test_positive_increment(self, reference, species):
        model = create_height_growth_model(species, reference)
        assert model.potential_increment(15.0, 0.5, 80.0, 15.0) > 0

    def test_overtopping_crowns_reduce_growth(self, reference):
        model = HeightGrowthModel(12, reference)
        assert model.potential_increment(15.0, 0.5, 200.0, 15.0) < model.potential_increment(15.0, 0.5, 0.0, 15.0)

    def test_better_site_grows_faster(self, reference):
        model = HeightGrowthModel(12, reference)
        assert model.potential_increment(15.0, 0.5, 50.0, 20.0) > model.potential_increment(15.0, 0.5, 50.0, 10.0)


class TestCrownRecessionModel:
    """Tests for the crown base increment."""

    def test_non_negative(self, reference):
        model = create_crown_recession_model(12, reference)
        assert model.potential_increment(7.5, 15.0, 0.3, 150.0) >= 0

    def test_no_crown_base_no_recession(self, reference):
        model = CrownRecessionModel(12, reference)
        assert model.potential_increment(0.0, 15.0, 0.3, 150.0) == 0.0


class TestHeightPrediction:
    """Tests for height imputation."""

    def test_above_breast_height(self, reference):
        model = HeightPredictionModel(12, reference)
        for dbh in DBH_SEQUENCE:
            assert model.predict_height(dbh, 5.0, 150.0, 0) > BREAST_HEIGHT

    def test_monotone_in_diameter(self, reference):
        model = HeightPredictionModel(12, reference)
        heights = [model.predict_height(dbh, 5.0, 150.0, 0) for dbh in DBH_SEQUENCE]
        assert heights == sorted(heights)

    def test_region_indicator(self, reference):
        model = HeightPredictionModel(12, reference)
        maine = model.predict_height(20.0, 5.0, 150.0, 0)
        new_brunswick = model.predict_height(20.0, 5.0, 150.0, 1)
        # p1 is negative for balsam fir
        assert new_brunswick < maine

    @pytest.mark.parametrize("ccf", [pytest.param(1.0, id="ccf_one"), pytest.param(0.5, id="ccf_below_one")])
    def test_open_stand_is_a_computation_error(self, reference, ccf):
        model = HeightPredictionModel(12, reference)
        with pytest.raises(ComputationError):
            model.predict_height(20.0, 0.0, ccf, 0)


class TestCrownModels:
    """Tests for crown width and crown base."""

    def test_crown_ratio_in_unit_interval(self, reference):
        model = CrownBaseModel(12, reference)
        for dbh in DBH_SEQUENCE:
            hcb, cr = model.predict_crown(dbh, 4.0 + 0.5 * dbh, 10.0, 150.0)
            assert 0.0 < cr < 1.0
            assert 0.0 < hcb < 4.0 + 0.5 * dbh

    def test_crown_area(self, reference):
        mcw = CrownWidthModel(12, reference).maximum_crown_width(20.0)
        assert calculate_crown_area(mcw, 40.0) == pytest.approx(0.00785398 * mcw * mcw * 40.0, rel=1e-5)


# =============================================================================
# TreeRecord
# =============================================================================

class TestTreeRecord:
    """Tests for record construction and attribute calculation."""

    @pytest.mark.parametrize("field,value", [
        pytest.param('dbh', 0.0, id="zero_dbh"),
        pytest.param('dbh', -1.0, id="negative_dbh"),
        pytest.param('tph', -5.0, id="negative_tph"),
        pytest.param('height', -2.0, id="negative_height"),
        pytest.param('crown_ratio', 1.5, id="crown_ratio_above_one"),
        pytest.param('dbh', math.nan, id="nan_dbh"),
        pytest.param('tph', math.nan, id="nan_tph"),
        pytest.param('height', math.nan, id="nan_height"),
        pytest.param('crown_ratio', math.nan, id="nan_crown_ratio"),
    ])
    def test_invalid_measurements(self, make_tree, field, value):
        with pytest.raises(InvalidParameterError):
            make_tree(**{field: value})

    def test_derived_attributes(self, balsam_fir):
        assert balsam_fir.ba == pytest.approx(0.00007854 * 400.0 * 40.0)
        assert balsam_fir.hcb == pytest.approx(7.5)
        assert balsam_fir.softwood is True
        assert balsam_fir.lineage_id == 0

    def test_impute_height_only_when_missing(self, make_tree):
        measured = make_tree(height=15.0)
        missing = make_tree(height=0.0, crown_ratio=0.0)
        assert measured.impute_height(150.0, 0) is False
        assert measured.height == 15.0
        assert missing.impute_height(150.0, 0) is True
        assert missing.height > BREAST_HEIGHT

    def test_measured_crown_ratio_is_kept(self, make_tree):
        tree = make_tree(height=15.0, crown_ratio=0.4)
        tree.predict_crown_base(150.0)
        assert tree.crown_ratio == 0.4
        assert tree.hcb == pytest.approx(9.0)

    def test_missing_crown_ratio_is_predicted(self, make_tree):
        tree = make_tree(height=15.0, crown_ratio=0.0)
        tree.predict_crown_base(150.0)
        assert 0.0 < tree.crown_ratio < 1.0
        assert tree.hcb == pytest.approx((1.0 - tree.crown_ratio) * 15.0)

    def test_to_dict(self, balsam_fir):
        assert balsam_fir.to_dict() == {
            'plot_id': 1, 'tree_id': 1, 'species': 12, 'dbh': 20.0, 'height': 15.0,
            'tph': 40.0, 'crown_ratio': 0.5, 'form': 0, 'risk': 0,
        }

    def test_copy_is_independent(self, balsam_fir):
        clone = balsam_fir.copy()
        clone.dbh = 25.0
        assert balsam_fir.dbh == 20.0
        assert clone.species is balsam_fir.species


class TestTreeGrowthCycle:
    """Tests for staging and committing one year of growth on a record."""

    def test_one_year_of_growth(self, balsam_fir, params):
        ddbh = balsam_fir.grow_diameter(params)
        dht = balsam_fir.grow_height(params)
        dhcb = balsam_fir.recede_crown(params)
        survival = balsam_fir.compute_survival(params)
        balsam_fir.dtph = balsam_fir.tph * (1.0 - survival)

        assert ddbh > 0 and dht > 0 and dhcb >= 0
        assert 0.0 < survival <= 1.0

        balsam_fir.apply_growth_mortality()
        assert balsam_fir.dbh == pytest.approx(20.0 + ddbh)
        assert balsam_fir.height == pytest.approx(15.0 + dht)
        assert balsam_fir.tph <= 40.0
        assert 0.0 <= balsam_fir.crown_ratio <= 1.0
        assert balsam_fir.ba == pytest.approx(0.00007854 * balsam_fir.dbh ** 2 * balsam_fir.tph)

    def test_staged_values_reset_after_apply(self, balsam_fir, params):
        balsam_fir.grow_diameter(params)
        balsam_fir.grow_height(params)
        balsam_fir.apply_growth_mortality()
        assert balsam_fir.ddbh == 0.0
        assert balsam_fir.dht == 0.0
        assert balsam_fir.dtph == 0.0

    def test_crown_base_never_exceeds_height(self, balsam_fir):
        balsam_fir.dhcb = 50.0
        balsam_fir.apply_growth_mortality()
        assert balsam_fir.hcb == balsam_fir.height
        assert balsam_fir.crown_ratio == 0.0

    def test_mortality_never_goes_negative(self, balsam_fir):
        balsam_fir.dtph = 100.0
        balsam_fir.apply_growth_mortality()
        assert balsam_fir.tph == 0.0

    def test_future_thinning_has_no_effect(self, make_tree, params):
        """A thinning scheduled after the current year leaves growth unchanged."""
        thinning = ThinningEvent(percent_ba_removed=0.3, ba_pre_thin=30.0, qmd_ratio=1.1, thin_year=2030)
        thinned = replace(params, use_thinning=True, thinning=thinning)

        plain_tree = make_tree()
        thinned_tree = make_tree()
        assert thinned_tree.grow_diameter(thinned) == pytest.approx(plain_tree.grow_diameter(params))
        assert thinned_tree.grow_height(thinned) == pytest.approx(plain_tree.grow_height(params))
        assert thinned_tree.recede_crown(thinned) == pytest.approx(plain_tree.recede_crown(params))
        assert thinned_tree.compute_survival(thinned) == pytest.approx(plain_tree.compute_survival(params))

    def test_past_thinning_boosts_diameter_growth(self, make_tree, params):
        thinning = ThinningEvent(percent_ba_removed=0.3, ba_pre_thin=30.0, qmd_ratio=1.1, thin_year=2022)
        thinned = replace(params, use_thinning=True, thinning=thinning)
        assert make_tree().grow_diameter(thinned) > make_tree().grow_diameter(params)

    def test_thinning_switch_off_ignores_event(self, make_tree, params):
        thinning = ThinningEvent(percent_ba_removed=0.3, ba_pre_thin=30.0, qmd_ratio=1.1, thin_year=2022)
        switched_off = replace(params, thinning=thinning)
        assert make_tree().grow_diameter(switched_off) == pytest.approx(make_tree().grow_diameter(params))
