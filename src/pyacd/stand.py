"""
Stand class managing a tree list and the annual growth cycle.

Each simulated year:

1. ingrowth (if enabled): predict recruits, allocate them to plots and
   species, and re-initialize the stand;
2. diameter growth, height growth, crown recession and survival for every
   record, all from the previous year's stand aggregates;
3. apply increments and mortality;
4. recompute stand aggregates.

The tree list is expanded before the first year so that no record carries
more than `expansion_threshold` trees/ha, and contracted after the last.
"""
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Union

import numpy as np

from .config_loader import get_region_info
from .exceptions import ComputationError, ConfigurationError, InvalidDataError, InvalidParameterError, \
    validate_positive, validate_proportion
from .growth_parameters import GrowthParameters
from .ingrowth import IngrowthModel, IngrowthModelType
from .logging_config import get_logger, log_growth_summary
from .mortality import mortality_density, stand_mortality_multiplier
from .rebalance import DEFAULT_EXPANSION_THRESHOLD, DensityRebalancer
from .species import SpeciesReference, default_species_reference
from .stand_metrics import StandMetricsCalculator, StandStatistics
from .thinning import ThinningEvent
from .tree import TreeRecord

__all__ = ['Region', 'SimulationState', 'StandConfig', 'Stand', 'OUTPUT_COLUMNS']

OUTPUT_COLUMNS = ['plot_id', 'tree_id', 'species', 'dbh', 'height', 'tph', 'crown_ratio', 'form', 'risk']
REQUIRED_INPUT_COLUMNS = ('plot_id', 'tree_id', 'species', 'dbh', 'height', 'tph', 'crown_ratio')


class Region(str, Enum):
    """Regions of the Acadian Variant."""
    ME = 'ME'
    NB = 'NB'


class SimulationState(Enum):
    UNINITIALIZED = 'uninitialized'
    READY = 'ready'
    GROWING = 'growing'
    DONE = 'done'


@dataclass(frozen=True)
class StandConfig:
    """Stand-level settings, validated on construction.

    Attributes:
        region: 'ME' (Maine) or 'NB' (New Brunswick)
        year: Calendar year of the tree list
        csi: Climate site index (m)
        elevation: Elevation (m)
        cdef: Cumulative spruce budworm defoliation (percent); negative if unknown
        use_defoliation: Apply spruce budworm modifiers
        use_form_risk: Apply hardwood form and risk modifiers
        use_thinning: Apply thinning modifiers
        use_ingrowth: Add annual ingrowth
        cut_point: Ingrowth probability threshold; 0 uses expected ingrowth
        min_dbh: Diameter of recruits (cm)
        ingrowth_model: Ingrowth coefficient set
        thinning: Thinning event, if any
        expansion_threshold: Maximum trees/ha per record during growth
    """
    region: Union[str, Region] = Region.ME.value
    year: int = 0
    csi: float = 15.0
    elevation: float = 0.0
    cdef: float = -1.0
    use_defoliation: bool = False
    use_form_risk: bool = False
    use_thinning: bool = False
    use_ingrowth: bool = False
    cut_point: float = 0.5
    min_dbh: float = 0.0
    ingrowth_model: Union[str, IngrowthModelType] = IngrowthModelType.GNLS
    thinning: Optional[ThinningEvent] = None
    expansion_threshold: float = DEFAULT_EXPANSION_THRESHOLD

    def __post_init__(self):
        region = self.region.value if isinstance(self.region, Region) else self.region
        object.__setattr__(self, 'region', get_region_info(region)['code'])

        validate_positive(self.csi, 'csi')
        if not self.elevation >= 0:
            raise InvalidParameterError('elevation', self.elevation, "must not be negative")
        validate_proportion(self.cut_point, 'cut_point')
        validate_positive(self.expansion_threshold, 'expansion_threshold')
        if self.use_ingrowth and not self.min_dbh > 0:
            raise InvalidParameterError('min_dbh', self.min_dbh, "must be positive when ingrowth is enabled")
        if self.thinning is not None and not isinstance(self.thinning, ThinningEvent):
            raise ConfigurationError(f"thinning must be a ThinningEvent, got {type(self.thinning).__name__}")

        try:
            model = IngrowthModelType(self.ingrowth_model)
        except ValueError:
            raise InvalidParameterError('ingrowth_model', self.ingrowth_model,
                                        f"expected one of {[m.value for m in IngrowthModelType]}") from None
        object.__setattr__(self, 'ingrowth_model', model)


class Stand:
    """A stand of weighted tree records grown on an annual step.

    Attributes:
        config: Stand settings
        year: Current simulation year
        trees: Tree records owned by the stand
        stats: Aggregates of the current tree list
        state: Position in the simulation lifecycle
        max_tree_id: Largest tree id in the list, used to number recruits
    """

    def __init__(self, config: StandConfig, trees: Optional[Iterable[TreeRecord]] = None,
                 reference: Optional[SpeciesReference] = None,
                 rng: Optional[np.random.Generator] = None, seed: Optional[int] = None):
        """Create a stand.

        Args:
            config: Stand settings
            trees: Initial tree records
            reference: Species reference. Defaults to the packaged reference.
            rng: Random generator for the expansion jitter
            seed: Seed for a new generator when `rng` is not given
        """
        self.config = config
        self.reference = reference or default_species_reference()
        self.rng = rng if rng is not None else np.random.default_rng(seed)
        self.year = config.year
        self.trees: List[TreeRecord] = []
        self.stats = StandStatistics()
        self.state = SimulationState.UNINITIALIZED
        self.max_tree_id = 0

        self.logger = get_logger(__name__)
        self._rebalancer = DensityRebalancer(config.expansion_threshold, rng=self.rng)
        self._calculator = StandMetricsCalculator(config.csi, config.elevation)
        self._ingrowth = IngrowthModel(self.reference, config.ingrowth_model) if config.use_ingrowth else None

        for tree in trees or ():
            self.add_record(tree)

        self.logger.debug(f"Created {config.region} stand for year {self.year} with {len(self.trees)} records")

    @property
    def initialized(self) -> bool:
        """True while the stand aggregates match the tree list."""
        return self.state in (SimulationState.READY, SimulationState.GROWING)

    def add_record(self, tree: TreeRecord) -> TreeRecord:
        self.trees.append(tree)
        self.state = SimulationState.UNINITIALIZED
        return tree

    def add_tree(self, plot_id: int, tree_id: int, species_code: int, dbh: float,
                 height: float = 0.0, tph: float = 1.0, crown_ratio: float = 0.0,
                 form: int = 0, risk: int = 0) -> TreeRecord:
        """Create a tree record and add it to the stand.

        A height or crown ratio of 0 is imputed at initialization.

        Raises:
            SpeciesLookupError: If the species code cannot be resolved; the
                stand is left unchanged
        """
        tree = TreeRecord(plot_id, tree_id, species_code, dbh, height, tph, crown_ratio,
                          form, risk, reference=self.reference)
        return self.add_record(tree)

    def initialize(self) -> None:
        """Expand the tree list and compute aggregates, heights and crowns.

        Raises:
            ComputationError: If the tree list is empty or an equation fails
        """
        if not self._rebalancer.expand(self.trees):
            raise ComputationError('initialize', "stand has no tree records")

        self.max_tree_id = max(t.tree_id for t in self.trees)

        calc = self._calculator
        stats = StandStatistics()
        stats.n_species = calc.count_species(self.trees)
        stats.ccf = calc.calculate_ccf(self.trees)
        calc.compute_ba_tph_bal(self.trees, stats)
        calc.compute_ccfl(self.trees)

        region_indicator = get_region_info(self.config.region)['indicator']
        imputed = sum(t.impute_height(stats.ccf, region_indicator) for t in self.trees)

        stats.top_height = calc.calculate_top_height(self.trees)

        for t in self.trees:
            if t.hcb == 0.0:
                t.predict_crown_base(stats.ccf)

        calc.compute_tree_statistics(self.trees, stats)
        calc.compute_sdi_rd(stats)

        self.stats = stats
        self.state = SimulationState.READY
        if imputed:
            self.logger.debug(f"Imputed {imputed} heights")

    def _recompute(self) -> None:
        self.stats = self._calculator.calculate_all_metrics(self.trees)

    def growth_parameters(self) -> GrowthParameters:
        """Stand context for the current growth year."""
        cfg = self.config
        stats = self.stats
        return GrowthParameters(
            region=cfg.region,
            year=self.year,
            csi=cfg.csi,
            ba=stats.ba,
            ccf=stats.ccf,
            top_height=stats.top_height,
            average_dbh_sw=stats.average_dbh_10_sw,
            average_height_sw=stats.average_height_sw,
            cdef=cfg.cdef,
            thinning=cfg.thinning,
            use_defoliation=cfg.use_defoliation,
            use_form_risk=cfg.use_form_risk,
            use_thinning=cfg.use_thinning,
        )

    def _add_ingrowth(self) -> float:
        cfg = self.config
        stats = self.stats
        iph = self._ingrowth.predict_iph(stats.ba, stats.ba_hw, stats.tph, cfg.csi,
                                         cfg.min_dbh, stats.qmd, cfg.cut_point)
        if iph > 0.0:
            recruits = self._ingrowth.allocate(self.trees, iph, stats.ba, cfg.csi,
                                               cfg.min_dbh, self.max_tree_id + 1)
            for tree in recruits:
                self.add_record(tree)
            self.initialize()
        return iph

    def _apply_mortality(self, params: GrowthParameters) -> None:
        multiplier = stand_mortality_multiplier(params, self.stats.balsam_fir_ba)
        for t in self.trees:
            survival = t.compute_survival(params)
            t.dtph = mortality_density(t.tph, survival, multiplier)

    def grow(self, n_years: int = 1) -> List[TreeRecord]:
        """Grow the stand for `n_years` annual steps.

        Returns:
            The contracted tree list

        Raises:
            ComputationError: If the stand is empty or an equation fails;
                the stand should then be discarded
        """
        if n_years < 0:
            raise InvalidParameterError('n_years', n_years, "must not be negative")

        if not self.initialized:
            self.initialize()
        self.state = SimulationState.GROWING

        for _ in range(n_years):
            if self._ingrowth is not None:
                self._add_ingrowth()
                self.state = SimulationState.GROWING

            params = self.growth_parameters()
            for t in self.trees:
                t.grow_diameter(params)
            for t in self.trees:
                t.grow_height(params)
            for t in self.trees:
                t.recede_crown(params)
            self._apply_mortality(params)

            for t in self.trees:
                t.apply_growth_mortality()

            self._recompute()
            self.year += 1
            log_growth_summary(self.logger, self.year, self.get_metrics())

        self._rebalancer.contract(self.trees)
        self.state = SimulationState.DONE
        return list(self.trees)

    def get_metrics(self) -> Dict[str, Any]:
        """Principal stand statistics of the last aggregation pass."""
        stats = self.stats
        return {
            'year': self.year,
            'records': len(self.trees),
            'tph': stats.tph,
            'ba': stats.ba,
            'ba_sw': stats.ba_sw,
            'ba_hw': stats.ba_hw,
            'qmd': stats.qmd,
            'top_height': stats.top_height,
            'ccf': stats.ccf,
            'sdi': stats.sdi,
            'sdi_max': stats.sdi_max,
            'rd': stats.rd,
            'n_species': stats.n_species,
        }

    def to_dataframe(self):
        """Current tree list as a pandas DataFrame with OUTPUT_COLUMNS."""
        import pandas as pd
        return pd.DataFrame([t.to_dict() for t in self.trees], columns=OUTPUT_COLUMNS)

    @classmethod
    def from_dataframe(cls, config: StandConfig, df, reference: Optional[SpeciesReference] = None,
                       rng: Optional[np.random.Generator] = None, seed: Optional[int] = None) -> 'Stand':
        """Build a stand from a DataFrame with OUTPUT_COLUMNS.

        `form` and `risk` are optional and default to 0.

        Raises:
            InvalidDataError: If required columns are missing
        """
        missing = [c for c in REQUIRED_INPUT_COLUMNS if c not in df.columns]
        if missing:
            raise InvalidDataError("tree list", f"missing columns {missing}")

        stand = cls(config, reference=reference, rng=rng, seed=seed)
        for row in df.itertuples(index=False):
            stand.add_tree(
                int(row.plot_id), int(row.tree_id), int(row.species), float(row.dbh),
                height=_value_or_zero(row.height),
                tph=float(row.tph),
                crown_ratio=_value_or_zero(row.crown_ratio),
                form=int(_value_or_zero(getattr(row, 'form', 0))),
                risk=int(_value_or_zero(getattr(row, 'risk', 0))),
            )
        return stand

    def __repr__(self) -> str:
        return (f"Stand(region={self.config.region!r}, year={self.year}, "
                f"records={len(self.trees)}, state={self.state.value})")


def _value_or_zero(value) -> float:
    """Missing measurements (NaN) are treated as not measured."""
    value = float(value)
    return 0.0 if math.isnan(value) else value
