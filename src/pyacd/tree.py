"""
Tree record class for the Acadian Variant.

A TreeRecord represents `tph` trees per hectare sharing the same
measurements. The stand owns a list of records; competition attributes
(BAL, CCFL) are filled in by the stand aggregator, and growth increments are
staged on the record until apply_growth_mortality() commits them.
"""
import copy
from typing import Optional, TYPE_CHECKING

from .crown_ratio import CrownBaseModel
from .crown_recession import CrownRecessionModel
from .crown_width import CrownWidthModel, LargestCrownWidthModel, calculate_crown_area
from .diameter_growth import DiameterGrowthModel
from .exceptions import InvalidParameterError
from .form_risk import decode_form_and_risk
from .height_diameter import HeightPredictionModel
from .height_growth import HeightGrowthModel
from .mortality import SurvivalModel
from .species import SpeciesID, SpeciesReference, default_species_reference
from .tree_utils import calculate_record_basal_area

if TYPE_CHECKING:
    from .growth_parameters import GrowthParameters

__all__ = ['TreeRecord']


class TreeRecord:
    """A weighted tree record.

    Attributes:
        plot_id: Sub-plot identifier
        tree_id: Tree identifier, unique within the stand before expansion
        lineage_id: 0 for an original record, > 0 for a split created by expansion
        species_code: FIA species code as supplied
        species: Resolved species identity
        dbh: Diameter at breast height (cm)
        height: Total height (m); 0 means not measured
        tph: Trees per hectare represented by the record
        crown_ratio: Live crown ratio (0-1); 0 means not measured
        form: NHRI form class (1-8, 0 if not recorded)
        risk: NHRI risk class (1-4, 0 if not recorded)
    """

    def __init__(self, plot_id: int, tree_id: int, species_code: int, dbh: float,
                 height: float = 0.0, tph: float = 1.0, crown_ratio: float = 0.0,
                 form: int = 0, risk: int = 0, lineage_id: int = 0,
                 reference: Optional[SpeciesReference] = None):
        """Create a tree record.

        Raises:
            SpeciesLookupError: If the species code cannot be resolved
            InvalidParameterError: If a measurement is out of range
        """
        self.reference = reference or default_species_reference()
        self.species: SpeciesID = self.reference.resolve(species_code)

        if not dbh > 0:
            raise InvalidParameterError('dbh', dbh, "must be positive")
        if not tph >= 0:
            raise InvalidParameterError('tph', tph, "must not be negative")
        if not height >= 0:
            raise InvalidParameterError('height', height, "must not be negative")
        if not 0.0 <= crown_ratio <= 1.0:
            raise InvalidParameterError('crown_ratio', crown_ratio, "must be between 0 and 1")

        self.plot_id = int(plot_id)
        self.tree_id = int(tree_id)
        self.lineage_id = int(lineage_id)
        self.species_code = int(species_code)
        self.dbh = float(dbh)
        self.height = float(height)
        self.tph = float(tph)
        self.crown_ratio = float(crown_ratio)
        self.form = int(form)
        self.risk = int(risk)

        # Competition, filled in by the stand aggregator
        self.bal = 0.0
        self.bal_sw = 0.0
        self.bal_hw = 0.0
        self.ccfl = 0.0
        self.ccfl_sw = 0.0
        self.ccfl_hw = 0.0

        self.hcb = (1.0 - self.crown_ratio) * self.height \
            if self.crown_ratio > 0.0 and self.height > 0.0 else 0.0

        self.form_b, self.low_risk = decode_form_and_risk(self.form, self.risk)
        self.reset()
        self.compute_attributes()

    @property
    def softwood(self) -> bool:
        return self.species.softwood

    @property
    def shade_tolerance(self) -> float:
        return self.species.attributes.shade

    @property
    def specific_gravity(self) -> float:
        return self.species.attributes.sg

    def _model(self, model_class):
        return self.reference.get_model(model_class, self.species_code)

    def reset(self) -> None:
        """Clear staged growth to neutral values."""
        self.ddbh = 0.0
        self.dht = 0.0
        self.dhcb = 0.0
        self.dtph = 0.0
        self.p_survival = 1.0

    def compute_attributes(self) -> None:
        """Recompute basal area and crown attributes from dbh and tph."""
        self.ba = calculate_record_basal_area(self.dbh, self.tph)
        self.mcw = self._model(CrownWidthModel).maximum_crown_width(self.dbh)
        self.lcw = self._model(LargestCrownWidthModel).largest_crown_width(self.dbh, self.mcw)
        self.mca = calculate_crown_area(self.mcw, self.tph)

    def impute_height(self, ccf: float, region_indicator: int) -> bool:
        """Predict height when it was not measured.

        Returns:
            True if a height was imputed
        """
        if self.height > 0.0:
            return False
        self.height = self._model(HeightPredictionModel).predict_height(
            self.dbh, self.bal, ccf, region_indicator)
        return True

    def predict_crown_base(self, ccf: float) -> None:
        """Fill in height to crown base and crown ratio.

        A measured crown ratio is kept; otherwise both are predicted.
        """
        if self.crown_ratio > 0.0:
            self.hcb = (1.0 - self.crown_ratio) * self.height
        else:
            self.hcb, self.crown_ratio = self._model(CrownBaseModel).predict_crown(
                self.dbh, self.height, self.bal, ccf)

    def grow_diameter(self, params: 'GrowthParameters') -> float:
        self.ddbh = self._model(DiameterGrowthModel).increment(self, params)
        return self.ddbh

    def grow_height(self, params: 'GrowthParameters') -> float:
        self.dht = self._model(HeightGrowthModel).increment(self, params)
        return self.dht

    def recede_crown(self, params: 'GrowthParameters') -> float:
        """Stage crown recession; needs the staged height increment."""
        self.dhcb = self._model(CrownRecessionModel).increment(self, params, self.dht)
        return self.dhcb

    def compute_survival(self, params: 'GrowthParameters') -> float:
        self.p_survival = self._model(SurvivalModel).survival(self, params)
        return self.p_survival

    def apply_growth_mortality(self) -> None:
        """Commit staged increments and mortality, then reset them."""
        self.dbh += self.ddbh
        self.height += self.dht
        self.hcb += self.dhcb
        if self.hcb > self.height:
            self.hcb = self.height
        self.crown_ratio = (self.height - self.hcb) / self.height
        self.tph -= min(self.dtph, self.tph)
        self.compute_attributes()
        self.reset()

    def copy(self) -> 'TreeRecord':
        """Shallow copy sharing the species reference."""
        return copy.copy(self)

    def to_dict(self) -> dict:
        """Output columns of the record."""
        return {
            'plot_id': self.plot_id,
            'tree_id': self.tree_id,
            'species': self.species_code,
            'dbh': self.dbh,
            'height': self.height,
            'tph': self.tph,
            'crown_ratio': self.crown_ratio,
            'form': self.form,
            'risk': self.risk,
        }

    def __repr__(self) -> str:
        return (f"TreeRecord(plot_id={self.plot_id}, tree_id={self.tree_id}, "
                f"lineage_id={self.lineage_id}, species={self.species_code}, "
                f"dbh={self.dbh:.2f}, height={self.height:.2f}, tph={self.tph:.2f})")
