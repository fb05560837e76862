"""
Stand-level inputs to the per-tree growth and mortality equations.

A GrowthParameters snapshot is taken from the stand after each aggregation
pass, so every tree in a given year sees the same previous-year aggregates.
"""
from dataclasses import dataclass
from typing import Optional

from .thinning import ThinningEvent


@dataclass(frozen=True)
class GrowthParameters:
    """Stand context for one annual growth step.

    Attributes:
        region: Region code ('ME' or 'NB')
        year: Current simulation year
        csi: Climate site index (m)
        ba: Stand basal area (m2/ha)
        ccf: Crown competition factor
        top_height: Mean height of the 100 tallest trees per ha (m)
        average_dbh_sw: Mean softwood diameter of trees >= 10 cm (cm)
        average_height_sw: Mean softwood height (m)
        cdef: Cumulative defoliation (percent); negative when not supplied
        thinning: Thinning event, if any
        use_defoliation: Apply spruce budworm defoliation modifiers
        use_form_risk: Apply hardwood form and risk modifiers
        use_thinning: Apply thinning modifiers
    """
    region: str = 'ME'
    year: int = 0
    csi: float = 15.0
    ba: float = 0.0
    ccf: float = 0.0
    top_height: float = 0.0
    average_dbh_sw: float = 0.0
    average_height_sw: float = 0.0
    cdef: float = -1.0
    thinning: Optional[ThinningEvent] = None
    use_defoliation: bool = False
    use_form_risk: bool = False
    use_thinning: bool = False

    @property
    def defoliation_supplied(self) -> bool:
        return self.cdef >= 0.0

    @property
    def active_thinning(self) -> Optional[ThinningEvent]:
        """Thinning event when thinning modifiers are switched on."""
        return self.thinning if self.use_thinning else None
