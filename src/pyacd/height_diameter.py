"""
Height imputation for tree records without a measured height.

Total height is predicted from diameter, basal area in larger trees and the
stand crown competition factor, with a region indicator (Maine = 0,
New Brunswick = 1) shifting the asymptote:

    HT = 1.37 + (p0 + p1*REGION) * (1 - exp(-p2*DBH - p4*(BAL + 1)))^p3 * ln(CCF)^p5

The equation needs CCF > 1. Sparser stands raise ComputationError because
ln(CCF) is not positive.
"""
import math

from .exceptions import check_finite, computation_guard
from .model_base import ParameterizedModel

# Breast height, m
BREAST_HEIGHT = 1.37


class HeightPredictionModel(ParameterizedModel):
    """Height-diameter model used to fill in missing heights.

    Attributes:
        species_code: FIA species code
        coefficients: p0 through p5
    """

    COEFFICIENT_FAMILY = 'height_prediction'
    REQUIRED_COEFFICIENTS = ('p0', 'p1', 'p2', 'p3', 'p4', 'p5')

    def predict_height(self, dbh: float, bal: float, ccf: float, region_indicator: int) -> float:
        """Predict total height.

        Args:
            dbh: Diameter at breast height (cm)
            bal: Basal area in larger trees (m2/ha)
            ccf: Stand crown competition factor
            region_indicator: 0 for Maine, 1 for New Brunswick

        Returns:
            Total height (m)
        """
        p = self.coefficients
        with computation_guard('height_prediction', dbh=dbh, bal=bal, ccf=ccf):
            log_ccf = math.log(ccf)
            if log_ccf <= 0.0:
                raise ValueError("ln(ccf) must be positive")
            size = 1.0 - math.exp(-p['p2'] * dbh - p['p4'] * (bal + 1.0))
            height = BREAST_HEIGHT + (p['p0'] + p['p1'] * region_indicator) * \
                math.pow(size, p['p3']) * math.pow(log_ccf, p['p5'])
            return check_finite(height, 'height_prediction')
