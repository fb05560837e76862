"""
Height to crown base (HCB) imputation for the Acadian Variant.

Used when a tree record arrives without a crown ratio. A fixed-effect logistic
ratio of HCB to total height with a species random effect:

    HCB = HT / (1 + exp((a0 + sp) + a1*DBH + a2*HT + a3*DBH/HT + a4*ln(CCF + 1) + a5*(BAL + 1)))
    CR  = (HT - HCB) / HT
"""
import math
from typing import Any, Dict, Tuple

from .exceptions import ConfigurationError, check_finite, computation_guard
from .model_base import ParameterizedModel


class CrownBaseModel(ParameterizedModel):
    """Height to crown base prediction.

    Attributes:
        fixed: Fixed-effect coefficients a0 through a5 shared by all species
        coefficients: Species random effect 'sp'
    """

    COEFFICIENT_FAMILY = 'crown_base'
    REQUIRED_COEFFICIENTS = ('sp',)

    def _load_parameters(self) -> None:
        super()._load_parameters()
        fixed = self.raw_data.get('fixed')
        if not fixed or any(f'a{i}' not in fixed for i in range(6)):
            raise ConfigurationError("crown_base coefficient file needs fixed effects a0-a5")
        self.fixed: Dict[str, Any] = dict(fixed)

    def predict_hcb(self, dbh: float, height: float, bal: float, ccf: float) -> float:
        """Predict height to crown base (m)."""
        a = self.fixed
        sp = self.coefficients['sp']
        with computation_guard('crown_base', dbh=dbh, height=height, bal=bal, ccf=ccf):
            x = ((a['a0'] + sp) + a['a1'] * dbh + a['a2'] * height + a['a3'] * (dbh / height)
                 + a['a4'] * math.log(ccf + 1.0) + a['a5'] * (bal + 1.0))
            return check_finite(height / (1.0 + math.exp(x)), 'crown_base')

    def predict_crown(self, dbh: float, height: float, bal: float, ccf: float) -> Tuple[float, float]:
        """Predict (hcb, crown_ratio)."""
        hcb = self.predict_hcb(dbh, height, bal, ccf)
        return hcb, (height - hcb) / height
