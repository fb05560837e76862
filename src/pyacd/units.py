"""
Unit conversion for tree list exchange.

The growth engine works in metric units (cm, m, trees/ha). Tree lists read
by the command line driver may be imperial (in, ft, trees/acre).
"""
from dataclasses import dataclass

__all__ = ['FT_TO_M', 'IN_TO_CM', 'AC_TO_HA', 'METRIC', 'IMPERIAL', 'UnitConversion', 'get_unit_conversion']

FT_TO_M = 0.3048
IN_TO_CM = 2.54
# Acres per hectare: trees/acre * AC_TO_HA = trees/ha
AC_TO_HA = 2.47105

METRIC = 0
IMPERIAL = 1


@dataclass(frozen=True)
class UnitConversion:
    """Factors from input units to metric; all 1 for metric input."""
    length: float = 1.0
    diameter: float = 1.0
    density: float = 1.0

    def length_to_metric(self, value: float) -> float:
        return value * self.length

    def length_from_metric(self, value: float) -> float:
        return value / self.length

    def diameter_to_metric(self, value: float) -> float:
        return value * self.diameter

    def diameter_from_metric(self, value: float) -> float:
        return value / self.diameter

    def density_to_metric(self, value: float) -> float:
        return value * self.density

    def density_from_metric(self, value: float) -> float:
        return value / self.density


def get_unit_conversion(units: int) -> UnitConversion:
    """Conversion for a units flag (0 metric, 1 imperial).

    Raises:
        ValueError: If the flag is not 0 or 1
    """
    if units == METRIC:
        return UnitConversion()
    if units == IMPERIAL:
        return UnitConversion(length=FT_TO_M, diameter=IN_TO_CM, density=AC_TO_HA)
    raise ValueError(f"Unknown units flag {units!r}; expected {METRIC} (metric) or {IMPERIAL} (imperial)")
