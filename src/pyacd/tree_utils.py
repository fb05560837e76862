"""
Tree utility functions for PyACD.

Provides common calculations used across multiple modules to avoid duplication
and ensure consistency. All values are metric: diameters in cm, basal area in
m2/ha, density in trees/ha.
"""
import math

__all__ = [
    'BASAL_AREA_FACTOR',
    'SDI_REFERENCE_DIAMETER',
    'SDI_EXPONENT',
    'calculate_record_basal_area',
    'calculate_record_sdi',
    'logistic',
]


# Basal area constant: pi / 40000 (converts DBH in cm to BA in m2)
# Formula: BA = pi * (DBH/200)^2 = 0.00007854 * DBH^2
BASAL_AREA_FACTOR = 0.00007854

# Reineke stand density index, 25.4 cm (10 inch) reference tree
SDI_REFERENCE_DIAMETER = 25.4
SDI_EXPONENT = 1.6


def calculate_record_basal_area(dbh: float, tph: float) -> float:
    """Basal area per hectare represented by a tree record.

    Args:
        dbh: Diameter at breast height in cm
        tph: Trees per hectare represented by the record

    Returns:
        Basal area in m2/ha
    """
    return dbh * dbh * BASAL_AREA_FACTOR * tph


def calculate_record_sdi(dbh: float, tph: float) -> float:
    """Reineke SDI contribution of a tree record: (DBH/25.4)^1.6 * TPH."""
    return math.pow(dbh / SDI_REFERENCE_DIAMETER, SDI_EXPONENT) * tph


def logistic(x: float) -> float:
    """Logistic function 1 / (1 + exp(-x)), stable for large |x|."""
    if x >= 0:
        return 1.0 / (1.0 + math.exp(-x))
    z = math.exp(x)
    return z / (1.0 + z)
