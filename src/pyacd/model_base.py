"""
Base class for parameterized Acadian Variant equations.

Provides common functionality for looking up species-specific coefficients
through the species reference, including the crosswalk and generic
softwood/hardwood fallback.

Usage:
    class MortalityModel(ParameterizedModel):
        COEFFICIENT_FAMILY = 'mortality'

        def survival_probability(self, dbh, bal):
            m0 = self.coefficients['m0']
            ...
"""
from abc import ABC
from typing import Any, Dict, Optional, TYPE_CHECKING

from .exceptions import ConfigurationError

if TYPE_CHECKING:
    from .species import SpeciesReference


class ParameterizedModel(ABC):
    """Base class for equations with species-specific coefficients.

    Subclasses must define:
        COEFFICIENT_FAMILY: str - Equation family registered in the species
            configuration (e.g. 'diameter_growth')

    Optional class attributes:
        REQUIRED_COEFFICIENTS: tuple - Coefficient names that must be present

    Attributes:
        species_code: The species code for this model instance
        source_code: Species code whose coefficients were actually used
        coefficients: The coefficients for the species
        raw_data: The complete raw data of the coefficient file
    """

    COEFFICIENT_FAMILY: str = None
    REQUIRED_COEFFICIENTS: tuple = ()

    def __init__(self, species_code: int, reference: Optional['SpeciesReference'] = None):
        """Initialize the model with species-specific parameters.

        Args:
            species_code: FIA species code
            reference: Species reference. Defaults to the packaged reference.
        """
        if reference is None:
            from .species import default_species_reference
            reference = default_species_reference()
        self.species_code = int(species_code)
        self.reference = reference
        self.source_code: Optional[int] = None
        self.coefficients: Dict[str, Any] = {}
        self.raw_data: Dict[str, Any] = {}
        self._load_parameters()

    def _load_parameters(self) -> None:
        """Load coefficients through the species reference fallback chain."""
        if self.COEFFICIENT_FAMILY is None:
            raise NotImplementedError(
                f"{self.__class__.__name__} must define COEFFICIENT_FAMILY class attribute"
            )

        self.raw_data = self.reference.get_raw_data(self.COEFFICIENT_FAMILY)
        self.source_code, self.coefficients = self.reference.lookup_coefficients(
            self.COEFFICIENT_FAMILY, self.species_code
        )

        missing = [name for name in self.REQUIRED_COEFFICIENTS if name not in self.coefficients]
        if missing:
            raise ConfigurationError(
                f"{self.COEFFICIENT_FAMILY} coefficients for species {self.source_code} "
                f"are missing {missing}"
            )

    @property
    def uses_fallback(self) -> bool:
        """True when the coefficients came from another species."""
        return self.source_code != self.species_code

    def __repr__(self) -> str:
        """Return string representation of the model."""
        return (f"{self.__class__.__name__}(species_code={self.species_code}, "
                f"source_code={self.source_code})")
