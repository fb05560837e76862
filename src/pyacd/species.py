"""
Species reference for the Acadian Variant.

The species reference resolves FIA species codes to the modeled species whose
attributes (softwood flag, specific gravity, tolerances) they use, and serves
per-equation-family coefficients with a fixed fallback chain:

    1. coefficients estimated for the species code itself
    2. coefficients of the modeled species the code is crosswalked to
    3. the generic "other softwood" (9991) or "other hardwood" (9990) set

The reference is read-only once built. Stands and tree records receive it as
a constructor argument; ``default_species_reference()`` builds one from the
packaged cfg/ directory when none is supplied.

Usage:
    from pyacd.species import default_species_reference

    reference = default_species_reference()
    sid = reference.resolve(105)            # jack pine -> red pine attributes
    coefs = reference.get_coefficients('diameter_growth', 105)
"""
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple, Type, TypeVar

from .config_loader import ConfigLoader, get_config_loader
from .exceptions import InvalidDataError, SpeciesLookupError

M = TypeVar('M')


class SpeciesCode(int, Enum):
    """FIA codes of the species modeled directly by the Acadian Variant.

    Inherits from int so members can be passed wherever a species code is
    expected.
    """

    BALSAM_FIR = 12
    WHITE_SPRUCE = 94
    BLACK_SPRUCE = 95
    RED_SPRUCE = 97
    RED_PINE = 125
    WHITE_PINE = 129
    NORTHERN_WHITE_CEDAR = 241
    EASTERN_HEMLOCK = 261
    RED_MAPLE = 316
    SUGAR_MAPLE = 318
    YELLOW_BIRCH = 371
    PAPER_BIRCH = 375
    GRAY_BIRCH = 379
    AMERICAN_BEECH = 531
    QUAKING_ASPEN = 746
    NORTHERN_RED_OAK = 833
    OTHER_HARDWOOD = 9990
    OTHER_SOFTWOOD = 9991


@dataclass(frozen=True)
class SpeciesAttributes:
    """Wood and tolerance attributes of a modeled species."""
    sg: float
    wd: float
    shade: float
    drought: float
    waterlog: float


@dataclass(frozen=True)
class SpeciesID:
    """Resolved identity of a species code.

    Attributes:
        fia_code: The code as supplied by the caller
        mapped_code: Modeled species whose attributes apply (equals
            fia_code for modeled species)
        index: Position of the modeled species in the species table
        alpha_code: Two-letter code of the supplied species
        common_name: Common name of the supplied species
        softwood: True for conifers
        attributes: Attribute set of the modeled species
    """
    fia_code: int
    mapped_code: int
    index: int
    alpha_code: str
    common_name: str
    softwood: bool
    attributes: SpeciesAttributes

    @property
    def crosswalked(self) -> bool:
        return self.fia_code != self.mapped_code


class SpeciesReference:
    """Immutable species table plus coefficient lookup.

    Attributes:
        generic_softwood: Code of the generic softwood species (9991)
        generic_hardwood: Code of the generic hardwood species (9990)
    """

    def __init__(self, loader: Optional[ConfigLoader] = None):
        """Build the reference from a configuration loader.

        Args:
            loader: Configuration loader. Defaults to the shared loader for the
                packaged cfg/ directory.
        """
        self._loader = loader or get_config_loader()
        config = self._loader.species_config

        species = {}
        for index, (code, entry) in enumerate(sorted(config['species'].items())):
            code = int(code)
            try:
                attributes = SpeciesAttributes(
                    sg=float(entry['sg']),
                    wd=float(entry['wd']),
                    shade=float(entry['shade']),
                    drought=float(entry['drought']),
                    waterlog=float(entry['waterlog']),
                )
                species[code] = SpeciesID(
                    fia_code=code,
                    mapped_code=code,
                    index=index,
                    alpha_code=str(entry['code']),
                    common_name=str(entry['common_name']),
                    softwood=bool(entry['softwood']),
                    attributes=attributes,
                )
            except (KeyError, TypeError, ValueError) as e:
                raise InvalidDataError(f"species table entry {code}", str(e)) from e

        crosswalk = {}
        for code, entry in (config.get('crosswalk') or {}).items():
            code = int(code)
            mapped = int(entry['mapped_code'])
            if mapped not in species:
                raise InvalidDataError(f"crosswalk entry {code}",
                                       f"maps to unmodeled species {mapped}")
            crosswalk[code] = (mapped, str(entry.get('code', '')), str(entry.get('common_name', '')))

        generic = config['generic_species']
        self.generic_softwood = int(generic['softwood'])
        self.generic_hardwood = int(generic['hardwood'])
        for code in (self.generic_softwood, self.generic_hardwood):
            if code not in species:
                raise InvalidDataError("generic species", f"{code} is not in the species table")

        self._species: Mapping[int, SpeciesID] = MappingProxyType(species)
        self._crosswalk: Mapping[int, Tuple[int, str, str]] = MappingProxyType(crosswalk)
        self._model_cache: Dict[Tuple[type, int], Any] = {}

    @property
    def species_codes(self) -> Tuple[int, ...]:
        """Codes of all modeled species."""
        return tuple(self._species)

    def is_known(self, species_code: int) -> bool:
        code = int(species_code)
        return code in self._species or code in self._crosswalk

    def resolve(self, species_code: int) -> SpeciesID:
        """Resolve a species code directly or through the crosswalk.

        Raises:
            SpeciesLookupError: If the code is neither modeled nor crosswalked
        """
        try:
            code = int(species_code)
        except (TypeError, ValueError):
            raise SpeciesLookupError(species_code, "species codes are integers") from None

        if code in self._species:
            return self._species[code]
        if code in self._crosswalk:
            mapped, alpha, name = self._crosswalk[code]
            target = self._species[mapped]
            return SpeciesID(
                fia_code=code,
                mapped_code=mapped,
                index=target.index,
                alpha_code=alpha or target.alpha_code,
                common_name=name or target.common_name,
                softwood=target.softwood,
                attributes=target.attributes,
            )
        raise SpeciesLookupError(code)

    def generic_code(self, softwood: bool) -> int:
        return self.generic_softwood if softwood else self.generic_hardwood

    def get_raw_data(self, family: str) -> Dict[str, Any]:
        """Full contents of the coefficient file registered for a family."""
        return self._loader.load_coefficient_file(self._loader.coefficient_filename(family))

    def lookup_coefficients(self, family: str, species_code: int) -> Tuple[int, Dict[str, Any]]:
        """Find the coefficients of an equation family for a species.

        Args:
            family: Equation family name (e.g. 'diameter_growth')
            species_code: FIA species code

        Returns:
            Tuple of (code whose coefficients were used, copy of the coefficients)

        Raises:
            SpeciesLookupError: If the species cannot be resolved or the family
                has no entry for the generic fallback species
        """
        sid = self.resolve(species_code)
        table = self.get_raw_data(family).get('coefficients', {})

        for candidate in (sid.fia_code, sid.mapped_code, self.generic_code(sid.softwood)):
            entry = table.get(str(candidate))
            if entry is not None:
                return candidate, dict(entry)

        raise SpeciesLookupError(
            species_code, f"no '{family}' coefficients and no generic fallback entry"
        )

    def get_coefficients(self, family: str, species_code: int) -> Dict[str, Any]:
        """Coefficients of an equation family for a species (see lookup_coefficients)."""
        return self.lookup_coefficients(family, species_code)[1]

    def get_model(self, model_class: Type[M], species_code: int) -> M:
        """Return a cached model instance for a species.

        Models are built once per (class, species) and shared; they hold only
        read-only coefficients.
        """
        key = (model_class, int(species_code))
        model = self._model_cache.get(key)
        if model is None:
            model = model_class(int(species_code), reference=self)
            self._model_cache[key] = model
        return model

    def __repr__(self) -> str:
        return (f"SpeciesReference(species={len(self._species)}, "
                f"crosswalk={len(self._crosswalk)})")


_default_reference: Optional[SpeciesReference] = None


def default_species_reference() -> SpeciesReference:
    """Species reference built from the packaged configuration."""
    global _default_reference
    if _default_reference is None:
        _default_reference = SpeciesReference()
    return _default_reference
