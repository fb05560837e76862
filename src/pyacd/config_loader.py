"""
Configuration loader for PyACD.
Provides unified access to the YAML and JSON files shipped in ``pyacd/cfg``.

Supports:
- YAML (.yaml, .yml) - species table, species crosswalk
- JSON (.json) - equation coefficient files (diameter growth, mortality, etc.)

Features:
- Coefficient file caching
- Region metadata for the Acadian Variant (Maine and New Brunswick)
"""
import json
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .exceptions import ConfigurationError, FileNotFoundError as ACDFileNotFoundError, InvalidDataError

# Regions supported by the Acadian Variant. The indicator enters the height
# imputation equation.
SUPPORTED_REGIONS = {
    'ME': {'name': 'Maine', 'indicator': 0},
    'NB': {'name': 'New Brunswick', 'indicator': 1},
}

DEFAULT_REGION = 'ME'
SPECIES_CONFIG_FILE = 'acd_species_config.yaml'


class ConfigLoader:
    """Loads and manages PyACD configuration from the cfg/ directory.

    Attributes:
        cfg_dir: Path to the configuration directory
        species_config: Loaded species table (species, crosswalk, generic codes)
    """

    def __init__(self, cfg_dir: Optional[Path] = None):
        """Initialize the configuration loader.

        Args:
            cfg_dir: Path to the configuration directory. Defaults to the
                cfg/ directory inside the package.
        """
        if cfg_dir is None:
            cfg_dir = Path(__file__).parent / 'cfg'
        self.cfg_dir = Path(cfg_dir)

        self._coefficient_cache: Dict[str, Dict[str, Any]] = {}

        self.species_config = self._load_config_file(self.cfg_dir / SPECIES_CONFIG_FILE)
        self._validate_species_config()

    def _load_config_file(self, file_path: Path) -> Dict[str, Any]:
        """Load configuration from a YAML or JSON file.

        Args:
            file_path: Path to the configuration file

        Returns:
            Dictionary containing configuration data

        Raises:
            FileNotFoundError: If file doesn't exist
            InvalidDataError: If the file is empty or cannot be parsed
            ConfigurationError: If the file format is not supported
        """
        if not file_path.exists():
            raise ACDFileNotFoundError(str(file_path), "configuration file")

        suffix = file_path.suffix.lower()

        try:
            if suffix in ['.yaml', '.yml']:
                with open(file_path, 'r', encoding='utf-8') as f:
                    data = yaml.safe_load(f)
            elif suffix == '.json':
                with open(file_path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
            else:
                raise ConfigurationError(f"Unsupported configuration file format: {suffix}. "
                                         f"Supported formats: .yaml, .yml, .json")
        except yaml.YAMLError as e:
            raise InvalidDataError("YAML configuration", f"parsing error in {file_path.name}: {e}") from e
        except json.JSONDecodeError as e:
            raise InvalidDataError("JSON configuration", f"parsing error in {file_path.name}: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Failed to load configuration from {file_path}: {e}") from e

        if not isinstance(data, dict):
            raise InvalidDataError(f"configuration file {file_path.name}",
                                   "expected a mapping at the top level")
        return data

    def _validate_species_config(self) -> None:
        for key in ('species', 'crosswalk', 'generic_species'):
            if key not in self.species_config:
                raise InvalidDataError(SPECIES_CONFIG_FILE, f"missing '{key}' section")

    def load_coefficient_file(self, filename: str) -> Dict[str, Any]:
        """Load a JSON coefficient file with caching.

        Args:
            filename: Name of the coefficient file (e.g. 'acd_mortality_coefficients.json')

        Returns:
            Dictionary containing coefficient data
        """
        if filename not in self._coefficient_cache:
            self._coefficient_cache[filename] = self._load_config_file(self.cfg_dir / filename)
        return self._coefficient_cache[filename]

    def coefficient_filename(self, family: str) -> str:
        """Name of the coefficient file registered for an equation family."""
        files = self.species_config.get('coefficient_files', {})
        if family not in files:
            raise ConfigurationError(f"No coefficient file registered for '{family}'")
        return files[family]

    def clear_coefficient_cache(self) -> None:
        """Clear the coefficient file cache.

        Useful for testing or when configuration files may have changed.
        """
        self._coefficient_cache.clear()


def get_region_info(region: str) -> Dict[str, Any]:
    """Get name and model indicator for a region code.

    Raises:
        ConfigurationError: If the region is not supported
    """
    code = str(region).upper()
    if code not in SUPPORTED_REGIONS:
        raise ConfigurationError(
            f"Unsupported region '{region}'. "
            f"Supported regions: {list(SUPPORTED_REGIONS.keys())}"
        )
    info = SUPPORTED_REGIONS[code].copy()
    info['code'] = code
    return info


# Global configuration loader instance
_config_loader: Optional[ConfigLoader] = None


def get_config_loader() -> ConfigLoader:
    """Get the shared configuration loader for the packaged cfg/ directory."""
    global _config_loader
    if _config_loader is None:
        _config_loader = ConfigLoader()
    return _config_loader


def load_coefficient_file(filename: str) -> Dict[str, Any]:
    """Convenience function to load a JSON coefficient file with caching.

    Args:
        filename: Name of the coefficient file

    Returns:
        Dictionary containing coefficient data
    """
    return get_config_loader().load_coefficient_file(filename)
