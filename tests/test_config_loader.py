"""
Tests for configuration loading and region lookup.
"""
import json

import pytest
import yaml

from pyacd.config_loader import ConfigLoader, get_config_loader, get_region_info, load_coefficient_file
from pyacd.exceptions import ConfigurationError, FileNotFoundError as ACDFileNotFoundError, InvalidDataError
from pyacd.species import SpeciesReference


COEFFICIENT_FAMILIES = [
    'crown_width', 'largest_crown_width', 'crown_base', 'height_prediction',
    'diameter_growth', 'height_growth', 'crown_recession', 'mortality', 'ingrowth',
]


@pytest.fixture
def minimal_cfg(tmp_path):
    """A cfg directory with a two-species table and one coefficient file."""
    species_config = {
        'coefficient_files': {'mortality': 'mortality.json'},
        'generic_species': {'softwood': 9991, 'hardwood': 9990},
        'species': {
            9990: {'code': 'OH', 'common_name': 'other hardwood', 'softwood': False,
                   'sg': 0.5, 'wd': 0.5, 'shade': 3.0, 'drought': 2.0, 'waterlog': 2.0},
            9991: {'code': 'OS', 'common_name': 'other softwood', 'softwood': True,
                   'sg': 0.4, 'wd': 0.4, 'shade': 3.0, 'drought': 2.0, 'waterlog': 2.0},
        },
        'crosswalk': {12: {'code': 'BF', 'common_name': 'balsam fir', 'mapped_code': 9991}},
    }
    (tmp_path / 'acd_species_config.yaml').write_text(yaml.safe_dump(species_config))
    (tmp_path / 'mortality.json').write_text(json.dumps({
        'coefficients': {'9991': {'m0': -1.5, 'm1': 0.5, 'm2': 0.8}},
    }))
    return tmp_path


class TestConfigLoader:
    """Tests for the packaged and custom configuration directories."""

    @pytest.mark.parametrize("family", COEFFICIENT_FAMILIES)
    def test_every_family_registered(self, family):
        loader = get_config_loader()
        data = loader.load_coefficient_file(loader.coefficient_filename(family))
        assert data

    def test_shared_loader(self):
        assert get_config_loader() is get_config_loader()

    def test_coefficient_cache(self):
        loader = ConfigLoader()
        first = loader.load_coefficient_file('acd_mortality_coefficients.json')
        assert loader.load_coefficient_file('acd_mortality_coefficients.json') is first
        loader.clear_coefficient_cache()
        assert loader.load_coefficient_file('acd_mortality_coefficients.json') is not first

    def test_module_level_loader(self):
        assert 'coefficients' in load_coefficient_file('acd_diameter_growth_coefficients.json')

    def test_unknown_family(self):
        with pytest.raises(ConfigurationError):
            get_config_loader().coefficient_filename('taper')

    def test_missing_directory(self, tmp_path):
        with pytest.raises(ACDFileNotFoundError):
            ConfigLoader(tmp_path / 'nowhere')

    def test_custom_directory(self, minimal_cfg):
        reference = SpeciesReference(ConfigLoader(minimal_cfg))
        assert reference.resolve(12).mapped_code == 9991
        assert reference.get_coefficients('mortality', 12) == {'m0': -1.5, 'm1': 0.5, 'm2': 0.8}

    def test_malformed_yaml(self, tmp_path):
        (tmp_path / 'acd_species_config.yaml').write_text("species: [unclosed\n")
        with pytest.raises(InvalidDataError):
            ConfigLoader(tmp_path)

    def test_malformed_json(self, minimal_cfg):
        (minimal_cfg / 'mortality.json').write_text("{not json")
        loader = ConfigLoader(minimal_cfg)
        with pytest.raises(InvalidDataError):
            loader.load_coefficient_file('mortality.json')

    def test_missing_section(self, tmp_path):
        (tmp_path / 'acd_species_config.yaml').write_text(yaml.safe_dump({'species': {}}))
        with pytest.raises(InvalidDataError):
            ConfigLoader(tmp_path)

    def test_crosswalk_to_unmodeled_species(self, minimal_cfg):
        path = minimal_cfg / 'acd_species_config.yaml'
        config = yaml.safe_load(path.read_text())
        config['crosswalk'][12]['mapped_code'] = 97
        path.write_text(yaml.safe_dump(config))
        with pytest.raises(InvalidDataError):
            SpeciesReference(ConfigLoader(minimal_cfg))


class TestRegions:
    """Tests for region lookup."""

    @pytest.mark.parametrize("region,indicator", [
        pytest.param('ME', 0, id="maine"),
        pytest.param('nb', 1, id="new_brunswick_lowercase"),
    ])
    def test_region_indicator(self, region, indicator):
        info = get_region_info(region)
        assert info['indicator'] == indicator
        assert info['code'] == region.upper()

    def test_unsupported_region(self):
        with pytest.raises(ConfigurationError):
            get_region_info('QC')
