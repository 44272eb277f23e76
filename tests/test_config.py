"""
tests/test_config.py
====================
Tests for SortConfig: defaults, validation and properties files.
"""

import pytest
from pydantic import ValidationError

from phylosort import ConfigError, SortConfig
from phylosort._config import PROPERTY_KEYS


PROPERTIES = """\
# sorting run
! legacy comment style
phylosort.mode = exclusive
phylosort.minimum.group.size=2
phylosort.query.required : yes
phylosort.pattern = ([A-Za-z]+)_\\d+
phylosort.minimum.bootstrap.support = 70
phylosort.on.match.action = Copy
phylosort.unknown.setting = whatever

"""


class TestDefaults:
    def test_values(self):
        config = SortConfig()
        assert config.exclusive is False
        assert config.mode == "inclusive"
        assert config.minimum_group_size == 1
        assert config.query_required is False
        assert config.root_outgroup is True
        assert config.minimum_taxa == -1
        assert config.maximum_taxa == -1
        assert config.minimum_support == -1.0
        assert config.maximum_average_copies == -1.0
        assert config.on_match == "count"

    def test_compiled_patterns(self):
        config = SortConfig()
        assert config.taxon_regex.fullmatch("Hsap_1").group(1) == "Hsap_1"
        assert config.filename_regex.fullmatch("gene7.tre").group(1) == "gene7"

    def test_frozen(self):
        config = SortConfig()
        with pytest.raises(ValidationError):
            config.exclusive = True


class TestValidation:
    def test_group_size_at_least_one(self):
        with pytest.raises(ValidationError):
            SortConfig(minimum_group_size=0)

    @pytest.mark.parametrize("pattern", ["[a-z", r"\w+"])
    def test_bad_taxon_pattern(self, pattern):
        with pytest.raises(ValidationError):
            SortConfig(taxon_pattern=pattern)

    def test_unknown_action(self):
        with pytest.raises(ValidationError):
            SortConfig(on_match="delete")


class TestFromMapping:
    def test_conversions(self):
        config = SortConfig.from_mapping(
            {
                "phylosort.mode": "Exclusive",
                "phylosort.root.outgroup": "no",
                "phylosort.maximum.number.taxa": "40",
                "phylosort.maximum.average.number.copies": "1.5",
            }
        )
        assert config.exclusive is True
        assert config.root_outgroup is False
        assert config.maximum_taxa == 40
        assert config.maximum_average_copies == 1.5

    @pytest.mark.parametrize(
        "key, value",
        [
            ("phylosort.mode", "sometimes"),
            ("phylosort.query.required", "maybe"),
            ("phylosort.minimum.group.size", "two"),
            ("phylosort.minimum.group.size", "0"),
            ("phylosort.minimum.bootstrap.support", "high"),
            ("phylosort.pattern", "no-group"),
            ("phylosort.on.match.action", "delete"),
        ],
    )
    def test_invalid_values(self, key, value):
        with pytest.raises(ConfigError):
            SortConfig.from_mapping({key: value})

    def test_every_field_has_a_key(self):
        assert set(PROPERTY_KEYS.values()) == set(SortConfig.model_fields)


class TestPropertiesFile:
    def test_parse(self, tmp_path):
        path = tmp_path / "sort.properties"
        path.write_text(PROPERTIES)
        config = SortConfig.from_properties(path)
        assert config.exclusive is True
        assert config.minimum_group_size == 2
        assert config.query_required is True
        assert config.taxon_pattern == r"([A-Za-z]+)_\d+"
        assert config.minimum_support == 70.0
        assert config.on_match == "copy"

    def test_malformed_line(self, tmp_path):
        path = tmp_path / "bad.properties"
        path.write_text("phylosort.mode exclusive\n")
        with pytest.raises(ConfigError, match="bad.properties:1"):
            SortConfig.from_properties(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            SortConfig.from_properties(tmp_path / "absent.properties")

    def test_round_trip(self, tmp_path):
        original = SortConfig(
            exclusive=True,
            minimum_group_size=3,
            taxon_pattern=r"(\w+)\|.*",
            minimum_taxa=4,
            minimum_support=50.5,
            on_match="move",
        )
        path = tmp_path / "out.properties"
        path.write_text(original.to_properties())
        assert SortConfig.from_properties(path) == original

    def test_rendered_text(self):
        text = SortConfig(exclusive=True, query_required=True).to_properties()
        assert "phylosort.mode = exclusive\n" in text
        assert "phylosort.query.required = yes\n" in text
        assert "phylosort.root.outgroup = yes\n" in text
