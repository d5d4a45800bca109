"""Tests for matcher configuration loading."""

import json
from dataclasses import FrozenInstanceError

import pytest

from cartmatch.config import CONFIG_ENV_VAR, DEFAULT_CONFIG, config_from_dict, load_config
from cartmatch.engine import create_engine
from cartmatch.errors import ConfigError, InvalidArgument
from cartmatch.schema import MatchType, RetailerProduct


@pytest.fixture(autouse=True)
def no_env_config(monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)


def _write(tmp_path, data, name="matcher.json"):
    path = tmp_path / name
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestDefaults:
    def test_thresholds(self):
        t = DEFAULT_CONFIG.thresholds
        assert (t.fuzzy_similarity, t.brand_similarity, t.deal_similarity, t.cart_confidence) == (0.6, 0.8, 0.9, 0.6)

    def test_retailer_lookup(self):
        assert DEFAULT_CONFIG.retailer_key(1) == "walmart"
        assert DEFAULT_CONFIG.retailer_key(" Target ") == "target"
        assert DEFAULT_CONFIG.retailer_key(99) == "unknown"
        assert "simple truth" in DEFAULT_CONFIG.brands_for(3)
        assert DEFAULT_CONFIG.brands_for(99) == ()

    def test_numeric_string_retailer_resolves_through_table(self):
        assert DEFAULT_CONFIG.retailer_key("1") == "walmart"
        assert DEFAULT_CONFIG.retailer_key(" 3 ") == "kroger"
        assert DEFAULT_CONFIG.retailer_key("42") == "unknown"
        assert "great value" in DEFAULT_CONFIG.brands_for("1")

    def test_no_path_returns_defaults(self):
        assert load_config() is DEFAULT_CONFIG


class TestImmutability:
    def test_fields_frozen(self):
        with pytest.raises(FrozenInstanceError):
            DEFAULT_CONFIG.currency_symbol = "£"

    def test_tables_read_only(self):
        with pytest.raises(TypeError):
            DEFAULT_CONFIG.store_brands["aldi"] = ("simply nature",)
        with pytest.raises(TypeError):
            DEFAULT_CONFIG.weights.match_type_bonus["exact"] = 0


class TestOverrides:
    def test_json_file_merges_sections(self, tmp_path):
        path = _write(tmp_path, {
            "thresholds": {"fuzzy_similarity": 0.8},
            "retailers": {"4": "Aldi"},
            "store_brands": {"aldi": ["Simply Nature"]},
        })
        config = load_config(path)
        assert config.thresholds.fuzzy_similarity == 0.8
        assert config.thresholds.brand_similarity == 0.8
        assert config.retailer_key(4) == "aldi"
        assert config.brands_for(4) == ("simply nature",)
        # untouched sections keep their defaults
        assert config.weights == DEFAULT_CONFIG.weights

    def test_env_var(self, tmp_path, monkeypatch):
        path = _write(tmp_path, {"currency_symbol": "€"})
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
        assert load_config().currency_symbol == "€"

    def test_category_table_drives_matching(self, tmp_path):
        engine = create_engine(_write(tmp_path, {"category_variations": {"cheese": ["cheddar"]}}))
        found = engine.find_candidates("cheese slices", 1, [RetailerProduct(1, "Sharp Cheddar", 499)])
        assert [c.match_type for c in found] == [MatchType.CATEGORY]

    def test_weight_overrides(self):
        config = config_from_dict({"weights": {"deal_presence": 0, "match_type_bonus": {"exact": 1}}})
        assert config.weights.deal_presence == 0
        assert config.weights.match_type_bonus == {"exact": 1}


class TestErrors:
    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "nope.json")

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigError, match="Malformed"):
            load_config(path)

    def test_unknown_top_level_key(self):
        with pytest.raises(ConfigError, match="colour"):
            config_from_dict({"colour": "blue"})

    def test_unknown_section_key(self):
        with pytest.raises(ConfigError, match="fuzzy"):
            config_from_dict({"thresholds": {"fuzzy": 0.7}})

    def test_bad_table_shape(self):
        with pytest.raises(ConfigError):
            config_from_dict({"store_brands": {"aldi": "simply nature"}})

    def test_config_error_is_invalid_argument(self):
        assert issubclass(ConfigError, InvalidArgument)
