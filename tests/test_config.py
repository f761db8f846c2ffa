"""Tests for common/config.py and declutter settings: schema defaults and validation."""

import pytest

from common.config import Config, CONFIG_SCHEMA
from declutter.errors import DeclutterConfigError
from declutter.settings import DeclutterSettings


def _config(data):
    cfg = Config.__new__(Config)
    cfg._config = data
    return cfg


class TestConfigSchemaDefaults:
    def test_schema_has_budget(self):
        _type, default = CONFIG_SCHEMA["declutter.visible_budget"]
        assert default == 300
        assert _type is int

    def test_schema_has_score_constants(self):
        assert CONFIG_SCHEMA["declutter.hover_bonus"][1] == 5.0
        assert CONFIG_SCHEMA["declutter.click_bonus"][1] == 10.0
        assert CONFIG_SCHEMA["declutter.like_bonus"][1] == 25.0
        assert CONFIG_SCHEMA["declutter.comment_bonus"][1] == 15.0
        assert CONFIG_SCHEMA["declutter.decay_amount"][1] == 3.0

    def test_schema_types_are_valid(self):
        valid_types = {str, int, float, bool, None}
        for key, (t, _default) in CONFIG_SCHEMA.items():
            assert t in valid_types or t is None, f"Invalid type for {key}: {t}"

    def test_schema_matches_settings_defaults(self):
        defaults = DeclutterSettings()
        for key, (_type, default) in CONFIG_SCHEMA.items():
            if key.startswith("declutter."):
                assert getattr(defaults, key.split(".", 1)[1]) == default, key


class TestConfigGet:
    def test_get_returns_schema_default_when_no_config(self):
        cfg = _config({})
        assert cfg.get("declutter.grid_cell_size_px") == 50
        assert cfg.get("declutter.debounce_ms") == 100

    def test_get_caller_default_overrides_schema(self):
        cfg = _config({})
        assert cfg.get("declutter.debounce_ms", 250) == 250

    def test_get_config_value_overrides_all(self):
        cfg = _config({"declutter": {"debounce_ms": 50}})
        assert cfg.get("declutter.debounce_ms", 250) == 50

    def test_get_unknown_key_returns_none(self):
        cfg = _config({})
        assert cfg.get("nonexistent.key") is None

    def test_section_strips_prefix(self):
        cfg = _config({"declutter": {"visible_budget": 120}})
        section = cfg.section("declutter")
        assert section["visible_budget"] == 120
        assert section["collision_fallback"] == "session"
        assert "logs_dir" not in section

    def test_require_missing_raises(self):
        cfg = _config({})
        with pytest.raises(ValueError):
            cfg.require("declutter.visible_budget")


class TestConfigValidate:
    def test_validate_clean_config(self):
        cfg = _config({"declutter": {"visible_budget": 200, "viewport_padding": 1}})
        assert cfg.validate() == []

    def test_validate_type_mismatch(self):
        cfg = _config({"declutter": {"grid_cell_size_px": "fifty"}})
        warnings = cfg.validate()
        assert any("grid_cell_size_px" in w for w in warnings)

    def test_validate_rejects_bool_for_int(self):
        cfg = _config({"declutter": {"debounce_ms": True}})
        assert len(cfg.validate()) == 1


# ── DeclutterSettings ──────────────────────────────────────────

class TestDeclutterSettings:
    def test_from_config_uses_overrides(self):
        cfg = _config({"declutter": {"visible_budget": 150, "clustering_enabled": True}})
        s = DeclutterSettings.from_config(cfg)
        assert s.visible_budget == 150
        assert s.clustering_enabled is True
        assert s.debounce_ms == 100

    def test_effective_budget_capped(self):
        s = DeclutterSettings(visible_budget=300, max_visible_budget=200)
        assert s.effective_budget == 200

    @pytest.mark.parametrize("requested,expected", [(1, 5), (5, 5), (120, 120), (10_000, 300)])
    def test_clamp_budget(self, requested, expected):
        assert DeclutterSettings().clamp_budget(requested) == expected

    def test_budget_below_minimum_rejected(self):
        with pytest.raises(DeclutterConfigError) as exc:
            DeclutterSettings(visible_budget=2)
        assert exc.value.key == "declutter.visible_budget"

    def test_unknown_fallback_policy_rejected(self):
        with pytest.raises(DeclutterConfigError):
            DeclutterSettings(collision_fallback="never")

    def test_from_config_rejects_bad_value(self):
        cfg = _config({"declutter": {"grid_cell_size_px": 0}})
        with pytest.raises(DeclutterConfigError):
            DeclutterSettings.from_config(cfg)

    def test_schema_has_candidate_multiplier(self):
        assert CONFIG_SCHEMA["declutter.candidate_multiplier"] == (int, 4)

    def test_candidate_multiplier_below_one_rejected(self):
        with pytest.raises(DeclutterConfigError) as exc:
            DeclutterSettings(candidate_multiplier=0)
        assert exc.value.key == "declutter.candidate_multiplier"
