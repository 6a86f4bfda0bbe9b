"""Tests for configuration module."""

import json

import pytest


class TestSettings:
    """Tests for Settings class."""

    def test_settings_loads_from_env(self, mock_env_vars):
        """Test that settings loads from environment variables."""
        from src.config import Settings

        settings = Settings()
        assert settings.log_level == "DEBUG"
        assert settings.output_dir == "./test-output"

    def test_settings_default_values(self, mock_env_vars):
        """Test default values are set correctly."""
        from src.config import Settings

        settings = Settings()
        assert settings.config_path == "config.json"
        assert settings.log_json is False

    def test_get_settings(self, mock_env_vars, monkeypatch):
        """Test get_settings reads the current environment."""
        from src.config import get_settings

        monkeypatch.setenv("UI_DIFF_LOG_JSON", "true")
        assert get_settings().log_json is True


class TestDetectionConfig:
    """Tests for DetectionConfig and its sections."""

    def test_defaults(self):
        """Test every documented default."""
        from src.config import DetectionConfig

        config = DetectionConfig()
        assert config.comparison_settings.text_similarity_threshold == 0.95
        assert config.comparison_settings.numeric_change_threshold == 0.05
        assert config.comparison_settings.color_importance == 0.7
        assert config.matching_settings.low_confidence_threshold == 0.5
        assert config.classification_settings.interactive_keywords == [
            "button", "input", "form", "a", "select"
        ]
        assert config.classification_settings.magnitude_thresholds.position_base == 0.1
        assert config.performance_settings.max_changes == 500
        assert config.flags.enable_structural_analysis is False
        assert config.flags.enable_semantic_matching is True

    def test_camel_case_keys(self):
        """Test file keys are camelCase and partial sections keep defaults."""
        from src.config import DetectionConfig

        config = DetectionConfig.model_validate(
            {
                "comparisonSettings": {"textSimilarityThreshold": 0.8},
                "classificationSettings": {"magnitudeThresholds": {"textCritical": 0.3}},
            }
        )

        assert config.comparison_settings.text_similarity_threshold == 0.8
        assert config.comparison_settings.color_importance == 0.7
        assert config.classification_settings.magnitude_thresholds.text_critical == 0.3
        assert config.classification_settings.magnitude_thresholds.style_critical == 0.6

    def test_unknown_keys_ignored(self):
        """Test unrecognized keys do not fail validation."""
        from src.config import DetectionConfig

        config = DetectionConfig.model_validate({"futureSection": {"x": 1}})
        assert config.flags.enable_advanced_classification is False

    def test_out_of_range_ratio_rejected(self):
        """Test ratios outside [0, 1] are rejected."""
        from pydantic import ValidationError

        from src.config import DetectionConfig

        with pytest.raises(ValidationError):
            DetectionConfig.model_validate({"comparisonSettings": {"colorImportance": 1.5}})

    def test_to_dict_round_trip(self):
        """Test to_dict output validates back to an equal config."""
        from src.config import DetectionConfig

        config = DetectionConfig.model_validate(
            {"classificationSettings": {"rules": [{"propertyContains": "z-index", "classification": "cosmetic"}]}}
        )
        data = config.to_dict()

        assert "comparisonSettings" in data
        assert DetectionConfig.model_validate(data) == config

    def test_sections_are_frozen(self):
        """Test config sections cannot be mutated."""
        from pydantic import ValidationError

        from src.config import DetectionConfig

        config = DetectionConfig()
        with pytest.raises(ValidationError):
            config.flags.enable_structural_analysis = True


class TestClassificationRule:
    """Tests for custom classification rules."""

    def test_flat_form(self):
        """Test the flat rule form becomes ordered conditions."""
        from src.config import ClassificationRule

        rule = ClassificationRule.model_validate(
            {"propertyContains": "z-index", "minMagnitude": 0.4, "classification": "critical"}
        )

        assert [c.kind for c in rule.conditions] == ["propertyContains", "minMagnitude"]
        assert rule.classification == "critical"

    def test_explicit_form(self):
        """Test the explicit conditions form."""
        from src.config import ClassificationRule

        rule = ClassificationRule.model_validate(
            {
                "conditions": [{"kind": "changeType", "value": "style_other"}],
                "classification": "noise",
            }
        )

        assert rule.conditions[0].value == "style_other"

    def test_matches_all_conditions(self):
        """Test every condition must hold."""
        from src.config import ClassificationRule
        from src.visual_diff.models import ChangeRecord

        rule = ClassificationRule.model_validate(
            {"propertyContains": "z-index", "minMagnitude": 0.4, "classification": "critical"}
        )
        strong = ChangeRecord("p", "z-index", "1", "2", "style_visibility", 0.5)
        weak = ChangeRecord("p", "z-index", "1", "2", "style_visibility", 0.3)

        assert rule.matches(strong)
        assert not rule.matches(weak)

    def test_invalid_classification(self):
        """Test unknown tiers are rejected."""
        from pydantic import ValidationError

        from src.config import ClassificationRule

        with pytest.raises(ValidationError):
            ClassificationRule.model_validate({"propertyContains": "x", "classification": "severe"})


class TestLoadDetectionConfig:
    """Tests for load_detection_config."""

    def test_missing_file_uses_defaults(self, tmp_path):
        """Test a missing file yields the default config."""
        from src.config import DetectionConfig, load_detection_config

        assert load_detection_config(tmp_path / "absent.json") == DetectionConfig()

    def test_loads_file(self, tmp_path):
        """Test a config file is read and validated."""
        from src.config import load_detection_config

        path = tmp_path / "config.json"
        path.write_text(json.dumps({"flags": {"enableStructuralAnalysis": True}}))

        assert load_detection_config(path).flags.enable_structural_analysis is True

    def test_path_from_settings(self, tmp_path, monkeypatch):
        """Test the default path comes from UI_DIFF_CONFIG_PATH."""
        from src.config import load_detection_config

        path = tmp_path / "custom.json"
        path.write_text(json.dumps({"performanceSettings": {"maxChanges": 10}}))
        monkeypatch.setenv("UI_DIFF_CONFIG_PATH", str(path))

        assert load_detection_config().performance_settings.max_changes == 10

    def test_invalid_json(self, tmp_path):
        """Test unreadable JSON raises ConfigurationError."""
        from src.config import ConfigurationError, load_detection_config

        path = tmp_path / "config.json"
        path.write_text("{")

        with pytest.raises(ConfigurationError):
            load_detection_config(path)

    def test_invalid_values(self, tmp_path):
        """Test validation failures raise ConfigurationError."""
        from src.config import ConfigurationError, load_detection_config

        path = tmp_path / "config.json"
        path.write_text(json.dumps({"performanceSettings": {"maxChanges": -1}}))

        with pytest.raises(ConfigurationError, match="Invalid config"):
            load_detection_config(path)


class TestApplyOverrides:
    """Tests for apply_overrides."""

    def test_nested_override(self):
        """Test dot-notation keys reach nested sections."""
        from src.config import DetectionConfig, apply_overrides

        config = apply_overrides(
            DetectionConfig(),
            {
                "comparisonSettings.textSimilarityThreshold": "0.9",
                "classificationSettings.magnitudeThresholds.textCritical": "0.4",
                "flags.enableStructuralAnalysis": "true",
                "performanceSettings.maxChanges": "null",
            },
        )

        assert config.comparison_settings.text_similarity_threshold == 0.9
        assert config.classification_settings.magnitude_thresholds.text_critical == 0.4
        assert config.flags.enable_structural_analysis is True
        assert config.performance_settings.max_changes is None

    def test_list_override(self):
        """Test JSON values are parsed."""
        from src.config import DetectionConfig, apply_overrides

        config = apply_overrides(
            DetectionConfig(), {"classificationSettings.interactiveKeywords": '["button"]'}
        )

        assert config.classification_settings.interactive_keywords == ["button"]

    def test_original_untouched(self):
        """Test overrides return a new config."""
        from src.config import DetectionConfig, apply_overrides

        original = DetectionConfig()
        apply_overrides(original, {"flags.enableSemanticMatching": "false"})

        assert original.flags.enable_semantic_matching is True

    def test_unknown_key_ignored(self):
        """Test unknown keys are skipped."""
        from src.config import DetectionConfig, apply_overrides

        config = apply_overrides(
            DetectionConfig(), {"noSuchSection.value": "1", "flags.noSuchFlag": "true"}
        )

        assert config == DetectionConfig()

    def test_invalid_override(self):
        """Test overrides that fail validation raise ConfigurationError."""
        from src.config import ConfigurationError, DetectionConfig, apply_overrides

        with pytest.raises(ConfigurationError):
            apply_overrides(DetectionConfig(), {"comparisonSettings.colorImportance": "2"})
