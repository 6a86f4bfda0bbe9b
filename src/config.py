"""Configuration management for UI change detection."""

import json
from pathlib import Path
from typing import Annotated, Any, Literal, Optional, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger()


class ConfigurationError(Exception):
    """Raised when a detection config file cannot be read or validated."""

    pass


class Settings(BaseSettings):
    """Process settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="UI_DIFF_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    config_path: str = Field("config.json", description="Path to the detection config file")
    log_level: str = Field("INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    log_json: bool = Field(False, description="Emit logs as JSON")
    output_dir: str = Field("./output", description="Directory for change reports")


class _Section(BaseModel):
    """Base for config sections: camelCase on the wire, snake_case in code."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


Ratio = Annotated[float, Field(ge=0.0, le=1.0)]


class CaptureSettings(_Section):
    styles_to_capture: list[str] = Field(
        default_factory=lambda: [
            "color", "background-color", "font-size", "font-family", "font-weight",
            "width", "height", "margin", "padding", "display", "visibility",
            "opacity", "position",
        ],
        description="Style properties the crawler records; 'position' enables position diffing",
    )
    ignore_attribute_patterns: list[str] = Field(
        default_factory=list,
        description="Regex or wildcard patterns; matching attribute values are skipped",
    )


class ComparisonSettings(_Section):
    text_similarity_threshold: Ratio = Field(0.95, description="Text similarity below this is a change")
    numeric_change_threshold: Ratio = Field(0.05, description="Minimum relative change for dimension styles")
    color_change_threshold: Ratio = Field(0.1, description="Minimum magnitude for color styles")
    color_importance: Ratio = Field(0.7, description="Fixed magnitude of a color style change")
    position_change_base: Ratio = Field(0.5, description="Magnitude of a non-numeric position change")
    ignore_style_changes: list[str] = Field(default_factory=list)
    style_categories: dict[str, list[str]] = Field(
        default_factory=dict,
        description="Category name -> style properties, consulted before the built-in heuristics",
    )


class MatchingSettings(_Section):
    tag_weight: float = Field(0.3, ge=0.0)
    text_weight: float = Field(0.4, ge=0.0)
    structural_weight: float = Field(0.2, ge=0.0)
    content_weight: float = Field(0.1, ge=0.0)
    fuzzy_min_confidence: Ratio = 0.6
    semantic_price_confidence: Ratio = 0.75
    enable_semantic_price: bool = True
    low_confidence_threshold: Ratio = Field(0.5, description="Pairs below this yield 'potential' records")


class MagnitudeThresholds(_Section):
    text_critical: Ratio = 0.5
    position_base: Ratio = 0.1
    color_cosmetic: Ratio = 0.3
    style_critical: Ratio = 0.6
    style_cosmetic: Ratio = 0.2


class PropertyContains(_Section):
    kind: Literal["propertyContains"] = "propertyContains"
    value: str

    def holds(self, change) -> bool:
        return self.value in change.property


class ChangeTypeEquals(_Section):
    kind: Literal["changeType"] = "changeType"
    value: str

    def holds(self, change) -> bool:
        return change.change_type == self.value


class MinMagnitude(_Section):
    kind: Literal["minMagnitude"] = "minMagnitude"
    value: float

    def holds(self, change) -> bool:
        return change.magnitude >= self.value


RuleCondition = Annotated[
    Union[PropertyContains, ChangeTypeEquals, MinMagnitude],
    Field(discriminator="kind"),
]


class ClassificationRule(_Section):
    """An ordered custom rule: every condition must hold for it to fire.

    Accepts either the explicit form ``{"conditions": [...], "classification": ...}``
    or the flat form ``{"propertyContains": "...", "changeType": "...",
    "minMagnitude": 0.4, "classification": "critical"}``.
    """

    conditions: list[RuleCondition] = Field(default_factory=list)
    classification: Literal["critical", "cosmetic", "noise", "potential"]

    @model_validator(mode="before")
    @classmethod
    def _from_flat_form(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "conditions" in data:
            return data
        conditions = [
            {"kind": key, "value": data[key]}
            for key in ("propertyContains", "changeType", "minMagnitude")
            if data.get(key) is not None
        ]
        return {"conditions": conditions, "classification": data.get("classification")}

    def matches(self, change) -> bool:
        return all(condition.holds(change) for condition in self.conditions)


class ClassificationSettings(_Section):
    interactive_keywords: list[str] = Field(
        default_factory=lambda: ["button", "input", "form", "a", "select"]
    )
    accessibility_keywords: list[str] = Field(default_factory=lambda: ["aria", "alt", "role"])
    magnitude_thresholds: MagnitudeThresholds = Field(default_factory=MagnitudeThresholds)
    rules: list[ClassificationRule] = Field(default_factory=list)


class StructuralAnalysisSettings(_Section):
    list_min_items: int = Field(3, ge=1)
    grid_min_items: int = Field(4, ge=1)
    table_min_rows: int = Field(2, ge=1)
    form_min_controls: int = Field(2, ge=1)
    max_parent_depth: int = Field(10, ge=1, description="Deepest ancestor walk when resolving context")
    pattern_confidence: dict[str, float] = Field(
        default_factory=lambda: {
            "navigation": 0.8,
            "list": 0.9,
            "form": 0.85,
            "table": 0.9,
            "css-grid": 0.7,
        }
    )


class PerformanceSettings(_Section):
    max_changes: Optional[int] = Field(500, ge=0, description="Cap on emitted changes; null disables it")


class Flags(_Section):
    enable_structural_analysis: bool = False
    enable_semantic_matching: bool = True
    enable_advanced_classification: bool = False


class DetectionConfig(_Section):
    """Thresholds, keyword lists and flags read by the detection pipeline.

    Every section is optional; absent sections and keys take their defaults.
    """

    capture_settings: CaptureSettings = Field(default_factory=CaptureSettings)
    comparison_settings: ComparisonSettings = Field(default_factory=ComparisonSettings)
    matching_settings: MatchingSettings = Field(default_factory=MatchingSettings)
    classification_settings: ClassificationSettings = Field(default_factory=ClassificationSettings)
    structural_analysis_settings: StructuralAnalysisSettings = Field(
        default_factory=StructuralAnalysisSettings
    )
    performance_settings: PerformanceSettings = Field(default_factory=PerformanceSettings)
    flags: Flags = Field(default_factory=Flags)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def get_settings() -> Settings:
    """Get process settings."""
    return Settings()


def load_detection_config(path: Optional[str | Path] = None) -> DetectionConfig:
    """Load the detection config file, falling back to defaults when it is absent.

    Args:
        path: Config file path. Defaults to ``Settings.config_path``.

    Returns:
        Validated DetectionConfig

    Raises:
        ConfigurationError: If the file is not valid JSON or fails validation
    """
    config_path = Path(path) if path is not None else Path(get_settings().config_path)

    if not config_path.exists():
        logger.warning("Config file not found, using defaults", path=str(config_path))
        return DetectionConfig()

    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot read config {config_path}: {e}") from e

    try:
        config = DetectionConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid config {config_path}: {e}") from e

    logger.info("Loaded detection config", path=str(config_path))
    return config


def _parse_override(raw: str) -> Any:
    lowered = raw.strip().lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    if lowered in ("null", "none"):
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def apply_overrides(config: DetectionConfig, overrides: dict[str, str]) -> DetectionConfig:
    """Return a copy of ``config`` with dot-notation overrides applied.

    Keys use the camelCase file names, e.g.
    ``comparisonSettings.textSimilarityThreshold`` or
    ``classificationSettings.magnitudeThresholds.textCritical``. Unknown keys
    are logged and ignored.

    Raises:
        ConfigurationError: If an override produces an invalid config
    """
    data = config.to_dict()

    for dotted, raw in overrides.items():
        parts = dotted.split(".")
        node = data
        for part in parts[:-1]:
            node = node.get(part) if isinstance(node, dict) else None
            if node is None:
                break
        if not isinstance(node, dict) or parts[-1] not in node:
            logger.warning("Ignoring unknown config override", key=dotted)
            continue
        node[parts[-1]] = _parse_override(raw)

    try:
        return DetectionConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid config override: {e}") from e
