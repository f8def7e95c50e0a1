"""EngineConfig — every threshold the inference engine consults.

The configuration is one explicit, validated document rather than optional
parameters threaded through every call.  Unknown keys are rejected and
cross-field rules (band ordering, soft ≤ hard) are enforced, so an invalid
file fails at process start instead of silently degrading play.

Document layout (JSON)::

    {
      "confirm":      {...},   # when to confirm, when to reveal
      "algo":         {...},   # update rule, penalties, explore selection
      "flow":         {...},   # question limits, fail list, streak handling
      "data_quality": {...},   # coverage gate
      "popularity":   {...}    # prior seeding bonus
    }
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError, model_validator

from guesswork.domain.enums import CoverageMode
from guesswork.domain.errors import ConfigurationError

logger = logging.getLogger(__name__)


class ConfirmConfig(BaseModel):
    """Confirm insertion and reveal thresholds."""

    reveal_threshold: float = Field(
        default=0.7, ge=0.0, le=1.0,
        description="Confidence at or above which the engine names its guess",
    )
    confidence_confirm_band: tuple[float, float] = Field(
        default=(0.4, 0.6),
        description="Insert a confirm question while confidence is inside [min, max]",
    )
    q_forced_indices: list[int] = Field(
        default_factory=lambda: [6, 10],
        description="Question numbers (1-based) that are always confirm questions",
    )
    soft_confidence_min: float = Field(default=0.3, ge=0.0, le=1.0)
    hard_confidence_min: float = Field(default=0.5, ge=0.0, le=1.0)

    model_config = {"frozen": True, "extra": "forbid"}

    @model_validator(mode="after")
    def _check_ranges(self) -> "ConfirmConfig":
        lo, hi = self.confidence_confirm_band
        if not (0.0 <= lo <= 1.0 and 0.0 <= hi <= 1.0):
            raise ValueError("confidence_confirm_band values must lie in [0, 1]")
        if lo > hi:
            raise ValueError("confidence_confirm_band[0] must be <= confidence_confirm_band[1]")
        if self.soft_confidence_min > self.hard_confidence_min:
            raise ValueError("soft_confidence_min must be <= hard_confidence_min")
        if any(i < 1 for i in self.q_forced_indices):
            raise ValueError("q_forced_indices must be positive question numbers")
        return self


class AlgoConfig(BaseModel):
    """Weight update and explore selection tunables."""

    beta: float = Field(default=1.2, gt=0.0, description="Sharpness of the exponential update")
    alpha: float = Field(default=0.02, ge=0.0, le=1.0, description="Popularity prior exponent")
    derived_confidence_threshold: float = Field(
        default=0.5, ge=0.0, le=1.0,
        description="DERIVED tag confidence at or above which an item carries the tag",
    )
    reveal_penalty: float = Field(
        default=0.2, gt=0.0, le=1.0,
        description="Multiplier applied to a rejected reveal's weight",
    )
    use_bayesian_update: bool = True
    bayesian_epsilon: float = Field(default=0.02, ge=0.0, le=0.5)
    use_ig_for_explore_selection: bool = False
    explore_p_value_min: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    explore_p_value_max: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    explore_p_value_fallback_enabled: bool = True
    summary_question_strength_scale: float = Field(default=0.6, gt=0.0)
    explore_tag_strength_scale: float = Field(default=1.0, gt=0.0)
    soft_confirm_strength_scale: float = Field(default=1.0, gt=0.0)

    model_config = {"frozen": True, "extra": "forbid"}

    @model_validator(mode="after")
    def _check_p_band(self) -> "AlgoConfig":
        lo, hi = self.explore_p_value_min, self.explore_p_value_max
        if (lo is None) != (hi is None):
            raise ValueError("explore_p_value_min and explore_p_value_max must be set together")
        if lo is not None and hi is not None and lo > hi:
            raise ValueError("explore_p_value_min must be <= explore_p_value_max")
        return self

    @property
    def p_value_band(self) -> tuple[float, float] | None:
        if self.explore_p_value_min is None or self.explore_p_value_max is None:
            return None
        return (self.explore_p_value_min, self.explore_p_value_max)


class EffectiveThresholdParams(BaseModel):
    """min(max, max(min, round(total / divisor)))"""

    min: int = Field(default=5, gt=0)
    max: int = Field(default=50, gt=0)
    divisor: int = Field(default=20, gt=0)

    model_config = {"frozen": True, "extra": "forbid"}

    @model_validator(mode="after")
    def _check_order(self) -> "EffectiveThresholdParams":
        if self.max < self.min:
            raise ValueError("effective_confirm_threshold_params.max must be >= min")
        return self


class FlowConfig(BaseModel):
    """Session flow limits."""

    max_questions: int = Field(default=30, gt=0)
    max_reveal_misses: int = Field(default=3, gt=0)
    fail_list_n: int = Field(default=10, gt=0)
    effective_confirm_threshold_params: EffectiveThresholdParams = Field(
        default_factory=EffectiveThresholdParams,
    )
    consecutive_no_for_atari: int = Field(
        default=3, ge=1,
        description="Trailing NO answers after which the next explore seeks a likely hit",
    )
    title_initial_top_n: int = Field(
        default=1, ge=1,
        description="How many top candidates a hard confirm may draw its value from",
    )

    model_config = {"frozen": True, "extra": "forbid"}


class DataQualityConfig(BaseModel):
    """Coverage gate thresholds."""

    min_coverage_mode: CoverageMode = CoverageMode.AUTO
    min_coverage_ratio: Optional[float] = Field(default=0.05, ge=0.0, le=1.0)
    min_coverage_works: Optional[int] = Field(default=20, ge=0)
    max_coverage_ratio: Optional[float] = Field(default=None, ge=0.0, le=1.0)

    model_config = {"frozen": True, "extra": "forbid"}

    @model_validator(mode="after")
    def _check_mode_inputs(self) -> "DataQualityConfig":
        mode = self.min_coverage_mode
        if mode in (CoverageMode.RATIO, CoverageMode.AUTO) and self.min_coverage_ratio is None:
            raise ValueError(f"min_coverage_ratio is required in {mode.value} mode")
        if mode in (CoverageMode.WORKS, CoverageMode.AUTO) and self.min_coverage_works is None:
            raise ValueError(f"min_coverage_works is required in {mode.value} mode")
        return self


class PopularityConfig(BaseModel):
    play_bonus_on_success: float = Field(default=1.0, ge=0.0)

    model_config = {"frozen": True, "extra": "forbid"}


class EngineConfig(BaseModel):
    """Root configuration document.  Immutable once loaded."""

    confirm: ConfirmConfig = Field(default_factory=ConfirmConfig)
    algo: AlgoConfig = Field(default_factory=AlgoConfig)
    flow: FlowConfig = Field(default_factory=FlowConfig)
    data_quality: DataQualityConfig = Field(default_factory=DataQualityConfig)
    popularity: PopularityConfig = Field(default_factory=PopularityConfig)

    model_config = {"frozen": True, "extra": "forbid"}


def parse_engine_config(raw: dict) -> EngineConfig:
    """Validate a raw mapping into an EngineConfig.

    Raises:
        ConfigurationError: If any key is unknown or any value out of range.
    """
    try:
        return EngineConfig.model_validate(raw)
    except ValidationError as exc:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in exc.errors()
        )
        raise ConfigurationError(f"Engine config validation failed: {errors}") from exc


def load_engine_config(path: str | Path | None) -> EngineConfig:
    """Load and validate the engine configuration file.

    A ``None`` path yields the documented defaults.
    """
    if path is None:
        logger.info("No engine config path set, using defaults")
        return EngineConfig()

    config_path = Path(path)
    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Failed to read engine config from {config_path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Engine config in {config_path} must be a JSON object")

    config = parse_engine_config(raw)
    logger.info("Loaded engine config from %s", config_path)
    return config
