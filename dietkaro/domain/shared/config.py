"""
Tunable constants of the scoring and validation engines.

Plain frozen models with production defaults. The infrastructure layer
builds them from environment variables (see ``infrastructure.config``);
tests construct them directly.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ComplianceConfig(BaseModel):
    """
    Business-tunable compliance weights.

    Only ordering and threshold behaviour is load-bearing; the exact
    penalty magnitudes are expected to be tuned per deployment.
    """

    model_config = ConfigDict(frozen=True)

    # Timing
    late_log_grace_minutes: int = Field(30, ge=0)
    late_log_penalty: int = Field(15, ge=0, le=100)

    # Evidence
    no_photo_penalty: int = Field(15, ge=0, le=100)
    option_deviation_penalty: int = Field(5, ge=0, le=100)

    # Portion accuracy (eaten meals with a calorie estimate)
    portion_tolerance_pct: float = Field(0.15, ge=0)
    portion_max_penalty: int = Field(20, ge=0, le=100)

    # Substitution curve
    substitution_base_score: int = Field(90, ge=0, le=100)
    substitution_floor: int = Field(40, ge=0, le=100)
    large_substitution_pct: float = Field(0.30, ge=0)

    skipped_score: int = Field(0, ge=0, le=100)
    dietitian_review_bonus: int = Field(5, ge=0, le=100)

    # Colour thresholds
    green_min: int = Field(80, ge=0, le=100)
    yellow_min: int = Field(50, ge=0, le=100)

    # Adherence
    trend_hysteresis: float = Field(5.0, ge=0)
    adherence_cache_ttl_seconds: int = Field(30, ge=0)
    max_history_days: int = Field(365, ge=1)

    # Fallback scores for rows that changed status but were never scored
    fallback_eaten_score: int = Field(85, ge=0, le=100)
    fallback_substituted_score: int = Field(50, ge=0, le=100)

    @model_validator(mode="after")
    def ordered_thresholds(self) -> ComplianceConfig:
        if self.yellow_min > self.green_min:
            raise ValueError("yellow_min must not exceed green_min")
        if self.substitution_floor > self.substitution_base_score:
            raise ValueError("substitution_floor must not exceed substitution_base_score")
        return self


class ValidationConfig(BaseModel):
    """Limits of the validation engine and its cache."""

    model_config = ConfigDict(frozen=True)

    max_batch_size: int = Field(50, ge=1)
    batch_concurrency: int = Field(10, ge=1)
    cache_max_entries: int = Field(10_000, ge=1)
    frequency_lookback_days: int = Field(7, ge=1)
