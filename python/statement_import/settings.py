"""
Pipeline Settings Module

Named confidence thresholds for vendor normalization and categorization.
These are empirical tuning knobs, loaded from ``config/pipeline.yaml``.
"""

import logging
from dataclasses import dataclass, fields
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path(__file__).parent.parent.parent / "config"


@dataclass
class PipelineSettings:
    """Thresholds shared by the normalizer, categorizer and review stages."""

    # Vendor normalization
    min_match_score: float = 0.3  # candidates at or below are discarded
    word_similarity_threshold: float = 0.7
    review_threshold: float = 0.8  # below this a vendor match needs review
    fallback_vendor_confidence: float = 0.3
    exact_match_bonus: float = 0.1
    learned_vendor_confidence: float = 0.9

    # Categorization
    fuzzy_word_threshold: float = 0.8  # edit-distance similarity for "same word"
    min_word_match_ratio: float = 0.5
    learned_category_confidence: float = 0.8
    rejection_penalty_user: float = 0.3
    rejection_floor_user: float = 0.1
    rejection_penalty_seed: float = 0.1
    rejection_floor_seed: float = 0.3
    rejection_match_threshold: float = 0.5

    # Shared learning limits
    reinforcement_step: float = 0.1
    max_learned_confidence: float = 0.95
    max_suggestions: int = 3

    # Review
    low_confidence_threshold: float = 0.7

    @classmethod
    def from_dict(cls, data: dict | None) -> "PipelineSettings":
        data = data or {}
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning(f"Ignoring unknown pipeline settings: {sorted(unknown)}")
        return cls(**{key: value for key, value in data.items() if key in known})


def load_settings(config_dir: Path | str | None = None) -> PipelineSettings:
    """Load settings from ``pipeline.yaml`` in the config directory.

    Args:
        config_dir: Path to configuration directory

    Returns:
        PipelineSettings, defaults when the file is absent
    """
    config_dir = Path(config_dir) if config_dir else DEFAULT_CONFIG_DIR
    settings_file = config_dir / "pipeline.yaml"

    if not settings_file.exists():
        logger.warning(f"Pipeline settings file not found: {settings_file}")
        return PipelineSettings()

    with open(settings_file) as f:
        data = yaml.safe_load(f) or {}

    return PipelineSettings.from_dict(data.get("thresholds", data))
