"""Tunable pipeline parameters with optional JSON overrides."""
from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

logger = logging.getLogger(__name__)


@dataclass
class PipelineConfig:
    # Frame preprocessing (edge map)
    blur_kernel: int = 7
    blur_sigma: float = 1.0
    canny_low: int = 250
    canny_high: int = 150
    dilate_iterations: int = 1

    # Quadrilateral locator
    min_contour_area: float = 1000.0
    poly_epsilon_ratio: float = 0.02
    marker_size: int = 30
    marker_thickness: int = 2
    mark_corners: bool = True

    # Perspective normalizer
    min_warp_size: int = 9

    # Cell segmenter
    threshold_block_size: int = 9
    threshold_offset: int = 11
    hough_rho: float = 1.0
    hough_theta_degrees: float = 1.0
    hough_votes: int = 150
    hough_min_line_length: int = 250
    hough_max_line_gap: int = 50
    line_erase_thickness: int = 13
    occupancy_threshold: int = 50
    patch_size: int = 60

    # Solver
    min_givens: int = 0  # 0 solves whatever was read
    max_backtracks: Optional[int] = None

    # Overlay
    text_offset: Tuple[int, int] = (-26, -6)
    font_scale: float = 0.9
    font_thickness: int = 2


ConfigPath = Union[str, Path]


def load_config(path: Optional[ConfigPath] = None) -> PipelineConfig:
    """
    Load a config, overlaying values from a JSON file on the defaults.

    A missing or malformed file yields the defaults; unknown keys are skipped.
    """
    config = PipelineConfig()
    if path is None:
        return config

    config_path = Path(path)
    if not config_path.exists():
        logger.warning("Config file %s not found, using defaults", config_path)
        return config

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            overrides: Dict[str, Any] = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Failed to load config %s: %s, using defaults", config_path, e)
        return config

    if not isinstance(overrides, dict):
        logger.warning("Config %s is not a JSON object, using defaults", config_path)
        return config

    known = {f.name for f in fields(PipelineConfig)}
    for key, value in overrides.items():
        if key not in known:
            logger.warning("Ignoring unknown config key %r", key)
            continue
        if key == "text_offset":
            value = tuple(value)
        setattr(config, key, value)
    logger.debug("Config loaded: %s", config)
    return config


def save_config(config: PipelineConfig, path: ConfigPath) -> None:
    with open(Path(path), "w", encoding="utf-8") as f:
        json.dump(asdict(config), f, indent=2)
    logger.debug("Config saved to %s", path)
