"""Load, validate, and hot-reload the Ovulink fertility configuration.

The config lives in ``fertility_config.yaml`` alongside this module.  At
startup it is loaded once and cached.  Call ``reload_fertility_config()`` to
re-read from disk after an update — no restart required.

Usage::

    from ovulink.fertility.config_loader import get_fertility_config

    config = get_fertility_config()
    window = config.ovulation.rolling_average_cycles   # 6
    count_range = config.reference_range("count")       # min=15, optimal=40
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger("ovulink.fertility.config")

# Path to the YAML file sitting next to this module
_CONFIG_PATH = Path(__file__).parent / "fertility_config.yaml"

SPERM_METRICS: tuple[str, ...] = ("count", "motility", "morphology", "volume")


# ---------------------------------------------------------------------------
# Typed config sections
# ---------------------------------------------------------------------------


@dataclass
class OvulationConfig:
    """Ovulation estimator settings."""

    rolling_average_cycles: int = 6
    luteal_phase_days: int = 14
    fertile_days_before: int = 5
    fertile_days_after: int = 1
    peak_within_days: int = 1
    high_within_days: int = 3
    medium_within_days: int = 5
    min_plausible_cycle_days: int = 10
    max_plausible_cycle_days: int = 90
    irregular_std_days: float = 7.0


@dataclass
class ReferenceRange:
    """Scoring anchors for one semen analysis metric.

    ``min`` is the WHO lower reference limit (scores 50); ``optimal`` and
    above scores 100.
    """

    metric: str
    min: float
    optimal: float
    unit: str = ""


@dataclass
class SpermHealthConfig:
    """Sperm health scorer settings."""

    reference_ranges: dict[str, ReferenceRange]
    excellent_threshold: int = 80  # ≥ this = excellent
    good_threshold: int = 60       # ≥ this = good
    fair_threshold: int = 40       # ≥ this = fair
    trend_threshold_pct: float = 5.0


@dataclass
class FertilityConfig:
    """Complete, validated fertility configuration.

    Attributes:
        version:      Config schema version string.
        ovulation:    Ovulation estimator settings.
        sperm_health: Sperm health scorer settings.
    """

    version: str
    ovulation: OvulationConfig
    sperm_health: SpermHealthConfig
    _raw: dict = field(default_factory=dict, repr=False)

    def reference_range(self, metric: str) -> ReferenceRange:
        """Return the reference range for a sperm metric.

        Raises:
            KeyError: If the metric is not configured.
        """
        return self.sperm_health.reference_ranges[metric]


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ValueError):
    """Raised when fertility_config.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Fertility config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc


def _validate_and_build(raw: dict) -> FertilityConfig:
    """Validate the raw YAML dict and construct a FertilityConfig.

    Missing optional keys fall back to the dataclass defaults; every problem
    found is collected and reported in a single ConfigValidationError.
    """
    errors: list[str] = []

    def _int(section: dict, key: str, default: int, path: str) -> int:
        value = section.get(key, default)
        try:
            return int(value)
        except (TypeError, ValueError):
            errors.append(f"{path}.{key} must be an integer, got {value!r}")
            return default

    def _float(section: dict, key: str, default: float, path: str) -> float:
        value = section.get(key, default)
        try:
            return float(value)
        except (TypeError, ValueError):
            errors.append(f"{path}.{key} must be a number, got {value!r}")
            return default

    version = str(raw.get("version", "1.0"))

    # ── Ovulation ──
    ov_raw: dict[str, Any] = raw.get("ovulation") or {}
    fw_raw = ov_raw.get("fertile_window") or {}
    bands_raw = ov_raw.get("status_bands") or {}
    plaus_raw = ov_raw.get("plausible_cycle_days") or {}
    ovulation = OvulationConfig(
        rolling_average_cycles=_int(ov_raw, "rolling_average_cycles", 6, "ovulation"),
        luteal_phase_days=_int(ov_raw, "luteal_phase_days", 14, "ovulation"),
        fertile_days_before=_int(fw_raw, "days_before", 5, "ovulation.fertile_window"),
        fertile_days_after=_int(fw_raw, "days_after", 1, "ovulation.fertile_window"),
        peak_within_days=_int(bands_raw, "peak", 1, "ovulation.status_bands"),
        high_within_days=_int(bands_raw, "high", 3, "ovulation.status_bands"),
        medium_within_days=_int(bands_raw, "medium", 5, "ovulation.status_bands"),
        min_plausible_cycle_days=_int(plaus_raw, "min", 10, "ovulation.plausible_cycle_days"),
        max_plausible_cycle_days=_int(plaus_raw, "max", 90, "ovulation.plausible_cycle_days"),
        irregular_std_days=_float(ov_raw, "irregular_std_days", 7.0, "ovulation"),
    )

    if ovulation.rolling_average_cycles < 1:
        errors.append("ovulation.rolling_average_cycles must be at least 1")
    if ovulation.luteal_phase_days < 1:
        errors.append("ovulation.luteal_phase_days must be at least 1")
    if not (
        0 <= ovulation.peak_within_days
        <= ovulation.high_within_days
        <= ovulation.medium_within_days
    ):
        errors.append("ovulation.status_bands must satisfy 0 <= peak <= high <= medium")
    if ovulation.min_plausible_cycle_days > ovulation.max_plausible_cycle_days:
        errors.append("ovulation.plausible_cycle_days.min must not exceed max")

    # ── Sperm health ──
    sh_raw: dict[str, Any] = raw.get("sperm_health") or {}
    ranges_raw = sh_raw.get("reference_ranges") or {}
    reference_ranges: dict[str, ReferenceRange] = {}
    for metric in SPERM_METRICS:
        cfg = ranges_raw.get(metric)
        if not isinstance(cfg, dict):
            errors.append(f"sperm_health.reference_ranges.{metric} must be a mapping")
            continue
        path = f"sperm_health.reference_ranges.{metric}"
        low = _float(cfg, "min", 0.0, path)
        optimal = _float(cfg, "optimal", 0.0, path)
        if not (0 < low < optimal):
            errors.append(f"{path} must satisfy 0 < min < optimal (got {low}, {optimal})")
        reference_ranges[metric] = ReferenceRange(
            metric=metric, min=low, optimal=optimal, unit=str(cfg.get("unit", "")),
        )

    cat_raw = sh_raw.get("categories") or {}
    sperm_health = SpermHealthConfig(
        reference_ranges=reference_ranges,
        excellent_threshold=_int(cat_raw, "excellent", 80, "sperm_health.categories"),
        good_threshold=_int(cat_raw, "good", 60, "sperm_health.categories"),
        fair_threshold=_int(cat_raw, "fair", 40, "sperm_health.categories"),
        trend_threshold_pct=_float(sh_raw, "trend_threshold_pct", 5.0, "sperm_health"),
    )
    if not (
        0 < sperm_health.fair_threshold
        <= sperm_health.good_threshold
        <= sperm_health.excellent_threshold
        <= 100
    ):
        errors.append("sperm_health.categories must satisfy 0 < fair <= good <= excellent <= 100")

    if errors:
        raise ConfigValidationError(
            f"fertility_config.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return FertilityConfig(
        version=version,
        ovulation=ovulation,
        sperm_health=sperm_health,
        _raw=raw,
    )


def load_fertility_config(path: Path | None = None) -> FertilityConfig:
    """Load and validate the fertility config from disk.

    Args:
        path: Override path to YAML. Uses the bundled fertility_config.yaml by default.
    """
    target = path or _CONFIG_PATH
    raw = _load_yaml(target)
    config = _validate_and_build(raw)
    logger.info("Loaded fertility config v%s from %s", config.version, target)
    return config


# ---------------------------------------------------------------------------
# Global singleton with hot-reload support
# ---------------------------------------------------------------------------

_config: FertilityConfig | None = None
_config_lock = threading.Lock()


def get_fertility_config() -> FertilityConfig:
    """Return the global FertilityConfig singleton, loading it on first call.

    Thread-safe.  Use ``reload_fertility_config()`` to refresh after YAML changes.
    """
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:  # double-checked locking
                _config = load_fertility_config()
    return _config


def reload_fertility_config(path: Path | None = None) -> FertilityConfig:
    """Reload the fertility config from disk and replace the global singleton.

    If validation fails, the old config is retained and the error is re-raised.

    Raises:
        ConfigValidationError: If the new config is invalid.
        FileNotFoundError:     If the config file is missing.
    """
    global _config
    new_config = load_fertility_config(path)  # validate before acquiring lock
    with _config_lock:
        old_version = _config.version if _config else "none"
        _config = new_config
    logger.info(
        "Reloaded fertility config: %s → %s",
        old_version,
        new_config.version,
    )
    return new_config
