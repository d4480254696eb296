import logging
import math
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)

# Defaults for the temporal decay stage
DECAY_ENABLED_DEFAULT = False
DECAY_HALF_LIFE_DAYS_DEFAULT = 30.0

# Defaults for the MMR diversity stage
MMR_ENABLED_DEFAULT = False
MMR_LAMBDA_DEFAULT = 0.7


def _coerce_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        return default
    if isinstance(value, (int, float)):
        return bool(value)
    return default


def _coerce_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _pick(options: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in options:
            return options[key]
    return None


@dataclass(frozen=True)
class DecayConfig:
    """Temporal decay configuration.

    Attributes:
        enabled: Whether scores are decayed by content age
        half_life_days: Age in days at which a score drops to 50%.
            Non-finite or non-positive values disable decay.
    """
    enabled: bool = field(default=DECAY_ENABLED_DEFAULT)
    half_life_days: float = field(default=DECAY_HALF_LIFE_DAYS_DEFAULT)

    @classmethod
    def from_mapping(cls, options: Optional[Mapping[str, Any]] = None) -> "DecayConfig":
        """Merge caller options over the defaults.

        Recognizes ``enabled`` and ``half_life_days`` (or ``halfLifeDays``).
        Unknown keys are ignored. A half-life that cannot be read as a number
        is kept as NaN so the stage degrades to "no decay".
        """
        if not options:
            return cls()

        enabled = _coerce_bool(options.get("enabled"), DECAY_ENABLED_DEFAULT)
        raw_half_life = _pick(options, "half_life_days", "halfLifeDays")
        if raw_half_life is None:
            half_life = DECAY_HALF_LIFE_DAYS_DEFAULT
        else:
            half_life = _coerce_float(raw_half_life)
            if half_life is None:
                logger.warning("Ignoring non-numeric half_life_days=%r, decay disabled", raw_half_life)
                half_life = math.nan

        return cls(enabled=enabled, half_life_days=half_life)


@dataclass(frozen=True)
class DiversityConfig:
    """MMR diversity reranking configuration.

    Attributes:
        enabled: Whether MMR reranking is applied
        lambda_param: Relevance/diversity trade-off (0-1).
            1.0 = pure relevance, 0.0 = pure diversity.
            Out-of-range values are clamped when the reranker runs.
    """
    enabled: bool = field(default=MMR_ENABLED_DEFAULT)
    lambda_param: float = field(default=MMR_LAMBDA_DEFAULT)

    @classmethod
    def from_mapping(cls, options: Optional[Mapping[str, Any]] = None) -> "DiversityConfig":
        """Merge caller options over the defaults.

        Recognizes ``enabled`` and ``lambda_param`` (or ``lambda``).
        Unknown keys are ignored. A non-numeric or NaN lambda falls back
        to the default.
        """
        if not options:
            return cls()

        enabled = _coerce_bool(options.get("enabled"), MMR_ENABLED_DEFAULT)
        raw_lambda = _pick(options, "lambda_param", "lambda")
        lambda_param = MMR_LAMBDA_DEFAULT
        if raw_lambda is not None:
            parsed = _coerce_float(raw_lambda)
            if parsed is None or math.isnan(parsed):
                logger.warning("Ignoring invalid MMR lambda=%r, using %.2f", raw_lambda, MMR_LAMBDA_DEFAULT)
            else:
                lambda_param = parsed

        return cls(enabled=enabled, lambda_param=lambda_param)


@dataclass(frozen=True)
class RefineConfig:
    """Result refinement pipeline configuration.

    Attributes:
        decay: Temporal decay stage settings
        diversity: MMR diversity stage settings
        metrics_enabled: Whether to compute diversity metrics for the
            refined results (pairwise similarity, path coverage)

    Example:
        >>> config = RefineConfig(
        ...     decay=DecayConfig(enabled=True, half_life_days=14),
        ...     diversity=DiversityConfig(enabled=True, lambda_param=0.6),
        ...     metrics_enabled=True
        ... )
    """
    decay: DecayConfig = field(default_factory=DecayConfig)
    diversity: DiversityConfig = field(default_factory=DiversityConfig)
    metrics_enabled: bool = field(default=False)

    @classmethod
    def from_mapping(cls, options: Optional[Mapping[str, Any]] = None) -> "RefineConfig":
        """Build a config from nested caller options.

        Example:
            >>> RefineConfig.from_mapping({
            ...     "temporal_decay": {"enabled": True, "halfLifeDays": 7},
            ...     "mmr": {"enabled": True, "lambda": 0.5},
            ... })
        """
        if not options:
            return cls()

        decay_options = _pick(options, "decay", "temporal_decay", "temporalDecay")
        diversity_options = _pick(options, "diversity", "mmr")
        return cls(
            decay=DecayConfig.from_mapping(decay_options if isinstance(decay_options, Mapping) else None),
            diversity=DiversityConfig.from_mapping(
                diversity_options if isinstance(diversity_options, Mapping) else None
            ),
            metrics_enabled=_coerce_bool(
                _pick(options, "metrics_enabled", "metricsEnabled"), False
            ),
        )


# Both stages off: results pass through unchanged
REFINE_CONFIG_DEFAULT = RefineConfig()

# Presets for common use cases
REFINE_CONFIG_RECENCY = RefineConfig(
    decay=DecayConfig(enabled=True, half_life_days=14.0),  # Favor the last couple of weeks
    diversity=DiversityConfig(enabled=False),
)

REFINE_CONFIG_DIVERSE = RefineConfig(
    decay=DecayConfig(enabled=True, half_life_days=DECAY_HALF_LIFE_DAYS_DEFAULT),
    diversity=DiversityConfig(enabled=True, lambda_param=0.5),  # Balanced relevance/diversity
    metrics_enabled=True,
)
