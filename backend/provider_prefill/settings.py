"""
Runtime configuration for the provider pre-fill service.

Values come from keyword arguments or ``PROVIDER_PREFILL_*`` environment
variables. Matcher defaults: 0.5 confidence threshold, 0.85 category boost.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

DEFAULT_CONFIDENCE_THRESHOLD = 0.5
DEFAULT_CATEGORY_BOOST = 0.85


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class MatcherSettings:
    """Scoring knobs for the field mapper."""

    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD
    category_boost: float = DEFAULT_CATEGORY_BOOST

    def __post_init__(self) -> None:
        for name in ("confidence_threshold", "category_boost"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {value}")

    @classmethod
    def from_env(cls) -> "MatcherSettings":
        return cls(
            confidence_threshold=_env_float(
                "PROVIDER_PREFILL_CONFIDENCE_THRESHOLD", DEFAULT_CONFIDENCE_THRESHOLD
            ),
            category_boost=_env_float("PROVIDER_PREFILL_CATEGORY_BOOST", DEFAULT_CATEGORY_BOOST),
        )


@dataclass(frozen=True)
class PrefillSettings:
    base_dir: Path = field(default_factory=lambda: Path(__file__).resolve().parent)
    s3_bucket: Optional[str] = None
    s3_prefix: str = "provider-prefill/"
    cache_size: int = 256
    cache_ttl_seconds: int = 3600
    matcher: MatcherSettings = field(default_factory=MatcherSettings)

    @classmethod
    def from_env(cls, base_dir: Optional[Path] = None) -> "PrefillSettings":
        return cls(
            base_dir=Path(
                base_dir
                or os.getenv("PROVIDER_PREFILL_BASE_DIR")
                or Path(__file__).resolve().parent
            ),
            s3_bucket=os.getenv("PROVIDER_PREFILL_S3_BUCKET") or None,
            s3_prefix=os.getenv("PROVIDER_PREFILL_S3_PREFIX", "provider-prefill/"),
            cache_size=_env_int("PROVIDER_PREFILL_CACHE_SIZE", 256),
            cache_ttl_seconds=_env_int("PROVIDER_PREFILL_CACHE_TTL", 3600),
            matcher=MatcherSettings.from_env(),
        )
