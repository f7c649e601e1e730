from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping

from .geometry import CLOSURE_TOLERANCE
from .projection import DEFAULT_SOURCE_CRS, DEFAULT_TARGET_CRS
from .tessellate import SEGMENTS_PER_ARC

ENV_PREFIX = "DXFGEO_"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    """Deployment configuration.

    The source CRS describes the drawing's planar coordinates and is never
    derived from DXF content, so it has to match the drawings being converted.
    """

    source_crs: str = DEFAULT_SOURCE_CRS
    target_crs: str = DEFAULT_TARGET_CRS
    segments_per_arc: int = SEGMENTS_PER_ARC
    closure_tolerance: float = CLOSURE_TOLERANCE
    min_covered_pct: float = 70.0
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            source_crs=_env_str(env, "SOURCE_CRS", defaults.source_crs),
            target_crs=_env_str(env, "TARGET_CRS", defaults.target_crs),
            segments_per_arc=max(1, _env_int(env, "SEGMENTS_PER_ARC", defaults.segments_per_arc)),
            closure_tolerance=_env_float(env, "CLOSURE_TOLERANCE", defaults.closure_tolerance),
            min_covered_pct=_env_float(env, "MIN_COVERED_PCT", defaults.min_covered_pct),
            log_level=_env_str(env, "LOG_LEVEL", defaults.log_level).upper(),
        )


def _env_str(env: Mapping[str, str], name: str, default: str) -> str:
    value = env.get(ENV_PREFIX + name)
    if value is None or value.strip() == "":
        return default
    return value.strip()


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    value = env.get(ENV_PREFIX + name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("ignoring %s%s=%r: not an integer", ENV_PREFIX, name, value)
        return default


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    value = env.get(ENV_PREFIX + name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning("ignoring %s%s=%r: not a number", ENV_PREFIX, name, value)
        return default
