from __future__ import annotations

import logging
import math
from functools import lru_cache

from pyproj import Transformer

DEFAULT_SOURCE_CRS = "EPSG:32644"
DEFAULT_TARGET_CRS = "EPSG:4326"

logger = logging.getLogger(__name__)


@lru_cache(maxsize=32)
def _transformer(source_crs: str, target_crs: str) -> Transformer:
    return Transformer.from_crs(source_crs, target_crs, always_xy=True)


class Projector:
    """Planar CAD coordinates to geographic (lon, lat).

    ``project`` never raises: when the transform cannot be built or fails for a
    point, the input coordinate is returned unchanged and ``failures`` is
    incremented so callers can report it.
    """

    def __init__(
        self,
        source_crs: str | None = DEFAULT_SOURCE_CRS,
        target_crs: str | None = DEFAULT_TARGET_CRS,
    ) -> None:
        self.source_crs = source_crs
        self.target_crs = target_crs
        self.failures = 0
        self._transformer: Transformer | None = None
        if source_crs is None or target_crs is None:
            return
        try:
            self._transformer = _transformer(source_crs, target_crs)
        except Exception as exc:
            logger.warning(
                "cannot build transform %s -> %s, coordinates stay unprojected: %s",
                source_crs,
                target_crs,
                exc,
            )

    @classmethod
    def identity(cls) -> "Projector":
        return cls(None, None)

    @property
    def is_identity(self) -> bool:
        return self.source_crs is None or self.target_crs is None

    def project(self, x: float, y: float) -> tuple[float, float]:
        if self.is_identity:
            return (x, y)
        try:
            if self._transformer is None:
                raise ValueError("transformer unavailable")
            lon, lat = self._transformer.transform(x, y, errcheck=True)
            lon = float(lon)
            lat = float(lat)
            if not (math.isfinite(lon) and math.isfinite(lat)):
                raise ValueError(f"non-finite result ({lon}, {lat})")
        except Exception as exc:
            self.failures += 1
            logger.debug("reprojection failed for (%r, %r): %s", x, y, exc)
            return (x, y)
        return (lon, lat)

    def __call__(self, x: float, y: float) -> tuple[float, float]:
        return self.project(x, y)


def project_xy(
    x: float,
    y: float,
    *,
    source_crs: str = DEFAULT_SOURCE_CRS,
    target_crs: str = DEFAULT_TARGET_CRS,
) -> tuple[float, float]:
    return Projector(source_crs, target_crs).project(x, y)
