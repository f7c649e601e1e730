"""Resolve overlapping polygons drawn in a front-to-back order.

Each polygon is clipped by every polygon stacked above it. A polygon that ends
up mostly hidden is dropped instead of being emitted as a sliver.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping, Sequence

import shapely
from pyproj import Geod
from shapely.geometry import MultiPolygon, Polygon, shape
from shapely.geometry.base import BaseGeometry
from shapely.geometry.polygon import orient

from .geometry import POLYGON_TYPES, feature_collection, geometry_type, is_polygon_feature

EPS = 1.0e-8

_OPTION_ALIASES = {
    "orderBy": "order_by",
    "minCoveredPct": "min_covered_pct",
    "clipRemainder": "clip_remainder",
}

logger = logging.getLogger(__name__)

Bounds = tuple[float, float, float, float]


@dataclass(frozen=True)
class VisibilityOptions:
    order_by: str = "z"
    min_covered_pct: float = 70.0
    clip_remainder: bool = True
    # Measure area on the WGS84 ellipsoid instead of in planar units.
    geodesic: bool = False

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any] | None) -> "VisibilityOptions":
        return cls()._with(values or {})

    def _with(self, values: Mapping[str, Any]) -> "VisibilityOptions":
        known = {f.name for f in fields(self)}
        updates: dict[str, Any] = {}
        for key, value in values.items():
            name = _OPTION_ALIASES.get(key, key)
            if name not in known:
                raise TypeError(f"unknown visibility option: {key!r}")
            if value is not None:
                updates[name] = value
        return replace(self, **updates)


def keep_top_visible(
    collection: Mapping[str, Any],
    options: VisibilityOptions | Mapping[str, Any] | None = None,
    **overrides: Any,
) -> dict[str, Any]:
    """Drop polygons covered by at least ``min_covered_pct`` percent.

    Features are processed from the highest stacking key down. Kept features
    carry either their visible remainder (``clip_remainder``) or their original
    geometry. Never raises for malformed features.
    """
    opts = _resolve_options(options, overrides)
    features = [f for f in collection.get("features") or [] if is_polygon_feature(f)]
    ordered = sorted(features, key=lambda f: _stack_key(f, opts.order_by), reverse=True)
    logger.debug("resolving visibility of %d polygon features", len(ordered))

    out: list[dict[str, Any]] = []
    top: list[tuple[BaseGeometry, Bounds]] = []
    dropped = 0

    for original in ordered:
        geom = _to_shape(original)
        if geom is None:
            out.append(original)
            continue

        current = _try_normalize(geom)
        full_area = max(_area(current, opts.geodesic), EPS)
        current_bounds = current.bounds

        visible: BaseGeometry | None = current
        for higher, higher_bounds in top:
            if _bboxes_disjoint(current_bounds, higher_bounds):
                continue
            if _disjoint(visible, higher):
                continue

            ok, remainder = _try_difference(visible, higher)
            if not ok:
                continue
            if remainder is None or remainder.is_empty:
                visible = None
                break
            visible = remainder

            covered_pct = (1.0 - _area(visible, opts.geodesic) / full_area) * 100.0
            if covered_pct >= opts.min_covered_pct:
                visible = None
                break

        if visible is None:
            dropped += 1
        elif opts.clip_remainder:
            out.append(_remainder_feature(original, visible))
        else:
            out.append(original)

        # Lower features are clipped by the whole shape, kept or not.
        top.append((current, current_bounds))

    logger.info("kept %d of %d polygon features (%d hidden)", len(out), len(ordered), dropped)
    return feature_collection(out)


def add_z_index(
    features: Sequence[Mapping[str, Any]],
    start_z: float | None = None,
    *,
    key: str = "z",
) -> list[dict[str, Any]]:
    """Stamp a stacking key by array position; the first feature is on top."""
    if start_z is None:
        start_z = len(features)
    return [
        {**item, "properties": {**(item.get("properties") or {}), key: start_z - index}}
        for index, item in enumerate(features)
    ]


def process_overlapping_polygons(
    collection: Any,
    options: VisibilityOptions | Mapping[str, Any] | None = None,
    **overrides: Any,
) -> Any:
    """Replace the collection's features with the visible polygon pieces.

    Non-polygon features are not part of the result. When no polygon carries
    the stacking key, input order decides (first = top).
    """
    if not isinstance(collection, dict) or not collection.get("features"):
        return collection
    opts = _resolve_options(options, overrides)

    polygons = [f for f in collection["features"] if geometry_type(f) in POLYGON_TYPES]
    if not polygons:
        return collection

    if not any((f.get("properties") or {}).get(opts.order_by) is not None for f in polygons):
        polygons = add_z_index(polygons, key=opts.order_by)

    visible = keep_top_visible(feature_collection(polygons), opts)
    return {**collection, "features": visible["features"]}


def _resolve_options(
    options: VisibilityOptions | Mapping[str, Any] | None,
    overrides: Mapping[str, Any],
) -> VisibilityOptions:
    if isinstance(options, VisibilityOptions):
        base = options
    else:
        base = VisibilityOptions.from_mapping(options)
    return base._with(overrides) if overrides else base


def _stack_key(item: Mapping[str, Any], order_by: str) -> float:
    value = (item.get("properties") or {}).get(order_by)
    if value is None:
        return 0.0
    try:
        key = float(value)
    except (TypeError, ValueError):
        return 0.0
    return key if not math.isnan(key) else 0.0


def _to_shape(item: Mapping[str, Any]) -> BaseGeometry | None:
    try:
        return shape(item["geometry"])
    except Exception as exc:
        logger.debug("cannot build geometry, keeping feature as is: %s", exc)
        return None


def _normalize(geom: BaseGeometry) -> BaseGeometry:
    if isinstance(geom, Polygon):
        geom = orient(geom, sign=1.0)
    elif isinstance(geom, MultiPolygon):
        geom = MultiPolygon([orient(part, sign=1.0) for part in geom.geoms])
    return shapely.remove_repeated_points(geom)


def _try_normalize(geom: BaseGeometry) -> BaseGeometry:
    try:
        return _normalize(geom)
    except Exception as exc:
        logger.debug("normalization failed, using geometry unmodified: %s", exc)
        return geom


def _difference(a: BaseGeometry, b: BaseGeometry) -> BaseGeometry:
    return a.difference(b)


def _try_difference(a: BaseGeometry, b: BaseGeometry) -> tuple[bool, BaseGeometry | None]:
    try:
        return True, _polygonal(_difference(a, b))
    except Exception as exc:
        logger.debug("difference failed, skipping this subtraction: %s", exc)
        return False, None


def _polygonal(geom: BaseGeometry | None) -> BaseGeometry | None:
    if geom is None or geom.is_empty:
        return None
    if isinstance(geom, (Polygon, MultiPolygon)):
        return geom
    parts: list[Polygon] = []
    for part in getattr(geom, "geoms", []):
        if isinstance(part, Polygon) and not part.is_empty:
            parts.append(part)
        elif isinstance(part, MultiPolygon):
            parts.extend(p for p in part.geoms if not p.is_empty)
    if not parts:
        return None
    return parts[0] if len(parts) == 1 else MultiPolygon(parts)


def _disjoint(a: BaseGeometry, b: BaseGeometry) -> bool:
    try:
        return bool(a.disjoint(b))
    except Exception as exc:
        logger.debug("disjoint test failed, trying difference: %s", exc)
        return False


def _bboxes_disjoint(a: Bounds, b: Bounds) -> bool:
    return b[0] > a[2] or b[2] < a[0] or b[1] > a[3] or b[3] < a[1]


_GEOD = Geod(ellps="WGS84")


def _area(geom: BaseGeometry, geodesic: bool = False) -> float:
    if geodesic:
        area, _perimeter = _GEOD.geometry_area_perimeter(geom)
        return abs(area)
    return float(geom.area)


def _remainder_feature(original: Mapping[str, Any], geom: BaseGeometry) -> dict[str, Any]:
    out: dict[str, Any] = {
        "type": "Feature",
        "geometry": json.loads(shapely.to_geojson(_try_normalize(geom))),
        "properties": dict(original.get("properties") or {}),
    }
    if "id" in original:
        out["id"] = original["id"]
    return out
