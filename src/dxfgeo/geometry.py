from __future__ import annotations

import json
from typing import Any, Sequence

import shapely
from shapely.geometry import shape

CLOSURE_TOLERANCE = 1.0e-10

POLYGON_TYPES = ("Polygon", "MultiPolygon")
LINE_TYPES = ("LineString", "MultiLineString")


def close_ring(coords: Sequence[Sequence[float]]) -> list[list[float]]:
    ring = [list(position) for position in coords]
    if not ring:
        return ring
    first = ring[0]
    last = ring[-1]
    if first[0] != last[0] or first[1] != last[1]:
        ring.append(list(first))
    return ring


def ensure_ring_closure(coords: Sequence[Sequence[float]]) -> list[list[float]]:
    ring = [list(position) for position in coords]
    if len(ring) < 3:
        return ring
    return close_ring(ring)


def is_closed_linestring(
    coords: Sequence[Sequence[float]],
    tolerance: float = CLOSURE_TOLERANCE,
) -> bool:
    if len(coords) < 3:
        return False
    first = coords[0]
    last = coords[-1]
    return abs(first[0] - last[0]) < tolerance and abs(first[1] - last[1]) < tolerance


def geometry_type(feature: Any) -> str | None:
    if not isinstance(feature, dict):
        return None
    geometry = feature.get("geometry")
    if not isinstance(geometry, dict):
        return None
    value = geometry.get("type")
    return value if isinstance(value, str) else None


def is_polygon_feature(feature: Any) -> bool:
    return (
        isinstance(feature, dict)
        and feature.get("type") == "Feature"
        and geometry_type(feature) in POLYGON_TYPES
    )


def feature(geometry: dict[str, Any], properties: dict[str, Any] | None = None) -> dict[str, Any]:
    return {"type": "Feature", "geometry": geometry, "properties": dict(properties or {})}


def feature_collection(features: Sequence[dict[str, Any]]) -> dict[str, Any]:
    return {"type": "FeatureCollection", "features": list(features)}


def clean_coords(geometry: dict[str, Any]) -> dict[str, Any]:
    """Drop repeated positions and redundant collinear vertices.

    Raises ValueError when the geometry cannot be built or collapses to
    nothing (a zero-length line, a zero-area polygon).
    """
    try:
        geom = shapely.simplify(shapely.remove_repeated_points(shape(geometry)), 0.0)
    except Exception as exc:
        raise ValueError(f"cannot clean geometry: {exc}") from exc
    if geom.is_empty:
        raise ValueError("geometry collapsed to nothing")
    if geom.geom_type in LINE_TYPES and geom.length == 0:
        raise ValueError("line string collapsed to a single position")
    if geom.geom_type in POLYGON_TYPES and geom.area == 0:
        raise ValueError("polygon collapsed to zero area")
    return json.loads(shapely.to_geojson(geom))
