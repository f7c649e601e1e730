"""Aggregate single geometries into one MultiLineString and one MultiPolygon.

Drawings often carry thousands of small line and polygon features; renderers
handle a handful of multi-geometries far better. Open line strings whose ends
meet are drawn boundaries and are aggregated as polygons.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Iterable, Sequence

from .config import Settings
from .geometry import (
    LINE_TYPES,
    POLYGON_TYPES,
    ensure_ring_closure,
    feature_collection,
    geometry_type,
    is_closed_linestring,
)

CRS84 = {"type": "name", "properties": {"name": "urn:ogc:def:crs:OGC:1.3:CRS84"}}
COMBINE_BATCH_SIZE = 1000

logger = logging.getLogger(__name__)


def to_multi_geometry(
    collection: Any,
    *,
    closure_tolerance: float | None = None,
) -> Any:
    if not isinstance(collection, dict) or not isinstance(collection.get("features"), list):
        return collection
    features = collection["features"]
    if closure_tolerance is None:
        closure_tolerance = Settings.from_env().closure_tolerance

    line_coords: list[Any] = []
    polygon_coords: list[Any] = []
    other_features: list[Any] = []

    for item in features:
        geometry = item.get("geometry") if isinstance(item, dict) else None
        if not isinstance(geometry, dict):
            other_features.append(item)
            continue

        kind = geometry.get("type")
        coords = geometry.get("coordinates")
        if kind == "LineString":
            if isinstance(coords, list):
                if is_closed_linestring(coords, closure_tolerance):
                    polygon_coords.append([ensure_ring_closure(coords)])
                else:
                    line_coords.append(coords)
        elif kind == "Polygon":
            if isinstance(coords, list):
                polygon_coords.append(coords)
        elif kind == "MultiLineString":
            if isinstance(coords, list):
                line_coords.extend(coords)
        elif kind == "MultiPolygon":
            if isinstance(coords, list):
                polygon_coords.extend(coords)
        else:
            other_features.append(item)

    converted: list[dict[str, Any]] = []
    if line_coords:
        sources = [f for f in features if geometry_type(f) in LINE_TYPES]
        converted.append(
            {
                "type": "Feature",
                "properties": {
                    **merge_properties(sources),
                    "geometryType": "MultiLineString",
                    "originalCount": len(line_coords),
                },
                "geometry": {"type": "MultiLineString", "coordinates": line_coords},
            }
        )
    if polygon_coords:
        sources = [f for f in features if geometry_type(f) in POLYGON_TYPES]
        converted.append(
            {
                "type": "Feature",
                "properties": {
                    **merge_properties(sources),
                    "geometryType": "MultiPolygon",
                    "originalCount": len(polygon_coords),
                },
                "geometry": {"type": "MultiPolygon", "coordinates": polygon_coords},
            }
        )
    converted.extend(other_features)

    logger.info(
        "merged %d features into %d (%d line parts, %d polygon parts)",
        len(features),
        len(converted),
        len(line_coords),
        len(polygon_coords),
    )
    return {
        "type": collection.get("type"),
        "features": converted,
        "crs": CRS84,
        "properties": {
            **(collection.get("properties") or {}),
            "converted": True,
            "originalFeatureCount": len(features),
            "convertedFeatureCount": len(converted),
        },
    }


def merge_properties(features: Iterable[Any]) -> dict[str, Any]:
    """Combine properties key by key.

    An unset (or falsy) key takes the incoming value; a list collects further
    values; a string is promoted to a list of both values. Any other existing
    value is kept.
    """
    merged: dict[str, Any] = {}
    for item in features:
        properties = item.get("properties") if isinstance(item, dict) else None
        if not properties:
            continue
        for key, value in properties.items():
            current = merged.get(key)
            if _is_unset(current):
                merged[key] = value
            elif isinstance(current, list):
                if isinstance(value, list):
                    merged[key] = [*current, *value]
                else:
                    merged[key] = [*current, value]
            elif isinstance(current, str):
                merged[key] = [current, value]
    return merged


def _is_unset(value: Any) -> bool:
    if value is None or value is False or value == "":
        return True
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value == 0 or math.isnan(value)
    return False


def needs_conversion(collection: Any) -> bool:
    if not isinstance(collection, dict) or not collection.get("features"):
        return False
    line_count = 0
    polygon_count = 0
    for item in collection["features"]:
        kind = geometry_type(item)
        if kind in LINE_TYPES:
            line_count += 1
        elif kind in POLYGON_TYPES:
            polygon_count += 1
    return line_count > 1 or polygon_count > 1


def conversion_summary(original: Any, converted: Any) -> dict[str, Any]:
    original_features = list((original or {}).get("features") or [])
    converted_features = list((converted or {}).get("features") or [])
    converted_types = {geometry_type(f) for f in converted_features}
    return {
        "original": {
            "featureCount": len(original_features),
            "lineStringCount": sum(1 for f in original_features if geometry_type(f) in LINE_TYPES),
            "polygonCount": sum(1 for f in original_features if geometry_type(f) in POLYGON_TYPES),
        },
        "converted": {
            "featureCount": len(converted_features),
            "hasMultiLineString": "MultiLineString" in converted_types,
            "hasMultiPolygon": "MultiPolygon" in converted_types,
        },
    }


def line_only(collection: Any) -> dict[str, Any]:
    features = list((collection or {}).get("features") or [])
    kept = [f for f in features if geometry_type(f) == "LineString"]
    logger.debug("filtered %d features to %d line strings", len(features), len(kept))
    return feature_collection(kept)


def combine_lines(collection: Any, batch_size: int = COMBINE_BATCH_SIZE) -> dict[str, Any]:
    """Collect every LineString into a single MultiLineString feature.

    Input is walked in batches to bound the size of intermediate buffers.
    """
    lines = [
        f for f in (collection or {}).get("features") or [] if geometry_type(f) == "LineString"
    ]
    batch_size = max(1, int(batch_size))
    all_coords: list[Any] = []
    for batch_index, batch in enumerate(_batches(lines, batch_size), start=1):
        logger.debug("combining batch %d (%d line strings)", batch_index, len(batch))
        for item in batch:
            coords = item["geometry"].get("coordinates")
            if isinstance(coords, list) and coords:
                all_coords.append(coords)
            else:
                logger.debug("skipping line string without coordinates")

    if not all_coords:
        raise ValueError("no valid LineString coordinates found")
    return feature_collection(
        [
            {
                "type": "Feature",
                "geometry": {"type": "MultiLineString", "coordinates": all_coords},
                "properties": {},
            }
        ]
    )


def _batches(items: Sequence[Any], size: int) -> Iterable[Sequence[Any]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]
