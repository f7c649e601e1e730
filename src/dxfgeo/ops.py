from __future__ import annotations

import json
import logging
from typing import Any

import shapely
from shapely.geometry import shape
from shapely.ops import unary_union

from .geometry import POLYGON_TYPES, clean_coords, feature_collection, geometry_type

logger = logging.getLogger(__name__)

_MULTI_PART_TYPES = {
    "MultiPoint": "Point",
    "MultiLineString": "LineString",
    "MultiPolygon": "Polygon",
}


def union_polygons(collection: Any) -> dict[str, Any]:
    """Dissolve every polygon feature into a single feature."""
    polygons = [f for f in (collection or {}).get("features") or [] if geometry_type(f) in POLYGON_TYPES]
    if not polygons:
        raise ValueError("no polygon features found to union")
    if len(polygons) == 1:
        return polygons[0]

    logger.debug("unioning %d polygon features", len(polygons))
    merged = unary_union([shape(f["geometry"]) for f in polygons])
    if merged.is_empty:
        raise ValueError("union produced an empty geometry")
    return {
        "type": "Feature",
        "geometry": json.loads(shapely.to_geojson(merged)),
        "properties": {},
    }


def flatten(collection: Any) -> dict[str, Any]:
    """Explode multi-part geometries into one feature per part."""
    out: list[dict[str, Any]] = []
    for item in (collection or {}).get("features") or []:
        kind = geometry_type(item)
        part_type = _MULTI_PART_TYPES.get(kind or "")
        if part_type is None:
            out.append(item)
            continue
        properties = item.get("properties") or {}
        for coords in item["geometry"].get("coordinates") or []:
            out.append(
                {
                    "type": "Feature",
                    "geometry": {"type": part_type, "coordinates": coords},
                    "properties": dict(properties),
                }
            )
    logger.debug("flattened into %d features", len(out))
    return feature_collection(out)


def clean_collection(collection: Any) -> dict[str, Any]:
    """Remove consecutive duplicate positions from every feature geometry."""
    out: list[Any] = []
    for item in (collection or {}).get("features") or []:
        try:
            out.append({**item, "geometry": clean_coords(item["geometry"])})
        except Exception as exc:
            logger.debug("cannot clean feature, using original: %s", exc)
            out.append(item)
    return feature_collection(out)
