from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable, Sequence

from .config import Settings
from .document import Document, DXFParseError, read, readbytes, readstr
from .entity import Arc, Circle, Ellipse, Entity, Line, Polyline, Solid
from .geometry import close_ring, feature, feature_collection
from .projection import Projector
from .tessellate import tessellate_arc, tessellate_bulge, tessellate_ellipse

logger = logging.getLogger(__name__)

Point2D = tuple[float, float]


@dataclass(frozen=True)
class ConvertResult:
    source_path: str | None
    output_path: str
    total_entities: int
    written_features: int
    skipped_entities: int
    skipped_by_type: dict[str, int]
    unprojected_points: int


def to_geojson(
    source: str | Path | bytes | Document,
    *,
    types: str | Iterable[str] | None = None,
    source_crs: str | None = None,
    target_crs: str | None = None,
    segments: int | None = None,
    projector: Projector | None = None,
) -> dict[str, Any]:
    """Convert a DXF path, DXF text, DXF bytes or a parsed Document to a FeatureCollection.

    Raises DXFParseError when the DXF cannot be parsed. Entities that cannot be
    converted are skipped.
    """
    doc = _resolve_document(source)
    collection, _stats = _convert_document(
        doc,
        types=types,
        projector=projector or _default_projector(source_crs, target_crs),
        segments=_resolve_segments(segments),
    )
    return collection


def parse_dxf_to_geojson(content: str, **kwargs: Any) -> dict[str, Any]:
    return to_geojson(readstr(content), **kwargs)


def convert_dxf_buffer(data: bytes, **kwargs: Any) -> dict[str, Any]:
    return to_geojson(readbytes(data), **kwargs)


def to_geojson_file(
    source: str | Path | bytes | Document,
    output_path: str | Path,
    *,
    types: str | Iterable[str] | None = None,
    source_crs: str | None = None,
    target_crs: str | None = None,
    segments: int | None = None,
    projector: Projector | None = None,
    indent: int | None = None,
    postprocess: Callable[[dict[str, Any]], Any] | None = None,
) -> ConvertResult:
    """Convert and write the collection as JSON.

    ``postprocess`` runs on the converted collection before anything is
    written, so a failing step leaves no output file behind. Counts in the
    report describe the entity conversion.
    """
    doc = _resolve_document(source)
    projector = projector or _default_projector(source_crs, target_crs)
    collection, stats = _convert_document(
        doc,
        types=types,
        projector=projector,
        segments=_resolve_segments(segments),
    )
    total, skipped_by_type = stats
    written = len(collection["features"])
    if postprocess is not None:
        collection = postprocess(collection)

    out_path = Path(output_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(json.dumps(collection, indent=indent), encoding="utf-8")

    return ConvertResult(
        source_path=doc.path,
        output_path=str(out_path),
        total_entities=total,
        written_features=written,
        skipped_entities=total - written,
        skipped_by_type=dict(sorted(skipped_by_type.items())),
        unprojected_points=projector.failures,
    )


def convert_entities(
    entities: Iterable[Entity],
    projector: Projector | None = None,
    segments: int | None = None,
) -> dict[str, Any]:
    collection, _stats = _convert_entities(
        entities,
        projector=projector or _default_projector(None, None),
        segments=_resolve_segments(segments),
    )
    return collection


def entity_to_feature(
    entity: Entity,
    projector: Projector | None = None,
    segments: int | None = None,
) -> dict[str, Any] | None:
    return _entity_to_feature(
        entity,
        projector or _default_projector(None, None),
        _resolve_segments(segments),
    )


def _resolve_document(source: str | Path | bytes | Document) -> Document:
    if isinstance(source, Document):
        return source
    if isinstance(source, (bytes, bytearray)):
        return readbytes(bytes(source))
    # A str holding a line break (or nothing) is DXF content, not a file name.
    if isinstance(source, str) and ("\n" in source or not source.strip()):
        return readstr(source)
    try:
        return read(source)
    except OSError as exc:
        raise DXFParseError(f"invalid or empty DXF: {exc}") from exc


def _default_projector(source_crs: str | None, target_crs: str | None) -> Projector:
    settings = Settings.from_env()
    return Projector(source_crs or settings.source_crs, target_crs or settings.target_crs)


def _resolve_segments(segments: int | None) -> int:
    if segments is None:
        return Settings.from_env().segments_per_arc
    return max(1, int(segments))


def _convert_document(
    doc: Document,
    *,
    types: str | Iterable[str] | None,
    projector: Projector,
    segments: int,
) -> tuple[dict[str, Any], tuple[int, dict[str, int]]]:
    return _convert_entities(doc.query(types), projector=projector, segments=segments)


def _convert_entities(
    entities: Iterable[Entity],
    *,
    projector: Projector,
    segments: int,
) -> tuple[dict[str, Any], tuple[int, dict[str, int]]]:
    failures_before = projector.failures
    features: list[dict[str, Any]] = []
    skipped_by_type: dict[str, int] = {}
    total = 0
    for entity in entities:
        total += 1
        converted = _entity_to_feature(entity, projector, segments)
        if converted is not None:
            features.append(converted)
            continue
        skipped_by_type[entity.dxftype] = skipped_by_type.get(entity.dxftype, 0) + 1

    unprojected = projector.failures - failures_before
    if unprojected:
        logger.warning(
            "%d coordinates could not be reprojected (%s -> %s) and were kept as planar values",
            unprojected,
            projector.source_crs,
            projector.target_crs,
        )
    logger.info(
        "converted %d of %d entities to features (skipped: %s)",
        len(features),
        total,
        ", ".join(f"{name}:{count}" for name, count in sorted(skipped_by_type.items())) or "none",
    )
    return feature_collection(features), (total, skipped_by_type)


def _entity_to_feature(entity: Entity, projector: Projector, segments: int) -> dict[str, Any] | None:
    try:
        return _entity_to_feature_unsafe(entity, projector, segments)
    except Exception as exc:
        logger.debug("skipping %s entity %s: %s", entity.dxftype, entity.handle, exc)
        return None


def _entity_to_feature_unsafe(
    entity: Entity,
    projector: Projector,
    segments: int,
) -> dict[str, Any] | None:
    properties: dict[str, Any] = {"entityType": entity.dxftype, "layer": entity.layer}

    if isinstance(entity, Line):
        if entity.start is None or entity.end is None:
            return None
        coords = _project_all([entity.start, entity.end], projector)
        return feature({"type": "LineString", "coordinates": coords}, properties)

    if isinstance(entity, Polyline):
        return _polyline_feature(entity, projector, segments, properties)

    if isinstance(entity, Arc):
        if entity.center is None or not (entity.radius and entity.radius > 0):
            return None
        start = math.radians(entity.start_angle)
        end = math.radians(entity.end_angle)
        # DXF arcs run counter-clockwise from start to end.
        if end <= start:
            end += 2.0 * math.pi
        points = tessellate_arc(entity.center, entity.radius, start, end, segments)
        coords = _project_all(points, projector)
        return feature({"type": "LineString", "coordinates": coords}, properties)

    if isinstance(entity, Circle):
        if entity.center is None or not (entity.radius and entity.radius > 0):
            return None
        points = tessellate_arc(entity.center, entity.radius, 0.0, 2.0 * math.pi, segments)
        ring = close_ring(_project_all(points, projector))
        return feature({"type": "Polygon", "coordinates": [ring]}, properties)

    if isinstance(entity, Ellipse):
        if entity.center is None:
            return None
        major_axis = entity.major_axis if entity.major_axis is not None else (1.0, 0.0)
        start = entity.start_param if entity.start_param is not None else 0.0
        end = entity.end_param if entity.end_param is not None else 2.0 * math.pi
        if end <= start:
            end += 2.0 * math.pi
        points = tessellate_ellipse(entity.center, major_axis, entity.ratio, start, end, segments)
        coords = _project_all(points, projector)
        return feature({"type": "LineString", "coordinates": coords}, properties)

    if isinstance(entity, Solid):
        if len(entity.points) < 3:
            return None
        ring = close_ring(_project_all(entity.points, projector))
        return feature({"type": "Polygon", "coordinates": [ring]}, properties)

    return None


def _polyline_feature(
    entity: Polyline,
    projector: Projector,
    segments: int,
    properties: dict[str, Any],
) -> dict[str, Any] | None:
    vertices = entity.vertices
    if len(vertices) < 2:
        return None
    closed = entity.is_closed

    points: list[Point2D] = [(vertices[0].x, vertices[0].y)]
    segment_count = len(vertices) if closed else len(vertices) - 1
    last = vertices[-1]
    if closed and not last.bulge and (last.x, last.y) == (vertices[0].x, vertices[0].y):
        # Already closed by its own vertices; no zero-length closing edge.
        segment_count -= 1
    for i in range(segment_count):
        v0 = vertices[i]
        v1 = vertices[(i + 1) % len(vertices)]
        if v0.bulge:
            points.extend(tessellate_bulge((v0.x, v0.y), (v1.x, v1.y), v0.bulge, segments))
        else:
            points.append((v1.x, v1.y))

    coords = _project_all(points, projector)
    if closed:
        ring = close_ring(coords)
        # A linear ring needs at least four positions.
        if len(ring) >= 4:
            return feature(
                {"type": "Polygon", "coordinates": [ring]},
                {**properties, "closed": True},
            )
    return feature(
        {"type": "LineString", "coordinates": coords},
        {**properties, "closed": False},
    )


def _project_all(points: Sequence[Sequence[float]], projector: Projector) -> list[list[float]]:
    out: list[list[float]] = []
    for point in points:
        x = float(point[0])
        y = float(point[1])
        if not (math.isfinite(x) and math.isfinite(y)):
            raise ValueError(f"non-finite coordinate: ({x}, {y})")
        lon, lat = projector.project(x, y)
        out.append([lon, lat])
    return out
