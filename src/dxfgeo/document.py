from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Iterator

from .entity import (
    Arc,
    Circle,
    Ellipse,
    Entity,
    Line,
    Polyline,
    Solid,
    Unsupported,
    Vertex,
)

logger = logging.getLogger(__name__)

# POLYLINE subtypes that describe planar outlines; meshes and polyface meshes
# are reported as unsupported.
_OUTLINE_POLYLINE_MODES = {"AcDb2dPolyline", "AcDb3dPolyline"}


class DXFParseError(ValueError):
    """The DXF content could not be parsed at all."""


def read(path: str | Path) -> "Document":
    file_path = Path(path)
    if not file_path.is_file():
        raise FileNotFoundError(f"file not found: {file_path}")
    ezdxf = _require_ezdxf()
    try:
        # ezdxf reports "not a DXF file" as IOError; treat it as a parse failure.
        dxf_doc = ezdxf.readfile(str(file_path))
    except Exception as exc:
        raise DXFParseError(f"invalid or empty DXF: {exc}") from exc
    return _document_from_ezdxf(dxf_doc, path=str(path))


def readstr(content: str) -> "Document":
    if not content or not content.strip():
        raise DXFParseError("invalid or empty DXF: no content")
    ezdxf = _require_ezdxf()
    try:
        dxf_doc = ezdxf.read(io.StringIO(content))
    except Exception as exc:
        raise DXFParseError(f"invalid or empty DXF: {exc}") from exc
    return _document_from_ezdxf(dxf_doc, path=None)


def readbytes(data: bytes) -> "Document":
    return readstr(data.decode("utf-8", errors="replace"))


@dataclass(frozen=True)
class Document:
    path: str | None
    version: str | None
    entities: tuple[Entity, ...]

    def query(self, types: str | Iterable[str] | None = None) -> Iterator[Entity]:
        type_set = _normalize_types(types)
        for entity in self.entities:
            if type_set is None or entity.dxftype in type_set:
                yield entity

    def counts(self) -> dict[str, int]:
        out: dict[str, int] = {}
        for entity in self.entities:
            out[entity.dxftype] = out.get(entity.dxftype, 0) + 1
        return dict(sorted(out.items()))

    def to_geojson(self, **kwargs):
        from .convert import to_geojson

        return to_geojson(self, **kwargs)


def _require_ezdxf():
    try:
        import ezdxf
    except Exception as exc:
        raise ImportError(
            "ezdxf is required for reading DXF files. "
            "Install it with `pip install ezdxf`."
        ) from exc
    return ezdxf


def _normalize_types(types: str | Iterable[str] | None) -> set[str] | None:
    if types is None:
        return None
    if isinstance(types, str):
        tokens = re.split(r"[,\s]+", types.strip())
    else:
        tokens = list(types)
    normalized = {token.strip().upper() for token in tokens if token and token.strip()}
    if not normalized or normalized & {"*", "ALL"}:
        return None
    return normalized


def _document_from_ezdxf(dxf_doc: Any, *, path: str | None) -> Document:
    entities: list[Entity] = []
    for dxf_entity in dxf_doc.modelspace():
        entities.append(_entity_from_ezdxf(dxf_entity))
    logger.debug("read %d modelspace entities from %s", len(entities), path or "<string>")
    return Document(
        path=path,
        version=getattr(dxf_doc, "dxfversion", None),
        entities=tuple(entities),
    )


def _entity_from_ezdxf(dxf_entity: Any) -> Entity:
    dxftype = dxf_entity.dxftype()
    dxf = dxf_entity.dxf
    layer = str(dxf.get("layer", "0"))
    handle = dxf.get("handle")
    try:
        return _map_entity(dxftype, dxf_entity, layer, handle)
    except Exception as exc:
        # Keep the entity countable; the converter skips it.
        logger.debug("cannot read %s entity %s: %s", dxftype, handle, exc)
        return Unsupported(dxftype=dxftype, layer=layer, handle=handle)


def _map_entity(dxftype: str, dxf_entity: Any, layer: str, handle: str | None) -> Entity:
    dxf = dxf_entity.dxf

    if dxftype == "LINE":
        return Line(
            start=_point2_or_none(dxf.get("start")),
            end=_point2_or_none(dxf.get("end")),
            layer=layer,
            handle=handle,
        )

    if dxftype == "LWPOLYLINE":
        vertices = tuple(
            Vertex(float(x), float(y), float(bulge or 0.0))
            for x, y, bulge in dxf_entity.get_points(format="xyb")
        )
        return Polyline(
            vertices=vertices,
            closed=bool(dxf_entity.closed),
            flags=int(dxf.get("flags", 0)),
            layer=layer,
            handle=handle,
            dxftype="LWPOLYLINE",
        )

    if dxftype == "POLYLINE":
        if dxf_entity.get_mode() not in _OUTLINE_POLYLINE_MODES:
            return Unsupported(dxftype=dxftype, layer=layer, handle=handle)
        vertices = []
        for vertex in dxf_entity.vertices:
            location = vertex.dxf.get("location")
            if location is None:
                continue
            vertices.append(
                Vertex(float(location[0]), float(location[1]), float(vertex.dxf.get("bulge", 0.0) or 0.0))
            )
        return Polyline(
            vertices=tuple(vertices),
            closed=bool(dxf_entity.is_closed),
            flags=int(dxf.get("flags", 0)),
            layer=layer,
            handle=handle,
            dxftype="POLYLINE",
        )

    if dxftype == "ARC":
        return Arc(
            center=_point2_or_none(dxf.get("center")),
            radius=_float_or_none(dxf.get("radius")),
            start_angle=float(dxf.get("start_angle", 0.0)),
            end_angle=float(dxf.get("end_angle", 0.0)),
            layer=layer,
            handle=handle,
        )

    if dxftype == "CIRCLE":
        return Circle(
            center=_point2_or_none(dxf.get("center")),
            radius=_float_or_none(dxf.get("radius")),
            layer=layer,
            handle=handle,
        )

    if dxftype == "ELLIPSE":
        return Ellipse(
            center=_point2_or_none(dxf.get("center")),
            major_axis=_point2_or_none(dxf.get("major_axis")),
            ratio=float(dxf.get("ratio", 1.0)),
            start_param=_float_or_none(dxf.get("start_param")),
            end_param=_float_or_none(dxf.get("end_param")),
            layer=layer,
            handle=handle,
        )

    if dxftype == "SOLID":
        corners = [_point2_or_none(dxf.get(f"vtx{i}")) for i in range(4)]
        return Solid(points=_solid_outline(corners), layer=layer, handle=handle)

    return Unsupported(dxftype=dxftype, layer=layer, handle=handle)


def _solid_outline(corners: list[tuple[float, float] | None]) -> tuple[tuple[float, float], ...]:
    # SOLID stores corners in zig-zag order: 0, 1, 3, 2 walks the outline.
    v0, v1, v2, v3 = corners
    if v3 is None or v3 == v2:
        points = [v0, v1, v2]
    else:
        points = [v0, v1, v3, v2]
    return tuple(point for point in points if point is not None)


def _point2_or_none(value: Any) -> tuple[float, float] | None:
    if value is None:
        return None
    try:
        return (float(value[0]), float(value[1]))
    except Exception:
        return None


def _float_or_none(value: Any) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except Exception:
        return None
