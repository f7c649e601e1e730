from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Union

Point2D = tuple[float, float]


@dataclass(frozen=True)
class Vertex:
    x: float
    y: float
    bulge: float = 0.0


@dataclass(frozen=True)
class Line:
    start: Point2D | None
    end: Point2D | None
    layer: str = "0"
    handle: str | None = None

    dxftype: ClassVar[str] = "LINE"


@dataclass(frozen=True)
class Polyline:
    vertices: tuple[Vertex, ...]
    closed: bool = False
    flags: int = 0
    layer: str = "0"
    handle: str | None = None
    dxftype: str = "LWPOLYLINE"

    @property
    def is_closed(self) -> bool:
        return bool(self.closed) or (int(self.flags) & 1) == 1

    def to_points(self) -> list[Point2D]:
        return [(vertex.x, vertex.y) for vertex in self.vertices]


@dataclass(frozen=True)
class Arc:
    center: Point2D | None
    radius: float | None
    start_angle: float = 0.0
    end_angle: float = 0.0
    layer: str = "0"
    handle: str | None = None

    dxftype: ClassVar[str] = "ARC"


@dataclass(frozen=True)
class Circle:
    center: Point2D | None
    radius: float | None
    layer: str = "0"
    handle: str | None = None

    dxftype: ClassVar[str] = "CIRCLE"


@dataclass(frozen=True)
class Ellipse:
    center: Point2D | None
    major_axis: Point2D | None = None
    ratio: float = 1.0
    start_param: float | None = None
    end_param: float | None = None
    layer: str = "0"
    handle: str | None = None

    dxftype: ClassVar[str] = "ELLIPSE"


@dataclass(frozen=True)
class Solid:
    points: tuple[Point2D, ...]
    layer: str = "0"
    handle: str | None = None

    dxftype: ClassVar[str] = "SOLID"


@dataclass(frozen=True)
class Unsupported:
    dxftype: str
    layer: str = "0"
    handle: str | None = None


Entity = Union[Line, Polyline, Arc, Circle, Ellipse, Solid, Unsupported]

SUPPORTED_ENTITY_TYPES = ("LINE", "LWPOLYLINE", "POLYLINE", "ARC", "CIRCLE", "ELLIPSE", "SOLID")
